"""
Applies Balance & Change instructions to a fiscal year's settled values.

These movements bypass the node graph entirely: they run after the year's
formulas have been evaluated and written back, and read and write settled
values directly.
"""
import logging
from typing import Callable, Iterable, Optional

from .types import BalanceChange, BalanceSign

logger = logging.getLogger(__name__)

Lookup = Callable[[str, int], Optional[float]]
Write = Callable[[str, int, float], None]


def _value_or_zero(lookup: Lookup, account: str, year: int) -> float:
    value = lookup(account, year)
    return 0.0 if value is None else value


def instruction_amount(instruction: BalanceChange, year: int, lookup: Lookup) -> float:
    """The fixed value when given, otherwise the driver's settled value for ``year``."""
    if instruction.value is not None:
        return float(instruction.value)
    return _value_or_zero(lookup, instruction.driver, year)


def apply_balance_changes(
    instructions: Iterable[BalanceChange],
    year: int,
    lookup: Lookup,
    write: Write,
    cash_account: str,
) -> None:
    """
    Applies ``instructions`` in order for ``year``.

    ``lookup(account, year)`` returns the account's settled value for the
    year, falling back to earlier years, or None when there is none.

    The target moves by +amount (PLUS) or -amount (MINUS). The counter moves
    the opposite way when it is the cash account and the same way otherwise.
    """
    for instruction in instructions:
        amount = instruction_amount(instruction, year, lookup)
        direction = 1.0 if instruction.sign == BalanceSign.PLUS else -1.0
        counter_direction = -direction if instruction.counter == cash_account else direction

        target_value = _value_or_zero(lookup, instruction.target, year) + direction * amount
        write(instruction.target, year, target_value)

        counter_value = _value_or_zero(lookup, instruction.counter, year) + counter_direction * amount
        write(instruction.counter, year, counter_value)

        logger.debug(
            "FY%d balance change: %s %+.2f -> %.2f, counter %s %+.2f -> %.2f",
            year, instruction.target, direction * amount, target_value,
            instruction.counter, counter_direction * amount, counter_value,
        )
