"""
Pre-flight checks run by ``Ledger.compute`` before any fiscal year is touched.

Each check raises on the first violation it finds; nothing here mutates ledger state.
"""
import math
from numbers import Real
from typing import Collection, Iterable, Mapping, Optional

from .errors import (
    BalanceInstructionError,
    CashAccountError,
    InsufficientActualsError,
    InvalidParameterError,
    RequiredFieldError,
    UnknownReferenceError,
)
from .types import (
    BalanceChange,
    BalanceSign,
    Calculation,
    ChildrenSum,
    FixedValue,
    GrowthRate,
    Input,
    Percentage,
    Proportionate,
    Reference,
    Rule,
    rule_refs,
)

_RULE_TYPES = (Input, FixedValue, Reference, GrowthRate, Percentage, Proportionate, ChildrenSum, Calculation)
_SIGNS = tuple(sign.value for sign in BalanceSign)


def is_finite_number(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool) and math.isfinite(value)


def _check_number(account: str, field: str, value) -> None:
    if not is_finite_number(value):
        raise InvalidParameterError(
            f"Invalid numeric parameter '{field}' for '{account}': {value!r} (NaN and infinity are not allowed)"
        )


def _check_required_fields(account: str, rule: Rule) -> None:
    if isinstance(rule, Calculation) and rule.refs is None:
        raise RequiredFieldError(f"Calculation rule for '{account}' requires a refs list")
    if isinstance(rule, GrowthRate) and not rule.refs:
        raise RequiredFieldError(f"GrowthRate rule for '{account}' requires a non-empty refs list")
    if isinstance(rule, (Reference, Percentage)) and rule.ref is None:
        raise RequiredFieldError(f"{type(rule).__name__} rule for '{account}' requires a ref")


def _check_numbers(account: str, rule: Rule) -> None:
    if isinstance(rule, (Input, FixedValue, GrowthRate, Percentage)):
        _check_number(account, "value", rule.value)
    elif isinstance(rule, Proportionate) and rule.coeff is not None:
        _check_number(account, "coeff", rule.coeff)


def _uses_previous(rule: Rule) -> bool:
    # A Proportionate rule without an explicit base reads its own previous value.
    if isinstance(rule, Proportionate) and rule.base is None:
        return True
    return any(ref.period.is_previous for ref in rule_refs(rule))


def validate_rules(
    rules: Mapping[str, Rule],
    known_accounts: Collection[str],
    has_actuals: bool,
    cash_account: Optional[str] = None,
) -> None:
    """
    Validates a rule set.

    A rule on ``cash_account`` is never compiled, so its references are not
    checked against it.

    Raises:
        InvalidParameterError: a numeric parameter or reference sign is invalid,
            or the rule is not one of the supported rule types.
        RequiredFieldError: a rule lacks a field it needs.
        UnknownReferenceError: a reference names neither a known account nor a ruled one.
        CashAccountError: a rule reads the cash account in the current period.
        InsufficientActualsError: previous-period data is used but there are no actuals.
    """
    for account, rule in rules.items():
        if not isinstance(rule, _RULE_TYPES):
            raise InvalidParameterError(
                f"Unsupported rule type for '{account}': {type(rule).__name__}"
            )
        _check_required_fields(account, rule)
        _check_numbers(account, rule)

        for ref in rule_refs(rule):
            if ref.account not in known_accounts and ref.account not in rules:
                raise UnknownReferenceError(
                    f"Reference target not found: '{ref.account}' (referenced by '{account}')"
                )
            if ref.sign not in (1, -1):
                raise InvalidParameterError(
                    f"Invalid reference sign for '{ref.account}' in '{account}': {ref.sign!r} (expected 1 or -1)"
                )
            if ref.account == cash_account and account != cash_account and not ref.period.is_previous:
                raise CashAccountError(
                    f"Rule for '{account}' reads cash account '{ref.account}' in the current period; "
                    f"cash is attached after the year's rules are compiled, so reference the previous period instead"
                )

    if not has_actuals:
        for account, rule in rules.items():
            if _uses_previous(rule):
                raise InsufficientActualsError(
                    f"Rule for '{account}' references a previous period but no actual years were imported"
                )


def _check_instruction_account(index: int, role: str, account: Optional[str], known_accounts) -> None:
    if not account or account not in known_accounts:
        raise BalanceInstructionError(f"Instruction {index}: {role} account not found: {account!r}")


def validate_balance_changes(
    instructions: Iterable[BalanceChange],
    known_accounts: Collection[str],
) -> None:
    """
    Validates Balance & Change instructions.

    Raises:
        BalanceInstructionError: on an invalid sign, an unknown target, counter
            or driver, or when neither a fixed value nor a driver is given.
    """
    for index, instruction in enumerate(instructions):
        if instruction.sign not in _SIGNS:
            raise BalanceInstructionError(
                f"Instruction {index}: invalid sign {instruction.sign!r} (expected one of {', '.join(_SIGNS)})"
            )
        _check_instruction_account(index, "target", instruction.target, known_accounts)
        _check_instruction_account(index, "counter", instruction.counter, known_accounts)

        if instruction.value is None and instruction.driver is None:
            raise BalanceInstructionError(
                f"Instruction {index}: a fixed value or a driver is required for target '{instruction.target}'"
            )
        if instruction.value is not None and not is_finite_number(instruction.value):
            raise BalanceInstructionError(
                f"Instruction {index}: invalid value {instruction.value!r} for target '{instruction.target}'"
            )
        if instruction.driver is not None:
            _check_instruction_account(index, "driver", instruction.driver, known_accounts)
