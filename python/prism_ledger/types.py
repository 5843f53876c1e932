"""
Value types shared by the compiler, the validator and the ledger.

Rules form a closed union (``Rule``); every consumer dispatches on the concrete
class and ends with ``assert_never`` so that adding a variant without handling
it is caught by the type checker.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union


class Statement(str, Enum):
    PL = "PL"
    BS = "BS"
    CF = "CF"
    PPE = "PPE"
    OTHER = "OTHER"


class PeriodType(str, Enum):
    YEARLY = "Yearly"
    MONTHLY = "Monthly"


class AFType(str, Enum):
    ACTUAL = "Actual"
    FORECAST = "Forecast"


@dataclass(frozen=True)
class Period:
    """Statement-period semantics of a rule input."""

    period_type: Optional[PeriodType] = PeriodType.YEARLY
    af_type: Optional[AFType] = AFType.FORECAST
    value: Union[int, str, None] = None
    offset: Optional[int] = 0

    @property
    def is_previous(self) -> bool:
        """Actual-flagged or negatively offset periods point at the prior year."""
        return self.af_type == AFType.ACTUAL or (self.offset or 0) < 0


CURRENT = Period(af_type=AFType.FORECAST, offset=0)
PREVIOUS = Period(af_type=AFType.ACTUAL, offset=-1)


@dataclass
class Account:
    id: str
    name: str
    statement: Statement = Statement.PL
    parent_id: Optional[str] = None
    is_credit: Optional[bool] = None


@dataclass(frozen=True)
class RefInput:
    """A reference to another account's value in the previous or current period."""

    account: str
    period: Period = CURRENT
    sign: int = 1

    @classmethod
    def prev(cls, account: str, sign: int = 1) -> 'RefInput':
        return cls(account=account, period=PREVIOUS, sign=sign)

    @classmethod
    def curr(cls, account: str, sign: int = 1) -> 'RefInput':
        return cls(account=account, period=CURRENT, sign=sign)


# --- Rules ---

@dataclass(frozen=True)
class Input:
    value: float


@dataclass(frozen=True)
class FixedValue:
    value: float


@dataclass(frozen=True)
class Reference:
    ref: RefInput


@dataclass(frozen=True)
class GrowthRate:
    """base * (1 + value); the first entry of ``refs`` is the base."""

    value: float
    refs: Tuple[RefInput, ...] = ()


@dataclass(frozen=True)
class Percentage:
    value: float
    ref: RefInput


@dataclass(frozen=True)
class Proportionate:
    """
    base * ratio [* coeff].

    The ratio is a constant placeholder of 1; ``driver_curr`` and
    ``driver_prev`` are carried for the eventual ratio source but are not
    compiled. ``base`` defaults to the account's own previous value.
    """

    driver_curr: Optional[RefInput] = None
    driver_prev: Optional[RefInput] = None
    base: Optional[RefInput] = None
    coeff: Optional[float] = None


@dataclass(frozen=True)
class ChildrenSum:
    """Hierarchy roll-up. Not implemented: always compiles to 0."""


@dataclass(frozen=True)
class Calculation:
    """Signed sum of referenced accounts."""

    refs: Tuple[RefInput, ...] = field(default_factory=tuple)


Rule = Union[
    Input, FixedValue, Reference, GrowthRate,
    Percentage, Proportionate, ChildrenSum, Calculation,
]


def rule_refs(rule: Rule) -> Tuple[RefInput, ...]:
    """All account references a rule carries, in declaration order."""
    if isinstance(rule, Reference):
        return (rule.ref,)
    if isinstance(rule, Percentage):
        return (rule.ref,)
    if isinstance(rule, (GrowthRate, Calculation)):
        return tuple(rule.refs)
    if isinstance(rule, Proportionate):
        return tuple(r for r in (rule.base, rule.driver_curr, rule.driver_prev) if r is not None)
    return ()


# --- Balance & Change ---

class BalanceSign(str, Enum):
    PLUS = "PLUS"
    MINUS = "MINUS"


@dataclass(frozen=True)
class BalanceChange:
    """
    Moves value into or out of ``target`` after a year's formulas are settled.

    The amount is ``value`` when given, otherwise the current year's settled
    value of ``driver``. The ``counter`` account absorbs the movement: cash
    moves in the opposite direction, any other counter moves with the target.
    """

    target: str
    sign: Union[BalanceSign, str]
    counter: str
    driver: Optional[str] = None
    value: Optional[float] = None
    is_credit: Optional[bool] = None
