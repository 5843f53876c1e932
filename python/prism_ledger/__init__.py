# The Public-Facing API: This is the "front door" to the library.

# The Ledger orchestrates everything; the rule and instruction types are what
# callers build their models from. The arena, compiler and evaluators are
# importable from their own modules for callers who want the graph directly.
from .config import EngineConfig
from .errors import (
    BalanceInstructionError,
    BuildCycleError,
    CashAccountError,
    EvaluationConsistencyError,
    InsufficientActualsError,
    InvalidParameterError,
    LedgerError,
    MissingRuleError,
    NodeNotFoundError,
    RequiredFieldError,
    UnknownReferenceError,
)
from .ledger import Ledger, LedgerTable, TableRow
from .types import (
    CURRENT,
    PREVIOUS,
    Account,
    AFType,
    BalanceChange,
    BalanceSign,
    Calculation,
    ChildrenSum,
    FixedValue,
    GrowthRate,
    Input,
    Percentage,
    Period,
    PeriodType,
    Proportionate,
    RefInput,
    Reference,
    Rule,
    Statement,
)

__version__ = "0.1.0"

__all__ = [
    "Ledger",
    "LedgerTable",
    "TableRow",
    "EngineConfig",
    # Model types
    "Account",
    "Statement",
    "Period",
    "PeriodType",
    "AFType",
    "CURRENT",
    "PREVIOUS",
    "RefInput",
    "Rule",
    "Input",
    "FixedValue",
    "Reference",
    "GrowthRate",
    "Percentage",
    "Proportionate",
    "ChildrenSum",
    "Calculation",
    "BalanceChange",
    "BalanceSign",
    # Errors
    "LedgerError",
    "NodeNotFoundError",
    "InvalidParameterError",
    "UnknownReferenceError",
    "RequiredFieldError",
    "InsufficientActualsError",
    "CashAccountError",
    "BalanceInstructionError",
    "BuildCycleError",
    "MissingRuleError",
    "EvaluationConsistencyError",
]
