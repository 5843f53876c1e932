"""
Error types raised by the ledger engine.

Pre-flight (validation) errors are also ``ValueError``s and are raised before
any fiscal year is touched. Build and evaluation errors are also
``RuntimeError``s; they abort the current ``compute`` call but leave the
fiscal years completed earlier in that call intact.
"""


class LedgerError(Exception):
    """Base class for every error raised by prism_ledger."""


class NodeNotFoundError(LedgerError, LookupError):
    """A node identifier is not present in the arena."""

    def __init__(self, node_id):
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


# --- Validation (pre-flight) ---

class InvalidParameterError(LedgerError, ValueError):
    """A numeric rule or instruction parameter is NaN or infinite."""


class UnknownReferenceError(LedgerError, ValueError):
    """A rule references an account that is neither registered nor ruled."""


class RequiredFieldError(LedgerError, ValueError):
    """A rule is missing a field it cannot be compiled without."""


class InsufficientActualsError(LedgerError, ValueError):
    """Previous-period data is needed but no actual years were imported."""


class CashAccountError(LedgerError, ValueError):
    """The cash account option is missing or is not the designated name."""


class BalanceInstructionError(LedgerError, ValueError):
    """A Balance & Change instruction is malformed."""


# --- Build / evaluation ---

class BuildCycleError(LedgerError, RuntimeError):
    """An account-year was revisited while it was still being built."""

    def __init__(self, account: str, year: int):
        super().__init__(f"Cycle detected while building: {account} (FY{year})")
        self.account = account
        self.year = year


class MissingRuleError(LedgerError, RuntimeError):
    """A forecast-year account has no rule and is not the cash account."""

    def __init__(self, account: str, year: int):
        super().__init__(f"No rule for account: {account} (FY{year})")
        self.account = account
        self.year = year


class EvaluationConsistencyError(LedgerError, RuntimeError):
    """The node graph violates an invariant the compiler should guarantee."""
