"""
Defines the user-facing forecasting API (Ledger).
"""
import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union
from urllib.parse import quote

from .arena import NodeArena
from .balance import apply_balance_changes
from .compiler import RuleCompiler
from .config import EngineConfig
from .errors import CashAccountError, InsufficientActualsError, InvalidParameterError
from .evaluator import evaluate_topological, topological_order, validate_graph
from .export import export_graph, format_trace, to_dot
from .ids import cell_id, period_key
from .types import Account, BalanceChange, Rule, Statement
from .validation import validate_balance_changes, validate_rules

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableRow:
    account_id: str
    name: str
    parent_id: Optional[str] = None


@dataclass
class LedgerTable:
    """A rounded projection of the settled table: one row per account, one column per year."""

    rows: List[TableRow] = field(default_factory=list)
    columns: List[str] = field(default_factory=list)
    data: List[List[float]] = field(default_factory=list)

    def at(self, account: str, year: int) -> float:
        """The cell for ``account`` in ``year``."""
        names = [row.name for row in self.rows]
        if account not in names:
            raise KeyError(f"Account '{account}' is not a row of this table.")
        column = period_key(year)
        if column not in self.columns:
            raise KeyError(f"{column} is not a column of this table.")
        return self.data[names.index(account)][self.columns.index(column)]

    def to_dict(self) -> Dict[str, list]:
        return {
            "rows": [
                {"accountId": row.account_id, "name": row.name, "parentId": row.parent_id}
                for row in self.rows
            ],
            "columns": list(self.columns),
            "data": [list(values) for values in self.data],
        }


def _round_half_up(value: float) -> float:
    if not math.isfinite(value):
        return value
    return int(math.floor(value + 0.5))


class Ledger:
    """
    A multi-year forecast over a set of accounts.

    Actual years are imported as snapshots; forecast years are produced by
    ``compute`` from one rule per account. Each forecast year is compiled into
    nodes of a shared arena, evaluated in topological order, written back to
    the settled table, adjusted by Balance & Change instructions and then
    frozen as input to the next year.

    A Ledger is not safe for concurrent mutation; callers sharing one instance
    must serialize access to it.
    """

    def __init__(self, *, cash_account: str = EngineConfig.CASH_ACCOUNT):
        self._cash_account = cash_account
        self._arena = NodeArena()

        self._by_name: Dict[str, Account] = {}
        # Display order of account names; a dict used as an insertion-ordered set.
        self._order: Dict[str, None] = {}

        self._rules: Dict[str, Rule] = {}
        self._instructions: List[BalanceChange] = []

        self._actual_years: List[int] = []
        self._forecast_years: List[int] = []
        self._table: Dict[str, float] = {}
        self._forecast_keys: Set[str] = set()

        # (year, account) -> node id, read by the compiler.
        self._cells: Dict[Tuple[int, str], int] = {}
        # (year, account) -> node id the account was evaluated from.
        self._roots: Dict[Tuple[int, str], int] = {}
        self._building: Set[Tuple[int, str]] = set()

    def __repr__(self) -> str:
        return (
            f"Ledger(accounts={len(self._order)}, actual_years={self._actual_years}, "
            f"forecast_years={self._forecast_years}, nodes={self._arena.node_count})"
        )

    # --- Accounts ---

    @property
    def cash_account(self) -> str:
        return self._cash_account

    @property
    def accounts(self) -> List[Account]:
        return [self._by_name[name] for name in self._order]

    def _register(self, account: Account) -> Account:
        self._by_name[account.name] = account
        return account

    def ensure_account(self, name: str) -> Account:
        """Returns the account named ``name``, creating it on first reference."""
        account = self._by_name.get(name)
        if account is None:
            account = self._register(
                Account(id=f"acc:{quote(name, safe='')}", name=name, statement=EngineConfig.DEFAULT_STATEMENT)
            )
        self._order.setdefault(name, None)
        return account

    def _known_accounts(self) -> Set[str]:
        return set(self._by_name) | set(self._rules) | {self._cash_account}

    # --- Settled table ---

    @staticmethod
    def cell_key(statement: Union[Statement, str], year: int, account_id: str) -> str:
        """The stable settled-table key of one cell."""
        return cell_id(statement, period_key(year), account_id)

    def _key_for(self, name: str, year: int) -> str:
        account = self.ensure_account(name)
        return self.cell_key(account.statement, year, account.id)

    def _read(self, name: str, year: int) -> Optional[float]:
        account = self._by_name.get(name)
        if account is None:
            return None
        return self._table.get(self.cell_key(account.statement, year, account.id))

    def _lookup(self, name: str, year: int) -> Optional[float]:
        """The settled value for ``year``, falling back to the nearest earlier year."""
        if not self._actual_years:
            return None
        first = self._actual_years[0]
        while year >= first:
            value = self._read(name, year)
            if value is not None:
                return value
            year -= 1
        return None

    def _write(self, name: str, year: int, value: float) -> None:
        key = self._key_for(name, year)
        self._table[key] = value
        if year not in self._actual_years:
            self._forecast_keys.add(key)

    # --- Inputs ---

    def import_actuals(
        self,
        snapshots: List[Mapping[str, float]],
        accounts: Optional[Iterable[Account]] = None,
    ) -> None:
        """
        Imports historical snapshots, oldest first.

        Snapshots are numbered as consecutive fiscal years starting at
        ``EngineConfig.FIRST_ACTUAL_YEAR``. Importing replaces any history and
        forecast already held by the ledger; rules and instructions are kept.

        Args:
            snapshots: One ``{account name: value}`` mapping per actual year.
            accounts: Optional catalog describing the accounts (id, statement, parent).
        """
        if not snapshots:
            raise InsufficientActualsError("At least one actual snapshot is required.")

        for account in accounts or ():
            self._register(account)

        names = list(dict.fromkeys(name for snapshot in snapshots for name in snapshot))
        order = dict.fromkeys(names)
        order.update(self._order)
        self._order = order

        self._table.clear()
        self._forecast_keys.clear()
        self._cells.clear()
        self._roots.clear()
        self._forecast_years = []
        self._actual_years = [EngineConfig.FIRST_ACTUAL_YEAR + i for i in range(len(snapshots))]

        for year, snapshot in zip(self._actual_years, snapshots):
            for name, value in snapshot.items():
                value = float(value)
                self._write(name, year, value)
                node_id = self._arena.add_constant_node(
                    value, f"{name}(FY{year})[Actual]", account=name, year=year,
                )
                self._cells[(year, name)] = node_id
                self._roots[(year, name)] = node_id

        logger.info(
            "Imported %d actual year(s) FY%d-FY%d for %d account(s)",
            len(self._actual_years), self._actual_years[0], self._actual_years[-1], len(names),
        )

    def _warn_about_cash_rule(self, name: str) -> None:
        if name == self._cash_account:
            warnings.warn(
                f"Rule for cash account '{name}' is ignored; cash is rolled forward from the base profit account.",
                UserWarning,
                stacklevel=3,
            )

    def set_rules(self, rules: Mapping[str, Rule]) -> None:
        """Replaces the whole rule set."""
        for name in rules:
            self._warn_about_cash_rule(name)
        self._rules = dict(rules)

    def update_rule(self, account: str, rule: Rule) -> None:
        """
        Adds or replaces the rule of a single account.

        Forecast years already computed are not recomputed; call ``compute``
        again to refresh them.
        """
        self.ensure_account(account)
        self._warn_about_cash_rule(account)
        if self._forecast_years and account in self._rules and self._rules[account] != rule:
            warnings.warn(
                f"Rule for '{account}' replaced after FY{self._forecast_years[0]}-FY{self._forecast_years[-1]} "
                f"were computed; call compute() to refresh them.",
                UserWarning,
                stacklevel=2,
            )
        self._rules[account] = rule

    @property
    def rules(self) -> Dict[str, Rule]:
        return dict(self._rules)

    def set_balance_change(self, instructions: Iterable[BalanceChange]) -> None:
        """Replaces the Balance & Change instruction list."""
        self._instructions = list(instructions)

    # --- Validation & computation ---

    def validate(self) -> None:
        """
        Runs the pre-flight checks on rules and Balance & Change instructions.

        Raises:
            LedgerError: a ``ValueError`` subclass describing the first violation.
        """
        known = self._known_accounts()
        validate_rules(
            self._rules, known, has_actuals=bool(self._actual_years), cash_account=self._cash_account,
        )
        validate_balance_changes(self._instructions, known)

    def compute(
        self,
        years: int = EngineConfig.DEFAULT_YEARS,
        base_profit_account: str = EngineConfig.BASE_PROFIT_ACCOUNT,
        cash_account: Optional[str] = None,
    ) -> None:
        """
        Computes ``years`` forecast years after the latest actual year.

        The whole range is recomputed on every call. Validation failures raise
        before anything changes; a build or evaluation failure in one year
        keeps the years of this call that completed before it.

        Args:
            years: Number of forecast years.
            base_profit_account: Account whose value is added to cash each year.
            cash_account: Must name the ledger's designated cash account.
        """
        if isinstance(years, bool) or not isinstance(years, int) or years < 0:
            raise InvalidParameterError(f"years must be a non-negative integer, got {years!r}")

        self.validate()

        if cash_account is None:
            raise CashAccountError("cash_account is required.")
        if cash_account != self._cash_account:
            raise CashAccountError(
                f"cash_account must be the designated cash account '{self._cash_account}', got '{cash_account}'."
            )
        if not self._actual_years:
            raise InsufficientActualsError("No actual years imported.")

        self._purge_forecast()
        compiler = RuleCompiler(
            arena=self._arena,
            rules=dict(self._rules),
            cells=self._cells,
            building=self._building,
            settled_years=set(self._actual_years),
            cash_account=self._cash_account,
        )

        latest = self._actual_years[-1]
        for k in range(1, years + 1):
            self._compute_year(compiler, latest + k, base_profit_account)

    def _purge_forecast(self) -> None:
        actual = set(self._actual_years)
        for key in self._forecast_keys:
            self._table.pop(key, None)
        self._forecast_keys.clear()
        for cache in (self._cells, self._roots):
            for key in [key for key in cache if key[0] not in actual]:
                del cache[key]
        if self._forecast_years:
            logger.debug("Purged forecast years FY%d-FY%d", self._forecast_years[0], self._forecast_years[-1])
        self._forecast_years = []

    def _compute_year(self, compiler: RuleCompiler, year: int, base_profit_account: str) -> None:
        cash = self._cash_account
        targets = [name for name in self._rules if name != cash]

        for name in targets:
            compiler.resolve_account_for_year(year, name)
        compiler.attach_cash(year, base_profit_account)

        names = targets + [cash]
        roots = {name: self._cells[(year, name)] for name in names}
        values = evaluate_topological(self._arena, roots.values())
        for name, node_id in roots.items():
            self._roots[(year, name)] = node_id
            self._write(name, year, values[node_id])

        apply_balance_changes(self._instructions, year, self._lookup, self._write, cash)
        self._settle_year(compiler, year)
        self._forecast_years.append(year)
        logger.info("Computed FY%d: %d account(s), %d node(s) in arena", year, len(names), self._arena.node_count)

    def _settle_year(self, compiler: RuleCompiler, year: int) -> None:
        """Freezes ``year`` so later years read its settled values, adjustments included."""
        for name in self._order:
            value = self._lookup(name, year)
            if value is None:
                continue
            self._cells[(year, name)] = self._arena.add_constant_node(
                value, f"{name}(FY{year})[Settled]", account=name, year=year,
            )
        compiler.mark_settled(year)

    # --- Outputs ---

    @property
    def actual_years(self) -> List[int]:
        return list(self._actual_years)

    @property
    def forecast_years(self) -> List[int]:
        return list(self._forecast_years)

    def all_years(self) -> List[int]:
        """Every year from the first actual year through the last computed year."""
        if not self._actual_years:
            return []
        last = self._forecast_years[-1] if self._forecast_years else self._actual_years[-1]
        return list(range(self._actual_years[0], last + 1))

    def value(self, account: str, year: int) -> Optional[float]:
        """The unrounded settled value of ``account`` in ``year``, or None."""
        return self._read(account, year)

    def get_table(
        self,
        statement: Union[Statement, str, None] = None,
        years: Optional[List[int]] = None,
    ) -> LedgerTable:
        """
        Projects the settled table into a grid rounded to whole numbers.

        Rows follow first-seen account order and, when ``statement`` is given,
        only include accounts of that statement. A year without a stored value
        shows the nearest earlier year's value, or 0.
        """
        years = self.all_years() if years is None else list(years)
        table = LedgerTable(columns=[period_key(year) for year in years])
        for name in self._order:
            account = self._by_name[name]
            if statement is not None and account.statement != statement:
                continue
            table.rows.append(TableRow(account_id=account.id, name=name, parent_id=account.parent_id))
            row = []
            for year in years:
                value = self._lookup(name, year)
                row.append(0 if value is None else _round_half_up(value))
            table.data.append(row)
        return table

    def snapshot_latest_actual(self) -> Dict[str, float]:
        """``{account name: value}`` for the latest actual year."""
        if not self._actual_years:
            return {}
        latest = self._actual_years[-1]
        result = {}
        for name in self._order:
            value = self._read(name, latest)
            if value is not None:
                result[name] = value
        return result

    # --- Diagnostics ---

    @property
    def arena(self) -> NodeArena:
        return self._arena

    @property
    def node_count(self) -> int:
        return self._arena.node_count

    def node_for(self, account: str, year: int) -> int:
        """The node ``account`` was imported or evaluated from in ``year``."""
        try:
            return self._roots[(year, account)]
        except KeyError:
            raise KeyError(f"No node for '{account}' in FY{year}.") from None

    def _year_roots(self, year: Optional[int]) -> Optional[List[int]]:
        if year is None:
            return None
        return [node_id for (root_year, _), node_id in self._roots.items() if root_year == year]

    def get_evaluation_order(self, year: int) -> List[int]:
        """Topological order of the nodes behind ``year``'s accounts."""
        return topological_order(self._arena, self._year_roots(year))

    def validate_graph(self, year: Optional[int] = None) -> None:
        """Checks node integrity and acyclicity of the arena (of one year's subgraph when given)."""
        roots = self._year_roots(year)
        if roots is None:
            roots = [node.id for node in self._arena.all()]
        validate_graph(self._arena, roots)

    def to_dot(self, year: Optional[int] = None) -> str:
        return to_dot(self._arena, self._year_roots(year))

    def export_graph(self, year: Optional[int] = None) -> dict:
        return export_graph(self._arena, self._year_roots(year))

    def trace(self, account: str, year: Optional[int] = None) -> None:
        """Prints how ``account`` was computed in ``year`` (default: the last computed year)."""
        if year is None:
            years = self._forecast_years or self._actual_years
            if not years:
                raise InsufficientActualsError("Nothing to trace: no years imported or computed.")
            year = years[-1]
        root = self.node_for(account, year)
        values = evaluate_topological(self._arena, [root])
        print(format_trace(self._arena, root, values, title=f"{account} (FY{year})"))
