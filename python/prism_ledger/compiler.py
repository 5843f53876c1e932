"""
Compiles per-account forecasting rules into arena nodes, one fiscal year at a time.
"""
from typing import Dict, List, Mapping, Set, Tuple, assert_never

from .arena import NodeArena, Op
from .errors import (
    BuildCycleError,
    CashAccountError,
    EvaluationConsistencyError,
    MissingRuleError,
    RequiredFieldError,
)
from .types import (
    PREVIOUS,
    Calculation,
    ChildrenSum,
    FixedValue,
    GrowthRate,
    Input,
    Percentage,
    Proportionate,
    RefInput,
    Reference,
    Rule,
    rule_refs,
)

CellKey = Tuple[int, str]


class RuleCompiler:
    """
    Resolves (fiscal year, account) pairs to node ids.

    ``cells`` is the per-year cell cache shared with the ledger: settled years
    (actuals and forecast years already completed) are pre-populated with
    leaves, and every account compiled for a forecast year is added to it, so
    an account-year is only ever compiled once. ``building`` holds the keys
    currently on the resolution stack and is how build-time cycles are found.
    """

    def __init__(
        self,
        arena: NodeArena,
        rules: Mapping[str, Rule],
        cells: Dict[CellKey, int],
        building: Set[CellKey],
        settled_years: Set[int],
        cash_account: str,
    ):
        self._arena = arena
        self._rules = rules
        self._cells = cells
        self._building = building
        self._settled_years = settled_years
        self._cash_account = cash_account

    def resolve_account_for_year(self, year: int, account: str) -> int:
        key = (year, account)
        cached = self._cells.get(key)
        if cached is not None:
            return cached
        if key in self._building:
            raise BuildCycleError(account, year)

        # Depth-first walk with an explicit stack: a key is compiled once every
        # key it reads is in the cell cache, so _build never descends further.
        stack = [(key, iter(self._dependencies(year, account)))]
        self._building.add(key)
        try:
            while stack:
                current, pending = stack[-1]
                for dep in pending:
                    if dep in self._cells:
                        continue
                    if dep in self._building:
                        raise BuildCycleError(dep[1], dep[0])
                    self._building.add(dep)
                    stack.append((dep, iter(self._dependencies(*dep))))
                    break
                else:
                    self._cells[current] = self._build(*current)
                    self._building.discard(current)
                    stack.pop()
        finally:
            for unfinished, _ in stack:
                self._building.discard(unfinished)

        return self._cells[key]

    def attach_cash(self, year: int, base_profit_account: str) -> int:
        """Cash(year) = Cash(year - 1) + base profit(year)."""
        cash = self._cash_account
        previous = self.resolve_account_for_year(year - 1, cash)
        profit = self.resolve_account_for_year(year, base_profit_account)
        node_id = self._arena.add_binary_formula(
            Op.ADD, [previous, profit], f"{cash}=prev+{base_profit_account}(FY{year})",
            account=cash, year=year,
        )
        self._cells[(year, cash)] = node_id
        return node_id

    def mark_settled(self, year: int) -> None:
        """Future resolutions for ``year`` must come from the cell cache."""
        self._settled_years.add(year)

    # --- Rule dispatch ---

    def _dependencies(self, year: int, name: str) -> List[CellKey]:
        """The cells ``_build`` reads for ``name`` in ``year``, in rule order."""
        if year in self._settled_years or name == self._cash_account:
            return []
        rule = self._rules.get(name)
        if rule is None:
            return []
        if isinstance(rule, Proportionate):
            refs = (rule.base if rule.base is not None else RefInput(name, PREVIOUS),)
        elif isinstance(rule, GrowthRate):
            refs = rule.refs[:1]
        else:
            refs = rule_refs(rule)
        return [self._ref_key(year, ref) for ref in refs]

    def _build(self, year: int, name: str) -> int:
        if year in self._settled_years:
            raise EvaluationConsistencyError(f"Settled cell missing: {name} (FY{year})")
        if name == self._cash_account:
            raise CashAccountError(
                f"Cash account '{name}' for FY{year} is attached after the year's rules "
                f"are compiled; reference it with a previous period instead."
            )

        rule = self._rules.get(name)
        if rule is None:
            raise MissingRuleError(name, year)

        if isinstance(rule, Input):
            return self._leaf(rule.value, f"{name}(FY{year})[Input]", name, year)

        if isinstance(rule, FixedValue):
            return self._leaf(rule.value, f"{name}(FY{year})[Fixed]", name, year)

        if isinstance(rule, Reference):
            # The account shares the referenced node rather than wrapping it.
            return self._resolve_ref(year, rule.ref)

        if isinstance(rule, GrowthRate):
            if not rule.refs:
                raise RequiredFieldError(f"GrowthRate rule for '{name}' requires refs")
            base = self._resolve_ref(year, rule.refs[0])
            factor = self._leaf(1 + rule.value, f"1+growth({rule.value})")
            return self._mul(base, factor, f"{name}=ref*factor(FY{year})", name, year)

        if isinstance(rule, Percentage):
            ref = self._resolve_ref(year, rule.ref)
            rate = self._leaf(rule.value, f"pct({rule.value})")
            return self._mul(ref, rate, f"{name}=ref*pct(FY{year})", name, year)

        if isinstance(rule, Proportionate):
            base_ref = rule.base if rule.base is not None else RefInput(name, PREVIOUS)
            base = self._resolve_ref(year, base_ref)
            # TODO: replace the placeholder once the ratio's driver accounts are defined.
            ratio = self._leaf(1, "ratio~placeholder")
            node_id = self._mul(base, ratio, f"{name}=base*ratio(FY{year})", name, year)
            if rule.coeff is not None:
                coeff = self._leaf(rule.coeff, f"coeff({rule.coeff})")
                node_id = self._mul(node_id, coeff, f"{name}*coeff(FY{year})", name, year)
            return node_id

        if isinstance(rule, ChildrenSum):
            return self._leaf(0, f"{name}(FY{year})[children_sum=0]", name, year)

        if isinstance(rule, Calculation):
            terms = []
            for ref in rule.refs:
                term = self._resolve_ref(year, ref)
                if ref.sign == -1:
                    minus_one = self._leaf(-1, "-1")
                    term = self._mul(term, minus_one, f"{ref.account}*(-1)(FY{year})")
                terms.append(term)

            if not terms:
                return self._leaf(0, f"{name}(FY{year})[0]", name, year)
            node_id = terms[0]
            for term in terms[1:]:
                node_id = self._arena.add_binary_formula(
                    Op.ADD, [node_id, term], f"{name}:acc(FY{year})", account=name, year=year,
                )
            return node_id

        assert_never(rule)

    # --- Helpers ---

    @staticmethod
    def _ref_key(year: int, ref: RefInput) -> CellKey:
        return (year - 1 if ref.period.is_previous else year, ref.account)

    def _resolve_ref(self, year: int, ref: RefInput) -> int:
        return self.resolve_account_for_year(*self._ref_key(year, ref))

    def _leaf(self, value, label: str, account: str = None, year: int = None) -> int:
        return self._arena.add_constant_node(value, label, account=account, year=year)

    def _mul(self, left: int, right: int, label: str, account: str = None, year: int = None) -> int:
        return self._arena.add_binary_formula(Op.MUL, [left, right], label, account=account, year=year)
