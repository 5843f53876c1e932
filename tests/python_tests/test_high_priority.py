"""
High Priority Test Suite: Core Correctness, Graph Invariants, & Sequential Integrity.
"""

import math
from concurrent.futures import ThreadPoolExecutor, as_completed

import pytest
from hypothesis import given, settings, strategies as st

from prism_ledger import (
    BalanceChange,
    BalanceSign,
    BuildCycleError,
    Calculation,
    FixedValue,
    GrowthRate,
    Ledger,
    Percentage,
    RefInput,
)
from prism_ledger.arena import NodeArena, Op
from prism_ledger.evaluator import (
    evaluate_recursive,
    evaluate_topological,
    topological_order,
)
from .config import TestConfig
from .model_data import CAPEX, DEPRECIATION, PL_ACTUAL, growth

# --- Helpers ---

def assert_float_equal(actual, expected, msg=""):
    assert abs(actual - expected) < TestConfig.TOLERANCE, f"{msg} Expected {expected}, got {actual}"

def assert_same_value(a, b, msg=""):
    """Exact equality, treating NaN as equal to NaN."""
    if math.isnan(a) or math.isnan(b):
        assert math.isnan(a) and math.isnan(b), f"{msg} {a} != {b}"
    else:
        assert a == b, f"{msg} {a} != {b}"

# --- 1. Property-Based Testing (Hypothesis) ---

# Strategy: Generate a list of operations to form a random DAG.
# Elements: ('op', index_1, index_2). Indices are modulo current_node_count.
op_strategy = st.lists(
    st.tuples(
        st.sampled_from([Op.ADD, Op.SUB, Op.MUL, Op.DIV]),
        st.integers(min_value=0, max_value=TestConfig.FUZZ_MAX_NODES),
        st.integers(min_value=0, max_value=TestConfig.FUZZ_MAX_NODES)
    ),
    min_size=1,
    max_size=TestConfig.FUZZ_MAX_NODES
)

def build_random_arena(ops, initial_val):
    arena = NodeArena()
    node_ids = [arena.add_constant_node(initial_val + i, f"In_{i}") for i in range(3)]
    for op, idx1, idx2 in ops:
        left = node_ids[idx1 % len(node_ids)]
        right = node_ids[idx2 % len(node_ids)]
        node_ids.append(arena.add_binary_formula(op, [left, right], f"Node_{len(node_ids)}"))
    return arena, node_ids

@given(ops=op_strategy, initial_val=st.floats(min_value=1.0, max_value=100.0))
@settings(max_examples=50, deadline=None)
def test_evaluator_equivalence_hypothesis(ops, initial_val):
    """
    Property: For any DAG, topological evaluation equals recursive memoized evaluation.
    """
    arena, node_ids = build_random_arena(ops, initial_val)
    roots = node_ids[-3:]

    topo_values = evaluate_topological(arena, roots)
    memo = {}
    for node_id in topo_values:
        assert_same_value(topo_values[node_id], evaluate_recursive(arena, node_id, memo), f"Node {node_id}:")

@given(ops=op_strategy, initial_val=st.floats(min_value=1.0, max_value=100.0))
@settings(max_examples=50, deadline=None)
def test_topological_order_hypothesis(ops, initial_val):
    """
    Property: Both children of every combinator appear strictly before it.
    """
    arena, node_ids = build_random_arena(ops, initial_val)
    order = topological_order(arena, [node_ids[-1]])
    position = {node_id: i for i, node_id in enumerate(order)}

    assert len(position) == len(order), "A node was emitted twice"
    for node_id in order:
        node = arena.get(node_id)
        for child in node.children:
            assert position[child] < position[node_id]

@given(
    rate=st.floats(min_value=-0.5, max_value=0.5),
    years=st.integers(min_value=1, max_value=TestConfig.FUZZ_MAX_YEARS),
    initial=st.floats(min_value=1.0, max_value=TestConfig.FUZZ_MAX_VALUE),
)
@settings(max_examples=30, deadline=None)
def test_sequential_continuity_hypothesis(rate, years, initial):
    """
    Property: Year k's previous-period lookup is exactly year k-1's settled value.
    """
    ledger = Ledger()
    ledger.import_actuals([{"Cash": 0.0, "Sales": initial}])
    ledger.set_rules({"Sales": growth(rate, "Sales"), "Profit Before Tax": FixedValue(0)})
    ledger.compute(years=years, cash_account="Cash")

    assert len(ledger.forecast_years) == years
    for year in ledger.forecast_years:
        previous = ledger.value("Sales", year - 1)
        assert ledger.value("Sales", year) == previous * (1 + rate)
        assert ledger.value("Cash", year) == 0.0

# --- 2. Graph Invariants ---

def test_leaf_combinator_exclusivity(pl_ledger):
    """Every node in the arena is exactly one of leaf or combinator."""
    pl_ledger.compute(years=3, base_profit_account="Ordinary Income", cash_account="Cash")

    assert pl_ledger.node_count > 0
    for node in pl_ledger.arena:
        assert node.is_leaf != node.is_combinator, f"Node {node.id} violates exclusivity"
    pl_ledger.validate_graph()

def test_same_account_year_shares_one_node(pl_ledger):
    """
    Operating Income is referenced by Ordinary Income and also ruled itself;
    both must resolve to the same node.
    """
    pl_ledger.compute(years=1, base_profit_account="Ordinary Income", cash_account="Cash")

    operating = pl_ledger.node_for("Operating Income", 2001)
    ordinary = pl_ledger.arena.get(pl_ledger.node_for("Ordinary Income", 2001))
    # Ordinary Income = ((Operating + NonOpIncome) + NonOpExpense * -1)
    inner = pl_ledger.arena.get(ordinary.left)
    assert inner.left == operating

def test_cycle_is_rejected_without_table_entries():
    """A <-> B in the current period raises before anything is written."""
    ledger = Ledger()
    ledger.import_actuals([PL_ACTUAL])
    ledger.set_rules({
        "A": Calculation(refs=(RefInput.curr("B"),)),
        "B": Calculation(refs=(RefInput.curr("A"),)),
        "Profit Before Tax": growth(0.0, "Sales"),
    })

    with pytest.raises(BuildCycleError, match="Cycle detected") as exc:
        ledger.compute(years=2, cash_account="Cash")

    assert exc.value.year == 2001
    assert ledger.forecast_years == []
    for name in ("A", "B", "Cash", "Profit Before Tax"):
        assert ledger.value(name, 2001) is None

def test_self_reference_in_current_period_is_a_cycle(pl_ledger):
    pl_ledger.update_rule("Sales", GrowthRate(0.1, refs=(RefInput.curr("Sales"),)))
    with pytest.raises(BuildCycleError, match="Sales"):
        pl_ledger.compute(years=1, base_profit_account="Ordinary Income", cash_account="Cash")

# --- 3. Scenario Tests ---

def test_growth_and_cash_roll_forward(pl_ledger):
    """
    Sales grows 10%, other P&L items are flat; cash absorbs ordinary income.
    """
    pl_ledger.compute(years=1, base_profit_account="Ordinary Income", cash_account="Cash")
    table = pl_ledger.get_table(years=[2001])

    assert table.at("Sales", 2001) == 1100
    assert table.at("Cost of Sales", 2001) == 600
    assert table.at("SG&A", 2001) == 100
    assert table.at("Non-operating Income", 2001) == 10
    assert table.at("Non-operating Expense", 2001) == 5
    assert table.at("Operating Income", 2001) == 400
    assert table.at("Ordinary Income", 2001) == 405
    assert table.at("Cash", 2001) == 455

def test_multi_year_roll_forward(pl_ledger):
    """Year 2 grows from year 1's settled values and adds its own ordinary income to cash."""
    pl_ledger.compute(years=2, base_profit_account="Ordinary Income", cash_account="Cash")

    assert_float_equal(pl_ledger.value("Sales", 2002), 1210.0)
    assert_float_equal(pl_ledger.value("Ordinary Income", 2002), 515.0)
    assert_float_equal(pl_ledger.value("Cash", 2002), 455.0 + 515.0)

def test_depreciation_balance_change(bs_ledger):
    """PP&E falls by the depreciation driver; retained earnings move with it; cash is untouched."""
    bs_ledger.set_balance_change([DEPRECIATION])
    bs_ledger.compute(years=1, base_profit_account="Ordinary Income", cash_account="Cash")
    table = bs_ledger.get_table(years=[2002])

    assert table.at("PP&E", 2002) == 900
    assert table.at("Retained Earnings", 2002) == 400
    assert table.at("Cash", 2002) == 100

def test_capex_balance_change(bs_ledger):
    """PP&E rises by a fixed amount paid from cash; retained earnings are untouched."""
    bs_ledger.set_balance_change([CAPEX])
    bs_ledger.compute(years=1, base_profit_account="Ordinary Income", cash_account="Cash")
    table = bs_ledger.get_table(years=[2002])

    assert table.at("PP&E", 2002) == 1200
    assert table.at("Cash", 2002) == -100
    assert table.at("Retained Earnings", 2002) == 500

def test_balance_changes_carry_into_next_year(bs_ledger):
    """Adjusted balances, including cash, are the opening values of the following year."""
    bs_ledger.set_balance_change([CAPEX, DEPRECIATION])
    bs_ledger.compute(years=2, base_profit_account="Ordinary Income", cash_account="Cash")

    assert bs_ledger.value("PP&E", 2002) == 1100.0
    assert bs_ledger.value("PP&E", 2003) == 1200.0
    assert bs_ledger.value("Cash", 2002) == -100.0
    assert bs_ledger.value("Cash", 2003) == -300.0
    assert bs_ledger.value("Retained Earnings", 2003) == 300.0

def test_previous_reference_reads_adjusted_balance():
    """
    Interest is 10% of the previous year's receivables, which grow only through
    a Balance & Change instruction funded by cash.
    """
    ledger = Ledger()
    ledger.import_actuals([{"Cash": 50, "Receivables": 100}])
    ledger.set_rules({"Interest": Percentage(0.10, RefInput.prev("Receivables"))})
    ledger.set_balance_change([
        BalanceChange(target="Receivables", sign=BalanceSign.PLUS, value=10, counter="Cash"),
    ])
    ledger.compute(years=2, base_profit_account="Interest", cash_account="Cash")

    assert_float_equal(ledger.value("Interest", 2001), 10.0)
    assert_float_equal(ledger.value("Receivables", 2001), 110.0)
    assert_float_equal(ledger.value("Interest", 2002), 11.0)
    assert_float_equal(ledger.value("Cash", 2001), 50.0)
    assert_float_equal(ledger.value("Cash", 2002), 51.0)

def test_recompute_replaces_previous_forecast(bs_ledger):
    """compute() is whole-range: running it twice must not apply adjustments twice."""
    bs_ledger.set_balance_change([CAPEX])
    bs_ledger.compute(years=1, base_profit_account="Ordinary Income", cash_account="Cash")
    bs_ledger.compute(years=1, base_profit_account="Ordinary Income", cash_account="Cash")

    assert bs_ledger.value("PP&E", 2002) == 1200.0
    assert bs_ledger.value("Cash", 2002) == -100.0

# --- 4. Concurrency & Isolation Tests ---

def _run_isolated_ledger(seed_val: float) -> float:
    ledger = Ledger()
    ledger.import_actuals([{"Cash": 0.0, "Sales": seed_val}])
    ledger.set_rules({
        "Sales": growth(1.0, "Sales"),
        "Profit Before Tax": Calculation(refs=(RefInput.curr("Sales"),)),
    })
    ledger.compute(years=1, cash_account="Cash")
    return ledger.value("Cash", 2001)

def test_ledger_instances_are_isolated():
    """Verifies that per-ledger caches are not shared between instances or threads."""
    workers = 10
    inputs = [float(i) for i in range(workers)]
    expected = [i * 2.0 for i in inputs]

    with ThreadPoolExecutor(max_workers=workers) as executor:
        future_to_input = {executor.submit(_run_isolated_ledger, i): i for i in inputs}
        results = []
        for future in as_completed(future_to_input):
            results.append(future.result())

    results.sort()
    assert results == expected, "Ledger isolation failed."

def test_rules_are_read_at_compute_time(pl_ledger):
    """Changing the rule set between calls is picked up by the next compute()."""
    pl_ledger.compute(years=1, base_profit_account="Ordinary Income", cash_account="Cash")
    with pytest.warns(UserWarning, match="call compute"):
        pl_ledger.update_rule("Sales", growth(0.5, "Sales"))
    assert pl_ledger.value("Sales", 2001) == pytest.approx(1100.0)

    pl_ledger.compute(years=1, base_profit_account="Ordinary Income", cash_account="Cash")
    assert pl_ledger.value("Sales", 2001) == pytest.approx(1500.0)
    assert pl_ledger.rules["Sales"] == growth(0.5, "Sales")
