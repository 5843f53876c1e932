"""
A basic example: import one actual year, define P&L rules and roll the ledger forward.
"""
import sys
import os

# Add the package directory to the Python path for local execution.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'python')))

from prism_ledger import Calculation, GrowthRate, Ledger, RefInput


def demonstrate_forecast():
    """Builds a small P&L model and prints a three-year forecast."""
    print("--- Demonstrating a Multi-Year Forecast ---")

    ledger = Ledger()

    # --- 1. Actuals ---
    # Each snapshot is one fiscal year, oldest first. The first is FY2000.
    ledger.import_actuals([{
        "Cash": 50,
        "Sales": 1000,
        "Cost of Sales": 600,
        "SG&A": 100,
    }])

    # --- 2. Rules ---
    # One rule per account. Previous-period references read last year's settled value.
    ledger.set_rules({
        "Sales": GrowthRate(0.10, refs=(RefInput.prev("Sales"),)),
        "Cost of Sales": GrowthRate(0.05, refs=(RefInput.prev("Cost of Sales"),)),
        "SG&A": GrowthRate(0.0, refs=(RefInput.prev("SG&A"),)),
        "Operating Income": Calculation(refs=(
            RefInput.curr("Sales"),
            RefInput.curr("Cost of Sales", sign=-1),
            RefInput.curr("SG&A", sign=-1),
        )),
    })

    # --- 3. Compute ---
    # Cash(FY) = Cash(FY-1) + the base profit account of FY.
    ledger.compute(years=3, base_profit_account="Operating Income", cash_account="Cash")
    print(f"Computed {ledger.forecast_years} with {ledger.node_count} nodes in the arena.\n")

    # --- 4. Output ---
    table = ledger.get_table()
    print(f"{'Account':<20}" + "".join(f"{column:>10}" for column in table.columns))
    for row, values in zip(table.rows, table.data):
        print(f"{row.name:<20}" + "".join(f"{value:>10}" for value in values))


if __name__ == "__main__":
    demonstrate_forecast()
