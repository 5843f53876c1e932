"""
A basic example demonstrating the .trace() functionality for auditing a forecast,
plus the Graphviz export of one year's graph.
"""
import sys
import os
import logging

# Add the package directory to the Python path for local execution.
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'python')))

from prism_ledger import Calculation, GrowthRate, Ledger, Percentage, RefInput


def demonstrate_tracing():
    """Computes a small model and traces a result back to its inputs."""
    print("--- Demonstrating Audit Trace Functionality ---")

    ledger = Ledger()
    ledger.import_actuals([{"Cash": 0, "Revenue": 100.0, "Opex": 25.0}])
    ledger.set_rules({
        "Revenue": GrowthRate(0.2, refs=(RefInput.prev("Revenue"),)),
        "COGS": Percentage(0.4, RefInput.curr("Revenue")),
        "Opex": GrowthRate(0.0, refs=(RefInput.prev("Opex"),)),
        "EBIT": Calculation(refs=(
            RefInput.curr("Revenue"),
            RefInput.curr("COGS", sign=-1),
            RefInput.curr("Opex", sign=-1),
        )),
    })
    ledger.compute(years=2, base_profit_account="EBIT", cash_account="Cash")
    print(f"Model computed. Final EBIT: {ledger.value('EBIT', 2002):.3f}\n")

    # The trace is a step-by-step breakdown of the year's calculation.
    ledger.trace("EBIT")

    print("\n--- Tracing the Cash Roll-Forward ---")
    ledger.trace("Cash", year=2001)

    print("\n--- Graphviz Export (FY2001) ---")
    print(ledger.to_dot(year=2001))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    demonstrate_tracing()
