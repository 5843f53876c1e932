"""
Demonstrates the pre-flight validation and build-time checks catching common modeling errors.
"""
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'python')))

from prism_ledger import (
    BalanceChange,
    Calculation,
    GrowthRate,
    Ledger,
    LedgerError,
    Percentage,
    RefInput,
)

def make_ledger():
    ledger = Ledger()
    ledger.import_actuals([{"Cash": 10, "Sales": 100}])
    return ledger

def demonstrate_invalid_parameter():
    """A NaN growth rate is rejected before any year is computed."""
    print("--- Demonstrating Numeric Parameter Validation ---")
    ledger = make_ledger()
    ledger.set_rules({"Sales": GrowthRate(float("nan"), refs=(RefInput.prev("Sales"),))})

    try:
        ledger.compute(years=1, base_profit_account="Sales", cash_account="Cash")
        print("Validation unexpectedly passed.")
    except ValueError as e:
        print(f"Successfully caught expected error:\n  {type(e).__name__}: {e}\n")

def demonstrate_unknown_reference():
    print("--- Demonstrating Reference Validation ---")
    ledger = make_ledger()
    ledger.set_rules({"Interest": Percentage(0.05, RefInput.prev("Loan"))})

    try:
        ledger.validate()
        print("Validation unexpectedly passed.")
    except ValueError as e:
        print(f"Successfully caught expected error:\n  {type(e).__name__}: {e}\n")

def demonstrate_bad_instruction():
    print("--- Demonstrating Balance & Change Validation ---")
    ledger = make_ledger()
    ledger.set_balance_change([BalanceChange(target="Sales", sign="SIDEWAYS", value=1, counter="Cash")])

    try:
        ledger.validate()
        print("Validation unexpectedly passed.")
    except ValueError as e:
        print(f"Successfully caught expected error:\n  {type(e).__name__}: {e}\n")

def demonstrate_cycle():
    """Cycles pass validation but are found while the year is being built."""
    print("--- Demonstrating Build-Time Cycle Detection ---")
    ledger = make_ledger()
    ledger.set_rules({
        "Sales": Calculation(refs=(RefInput.curr("Margin"),)),
        "Margin": Calculation(refs=(RefInput.curr("Sales"),)),
    })

    try:
        ledger.compute(years=1, base_profit_account="Sales", cash_account="Cash")
        print("Compute unexpectedly passed.")
    except LedgerError as e:
        print(f"Successfully caught expected error:\n  {type(e).__name__}: {e}")
        print(f"  Forecast years kept: {ledger.forecast_years}\n")

def demonstrate_valid_model():
    print("--- Demonstrating a Valid Model ---")
    ledger = make_ledger()
    ledger.set_rules({"Sales": GrowthRate(0.1, refs=(RefInput.prev("Sales"),))})

    try:
        ledger.validate()
        print("Successfully validated the model. No errors found.\n")
    except ValueError as e:
        print(f"Validation unexpectedly failed: {e}\n")


if __name__ == "__main__":
    demonstrate_invalid_parameter()
    demonstrate_unknown_reference()
    demonstrate_bad_instruction()
    demonstrate_cycle()
    demonstrate_valid_model()
