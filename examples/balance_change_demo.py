"""
Demonstrates Balance & Change instructions: capex paid from cash and depreciation
charged against retained earnings.
"""
import sys
import os
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'python')))

from prism_ledger import BalanceChange, BalanceSign, FixedValue, Ledger


def demonstrate_balance_changes():
    print("--- Demonstrating Balance & Change ---")
    ledger = Ledger()
    ledger.import_actuals([{
        "Cash": 100,
        "Retained Earnings": 500,
        "PP&E": 1000,
        "Depreciation": 0,
    }])
    ledger.set_rules({
        "Depreciation": FixedValue(100),
        "Profit Before Tax": FixedValue(0),
    })

    # Moving value into PP&E from cash lowers cash; moving it out against
    # retained earnings lowers both.
    ledger.set_balance_change([
        BalanceChange(target="PP&E", sign=BalanceSign.PLUS, value=200, counter="Cash"),
        BalanceChange(target="PP&E", sign=BalanceSign.MINUS, driver="Depreciation", counter="Retained Earnings"),
    ])
    ledger.compute(years=2, cash_account="Cash")

    for account in ("PP&E", "Cash", "Retained Earnings"):
        history = ", ".join(f"FY{year}: {ledger.value(account, year) or 0:,.0f}" for year in ledger.all_years())
        print(f"  {account:<18} {history}")
    print("\nAdjusted balances carry into the next year's opening values.")


if __name__ == "__main__":
    demonstrate_balance_changes()
