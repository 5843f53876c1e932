import pytest

from prism_ledger import FixedValue, Ledger

from .model_data import BS_ACTUAL, PL_ACTUAL, PL_RULES


def pytest_addoption(parser):
    """Register the --run-perf command line option."""
    parser.addoption(
        "--run-perf", action="store_true", default=False, help="run performance benchmark tests"
    )

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "benchmark: mark test as a performance benchmark")

def pytest_collection_modifyitems(config, items):
    """
    Skip tests marked with @pytest.mark.benchmark unless --run-perf is provided.
    """
    if config.getoption("--run-perf"):
        # If the flag is present, run everything (including benchmarks)
        return

    skip_benchmark = pytest.mark.skip(reason="need --run-perf option to run")
    for item in items:
        if "benchmark" in item.keywords:
            item.add_marker(skip_benchmark)


@pytest.fixture
def pl_ledger() -> Ledger:
    """A ledger holding one actual P&L year and the growth/calculation rules."""
    ledger = Ledger()
    ledger.import_actuals([PL_ACTUAL])
    ledger.set_rules(PL_RULES)
    return ledger


@pytest.fixture
def bs_ledger() -> Ledger:
    """Two identical balance-sheet actual years (FY2000, FY2001) with zero base profit."""
    ledger = Ledger()
    ledger.import_actuals([BS_ACTUAL, BS_ACTUAL])
    ledger.set_rules({
        "Depreciation": FixedValue(100),
        "Ordinary Income": FixedValue(0),
    })
    return ledger

