import pytest

from bigcalc import REPL, Evaluator


@pytest.fixture
def evaluator():
    return Evaluator()


@pytest.fixture
def repl():
    return REPL()


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    if report.when == "call":
        print(f"TEST: {item.name} - {'PASSED' if report.passed else 'FAILED'}")
