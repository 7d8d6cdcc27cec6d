#
# tests/conftest.py
#
import pytest

from testfork.engine.protocols import EngineNode, TestSource
from testfork.model import (
    IncludeExcludeList,
    ReportEntry,
    TestData,
    TestIdentifier,
    TestParameters,
    TestReport,
    TestStatus,
)

# In-process pytest runs for the engine tests.
pytest_plugins = ["pytester"]


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = 1_000):
        self.now = now

    def advance(self, millis: int) -> None:
        self.now += millis

    def __call__(self) -> int:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_node():
    """Factory for engine nodes of a module.Class.method shaped test tree."""

    def _make(
        unique_id: str,
        parent_id: str | None = None,
        is_test: bool = True,
        tags: frozenset[str] = frozenset(),
        module: str | None = "pkg.test_mod",
        qualname: str | None = "TestThing.test_it",
    ) -> EngineNode:
        source = None if module is None else TestSource(module=module, qualname=qualname, path="pkg/test_mod.py", lineno=3)
        return EngineNode(
            unique_id=unique_id,
            parent_id=parent_id,
            display_name=unique_id.rsplit("::", 1)[-1],
            is_test=is_test,
            is_container=not is_test,
            tags=tags,
            source=source,
        )

    return _make


@pytest.fixture
def full_parameters() -> TestParameters:
    return TestParameters(
        configuration={"python_files": "check_*.py", "xfail_strict": "true"},
        filter_stack_traces=False,
        select_packages=["pkg", "pkg.sub"],
        select_classes=["pkg.test_mod.TestThing"],
        select_methods=["pkg.test_mod.TestThing#test_it", "pkg.test_mod#test_free"],
        select_resources=["tests/test_extra.py"],
        classpath_roots=["src", "lib"],
        filter_class_name_patterns=IncludeExcludeList(included=[r".*Test.*"], excluded=[r".*Slow"]),
        filter_packages=IncludeExcludeList(excluded=["pkg.legacy"]),
        filter_tags=IncludeExcludeList(included=["smoke", "fast"]),
        log_level="DEBUG",
    )


@pytest.fixture
def sample_report() -> TestReport:
    report = TestReport()
    module = TestIdentifier(id="pkg/test_mod.py", display_name="test_mod.py", is_container=True, test_source="null")
    report[module] = TestData(status=TestStatus.SUCCESSFUL, duration=40)
    report[TestIdentifier(
        id="pkg/test_mod.py::test_ok",
        parent_id="pkg/test_mod.py",
        display_name="test_ok",
        is_test=True,
        tags={"smoke"},
        test_source="pkg.test_mod.test_ok (pkg/test_mod.py:3)",
    )] = TestData(
        status=TestStatus.SUCCESSFUL,
        duration=12,
        reports=[ReportEntry(1_700_000_000_000, "user", "alice"), ReportEntry(1_700_000_000_000, "run", "1")],
    )
    report[TestIdentifier(
        id="pkg/test_mod.py::test_skipped",
        parent_id="pkg/test_mod.py",
        display_name="test_skipped",
        is_test=True,
    )] = TestData(status=TestStatus.SKIPPED, skip_reason="not on this platform")
    report[TestIdentifier(
        id="pkg/test_mod.py::test_aborted",
        parent_id="pkg/test_mod.py",
        display_name="test_aborted",
        is_test=True,
    )] = TestData(status=TestStatus.ABORTED, duration=0)
    return report


@pytest.fixture
def failing_report(sample_report: TestReport) -> TestReport:
    sample_report[TestIdentifier(
        id="pkg/test_mod.py::test_broken",
        parent_id="pkg/test_mod.py",
        display_name="test_broken",
        is_test=True,
    )] = TestData(
        status=TestStatus.FAILED,
        duration=3,
        stack_trace="AssertionError: assert 1 == 2\n\tat pkg.test_mod.test_broken(pkg/test_mod.py:9)",
    )
    return sample_report
