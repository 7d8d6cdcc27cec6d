# src/testfork/engine/pytest_engine.py

"""
Implementation of the TestEngine protocol on top of an in-process pytest run.
"""

import importlib.util
import re
import time
from collections.abc import Sequence

import pytest
import structlog

from testfork.engine.protocols import (
    DiscoveryFilter,
    DiscoveryRequest,
    DiscoverySelector,
    EngineNode,
    EngineStatus,
    EventListener,
    ExecutionResult,
    FilterKind,
    FilterMode,
    PlanFinished,
    ReportPublished,
    SelectorKind,
    TestFinished,
    TestSkipped,
    TestSource,
    TestStarted,
)
from testfork.exceptions import EngineError
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("engine.pytest")

# Markers that steer pytest itself rather than tag tests.
BUILTIN_MARKERS = frozenset({"parametrize", "usefixtures", "filterwarnings", "skip", "skipif", "xfail"})

_FATAL_EXIT_CODES = (pytest.ExitCode.INTERNAL_ERROR, pytest.ExitCode.USAGE_ERROR)
_INCOMPLETE_EXIT_CODES = (pytest.ExitCode.INTERRUPTED, pytest.ExitCode.INTERNAL_ERROR)


# --- Selector resolution ---
def _module_path(dotted: str) -> tuple[str | None, bool]:
    """Returns the file (or package directory) of a module and whether it is a package."""
    try:
        spec = importlib.util.find_spec(dotted)
    except (ImportError, ValueError):
        return None, False
    if spec is None:
        return None, False
    if spec.submodule_search_locations:
        return list(spec.submodule_search_locations)[0], True
    return spec.origin, False


def _node_path(dotted: str, trailing: Sequence[str] = ()) -> str | None:
    """Finds the longest importable module prefix and appends the rest as ``::`` parts."""
    parts = dotted.split(".")
    for split in range(len(parts), 0, -1):
        path, is_package = _module_path(".".join(parts[:split]))
        if path is None:
            continue
        rest = [*parts[split:], *trailing]
        if not rest:
            return path
        if is_package:
            path = importlib.util.find_spec(".".join(parts[:split])).origin or path
        return "::".join([path, *rest])
    return None


def resolve_selector(selector: DiscoverySelector) -> str:
    """
    Turns a selector into a pytest argument.

    Values that cannot be resolved are passed through verbatim so pytest
    reports them the way it reports any bad argument.
    """
    value = selector.value
    if selector.kind is SelectorKind.PACKAGE:
        path, _ = _module_path(value)
        return path or value
    if selector.kind is SelectorKind.CLASS:
        return _node_path(value) or value
    if selector.kind is SelectorKind.METHOD:
        owner, sep, method = value.partition("#")
        if sep:
            return _node_path(owner, (method,)) or value
        return _node_path(value) or value
    return value


# --- Node description ---
def _is_reported(node: pytest.Item | pytest.Collector) -> bool:
    """The session and the root directory (whose node id is empty) are not part of the report."""
    return not isinstance(node, pytest.Session) and bool(node.nodeid)


def _source_of(node: pytest.Item | pytest.Collector) -> TestSource | None:
    path = str(node.path) if getattr(node, "path", None) is not None else None
    if isinstance(node, pytest.Function):
        cls = node.cls
        qualname = f"{cls.__qualname__}.{node.originalname}" if cls is not None else node.originalname
        lineno = node.location[1]
        return TestSource(
            module=node.module.__name__,
            qualname=qualname,
            path=path,
            lineno=lineno + 1 if lineno is not None else None,
        )
    if isinstance(node, pytest.Class):
        return TestSource(module=node.obj.__module__, qualname=node.obj.__qualname__, path=path)
    if path is not None:
        return TestSource(path=path)
    return None


def _skip_reason(longrepr: object) -> str | None:
    if isinstance(longrepr, tuple) and len(longrepr) == 3:
        reason = str(longrepr[2])
        return reason.removeprefix("Skipped: ")
    return str(longrepr) if longrepr else None


class ReportingPlugin:
    """
    pytest plugin that applies testfork filters and turns pytest hooks into
    engine events.
    """

    def __init__(self, listener: EventListener, filters: Sequence[DiscoveryFilter] = ()):
        self._listener = listener
        self._filters = tuple(filters)
        self._nodes: dict[str, EngineNode] = {}
        # Containers whose children are running, outermost first.
        self._open_containers: list[str] = []
        self._phase_reports: dict[str, list[pytest.TestReport]] = {}
        self._phase_errors: dict[str, dict[str, BaseException]] = {}
        self._skipped_at_setup: set[str] = set()

    def _node(self, node: pytest.Item | pytest.Collector) -> EngineNode:
        cached = self._nodes.get(node.nodeid)
        if cached is not None:
            return cached
        parent = node.parent
        is_test = isinstance(node, pytest.Item)
        engine_node = EngineNode(
            unique_id=node.nodeid,
            parent_id=parent.nodeid if parent is not None and _is_reported(parent) else None,
            display_name=node.name,
            is_test=is_test,
            is_container=not is_test,
            tags=frozenset(mark.name for mark in node.iter_markers()) - BUILTIN_MARKERS,
            source=_source_of(node),
        )
        self._nodes[node.nodeid] = engine_node
        return engine_node

    # --- Filtering ---
    def _matches(self, flt: DiscoveryFilter, node: EngineNode) -> bool | None:
        """Whether the node matches any pattern; None when the node lacks the information."""
        source = node.source
        if flt.kind is FilterKind.TAG:
            return any(pattern in node.tags for pattern in flt.patterns)
        if source is None or source.module is None:
            return None
        if flt.kind is FilterKind.CLASS_NAME:
            return any(re.fullmatch(pattern, source.declaring_type) for pattern in flt.patterns)
        module = source.module
        return any(module == package or module.startswith(package + ".") for package in flt.patterns)

    def accepts(self, node: EngineNode) -> bool:
        """True when the node passes every active filter."""
        for flt in self._filters:
            matched = self._matches(flt, node)
            if matched is None:
                continue
            if flt.mode is FilterMode.INCLUDE and not matched:
                return False
            if flt.mode is FilterMode.EXCLUDE and matched:
                return False
        return True

    def pytest_collection_modifyitems(self, session: pytest.Session, config: pytest.Config, items: list[pytest.Item]) -> None:
        if not self._filters:
            return
        selected: list[pytest.Item] = []
        deselected: list[pytest.Item] = []
        for item in items:
            (selected if self.accepts(self._node(item)) else deselected).append(item)
        if deselected:
            log.debug("Deselected tests by filters", count=len(deselected))
            config.hook.pytest_deselected(items=deselected)
            items[:] = selected

    # --- Collection ---
    @pytest.hookimpl(wrapper=True)
    def pytest_make_collect_report(self, collector: pytest.Collector):
        report = yield
        if not _is_reported(collector):
            return report
        if report.failed:
            node = self._node(collector)
            self._listener(TestStarted(node))
            self._listener(
                TestFinished(node, ExecutionResult(EngineStatus.FAILED, trace=str(report.longrepr)))
            )
        elif report.skipped:
            self._listener(TestSkipped(self._node(collector), _skip_reason(report.longrepr)))
        return report

    # --- Execution ---
    def _open_parents(self, item: pytest.Item) -> None:
        for parent in item.listchain()[:-1]:
            if not _is_reported(parent) or parent.nodeid in self._open_containers:
                continue
            self._open_containers.append(parent.nodeid)
            self._listener(TestStarted(self._node(parent)))

    def _close_containers(self, next_item: pytest.Item | None) -> None:
        keep = {node.nodeid for node in next_item.listchain()} if next_item is not None else set()
        while self._open_containers and self._open_containers[-1] not in keep:
            nodeid = self._open_containers.pop()
            self._listener(TestFinished(self._nodes[nodeid], ExecutionResult(EngineStatus.SUCCESSFUL)))

    @pytest.hookimpl(wrapper=True)
    def pytest_runtest_protocol(self, item: pytest.Item, nextitem: pytest.Item | None):
        self._open_parents(item)
        self._node(item)
        result = yield
        self._finish_item(item)
        self._close_containers(nextitem)
        return result

    @pytest.hookimpl(wrapper=True)
    def pytest_runtest_makereport(self, item: pytest.Item, call: pytest.CallInfo):
        report = yield
        if call.excinfo is not None and not report.passed:
            self._phase_errors.setdefault(item.nodeid, {})[call.when] = call.excinfo.value
        return report

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        node = self._nodes.get(report.nodeid)
        if node is None:
            return
        self._phase_reports.setdefault(report.nodeid, []).append(report)
        if report.when != "setup":
            return
        if report.skipped:
            self._skipped_at_setup.add(report.nodeid)
            self._listener(TestSkipped(node, _skip_reason(report.longrepr)))
        else:
            self._listener(TestStarted(node))

    def _finish_item(self, item: pytest.Item) -> None:
        reports = self._phase_reports.pop(item.nodeid, [])
        errors = self._phase_errors.pop(item.nodeid, {})
        if item.nodeid in self._skipped_at_setup:
            self._skipped_at_setup.discard(item.nodeid)
            return
        if not reports:
            return
        node = self._nodes[item.nodeid]

        properties = reports[-1].user_properties
        if properties:
            timestamp = time.time_ns() // 1_000_000
            for name, value in properties:
                self._listener(ReportPublished(node, timestamp, {str(name): str(value)}))

        self._listener(TestFinished(node, _result_of(reports, errors)))

    def pytest_sessionfinish(self, session: pytest.Session, exitstatus: int) -> None:
        self._close_containers(None)
        if exitstatus in _INCOMPLETE_EXIT_CODES:
            log.warning("pytest session ended abnormally", exit_status=int(exitstatus))
            return
        self._listener(PlanFinished())


def _result_of(reports: Sequence[pytest.TestReport], errors: dict[str, BaseException]) -> ExecutionResult:
    failed = next((report for report in reports if report.failed), None)
    if failed is not None:
        error = errors.get(failed.when)
        trace = "" if error is not None else str(failed.longrepr or "")
        return ExecutionResult(EngineStatus.FAILED, error=error, trace=trace)
    # Skips raised from the test body and expected failures.
    skipped = next((report for report in reports if report.skipped), None)
    if skipped is not None:
        return ExecutionResult(EngineStatus.ABORTED, error=errors.get(skipped.when))
    return ExecutionResult(EngineStatus.SUCCESSFUL)


class PytestEngine:
    """Implements TestEngine by running pytest in the current process."""

    def __init__(self, extra_args: Sequence[str] = ()):
        self._extra_args = list(extra_args)
        self._log = log.bind(engine_id=id(self))

    def build_args(self, request: DiscoveryRequest) -> list[str]:
        args = ["--continue-on-collection-errors"]
        for key, value in request.configuration.items():
            args.extend(["-o", f"{key}={value}"])
        args.extend(self._extra_args)
        args.extend(resolve_selector(selector) for selector in request.selectors)
        return args

    def execute(self, request: DiscoveryRequest, listener: EventListener) -> None:
        args = self.build_args(request)
        plugin = ReportingPlugin(listener, request.filters)
        self._log.info("Running pytest", args=args)

        exit_code = pytest.main(args, plugins=[plugin])

        self._log.info("pytest finished", exit_code=int(exit_code))
        if exit_code in _FATAL_EXIT_CODES:
            raise EngineError(f"pytest could not run the test plan (exit code {int(exit_code)})")


# 🔼⚙️
