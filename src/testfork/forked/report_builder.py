# src/testfork/forked/report_builder.py

"""
Translates test engine events into a growing TestReport.
"""

import threading
import time
from collections.abc import Callable, Mapping

import attrs
import structlog

from testfork.engine.protocols import (
    EngineEvent,
    EngineNode,
    EngineStatus,
    ExecutionResult,
    PlanFinished,
    ReportPublished,
    TestFinished,
    TestSkipped,
    TestStarted,
)
from testfork.exceptions import UnknownStatusError
from testfork.forked.stacktrace import declaring_type_predicate, format_exception_chain
from testfork.model import ReportEntry, TestData, TestIdentifier, TestReport, TestStatus
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("forked.report_builder")

# Source string of nodes the engine gave no source for. Kept as a literal
# placeholder because existing report consumers match on it.
MISSING_TEST_SOURCE = "null"

_STATUS_MAP: dict[EngineStatus, TestStatus] = {
    EngineStatus.SUCCESSFUL: TestStatus.SUCCESSFUL,
    EngineStatus.ABORTED: TestStatus.ABORTED,
    EngineStatus.FAILED: TestStatus.FAILED,
}


def current_millis() -> int:
    return time.time_ns() // 1_000_000


class ReportBuilder:
    """
    Listener that records engine events per node.

    The engine may deliver events from several worker threads, so every
    handler runs under a single lock.
    """

    def __init__(self, filter_stack_traces: bool = True, clock: Callable[[], int] = current_millis):
        self._filter_stack_traces = filter_stack_traces
        self._clock = clock
        self._lock = threading.Lock()
        # Both keyed by EngineNode.unique_id; insertion order is first-observed order.
        self._nodes: dict[str, EngineNode] = {}
        self._results: dict[str, TestData] = {}
        self._start_times: dict[str, int] = {}
        self._complete = False
        self._handlers: dict[type, Callable[[EngineEvent], None]] = {
            TestSkipped: lambda e: self.skip(e.node, e.reason),
            TestStarted: lambda e: self.start(e.node),
            TestFinished: lambda e: self.finish(e.node, e.result),
            ReportPublished: lambda e: self.report_entry(e.node, e.timestamp, e.entries),
            PlanFinished: lambda e: self.plan_finished(),
        }

    @property
    def complete(self) -> bool:
        """True once the engine signalled that the whole plan finished."""
        return self._complete

    def handle(self, event: EngineEvent) -> None:
        """Dispatches one engine event to its handler."""
        handler = self._handlers.get(type(event))
        if handler is None:
            raise TypeError(f"Unsupported engine event: {event!r}")
        handler(event)

    def _data_for(self, node: EngineNode) -> TestData:
        data = self._results.get(node.unique_id)
        if data is None:
            data = TestData()
            self._nodes[node.unique_id] = node
            self._results[node.unique_id] = data
        return data

    def skip(self, node: EngineNode, reason: str | None) -> None:
        with self._lock:
            data = self._data_for(node)
            data.status = TestStatus.SKIPPED
            data.skip_reason = reason or ""
        log.debug("Test skipped", node=node.unique_id, reason=reason)

    def start(self, node: EngineNode) -> None:
        with self._lock:
            self._start_times[node.unique_id] = self._clock()
        log.debug("Test started", node=node.unique_id)

    def finish(self, node: EngineNode, result: ExecutionResult) -> None:
        with self._lock:
            data = self._data_for(node)

            started = self._start_times.pop(node.unique_id, None)
            data.duration = -1 if started is None else self._clock() - started

            status = _STATUS_MAP.get(result.status)
            if status is None:
                raise UnknownStatusError(f"Unknown engine result status: {result.status!r}")
            data.status = status

            if result.error is not None:
                data.stack_trace = self._render_failure(node, result.error)
            elif result.trace:
                data.stack_trace = result.trace.rstrip()
        log.debug(
            "Test finished",
            node=node.unique_id,
            status=status.name,
            duration_ms=data.duration,
        )

    def report_entry(self, node: EngineNode, timestamp: int, entries: Mapping[str, str]) -> None:
        with self._lock:
            reports = self._data_for(node).reports
            for key, value in entries.items():
                reports.append(ReportEntry(timestamp, key, value))

    def plan_finished(self) -> None:
        with self._lock:
            self._complete = True
        log.debug("Test plan finished", nodes=len(self._results))

    def _render_failure(self, node: EngineNode, error: BaseException) -> str:
        # Same text format either way; filtering only trims the primary frames.
        declaring_type = node.source.declaring_type if node.source is not None else None
        belongs = None
        if self._filter_stack_traces and declaring_type is not None:
            belongs = declaring_type_predicate(declaring_type)
        return format_exception_chain(error, belongs)

    def test_report(self) -> TestReport:
        """Snapshot of everything recorded so far, in first-observed order."""
        report = TestReport()
        with self._lock:
            for unique_id, data in self._results.items():
                identifier = _to_identifier(self._nodes[unique_id])
                report[identifier] = attrs.evolve(data, reports=list(data.reports))
        return report


def _to_identifier(node: EngineNode) -> TestIdentifier:
    return TestIdentifier(
        id=node.unique_id,
        parent_id=node.parent_id,
        display_name=node.display_name,
        is_test=node.is_test,
        is_container=node.is_container,
        tags=node.tags,
        test_source=str(node.source) if node.source is not None else MISSING_TEST_SOURCE,
    )


# 🔼⚙️
