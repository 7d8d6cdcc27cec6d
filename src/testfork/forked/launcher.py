# src/testfork/forked/launcher.py

"""
Entry point of the forked test process.

One process handles exactly one exchange: parameters arrive on stdin, the
framed report leaves on the original stdout. Everything else, including
output of the tests themselves, goes to stderr.
"""

import os
import sys
from typing import BinaryIO

import structlog

from testfork.engine import TestEngineAdapter, engine_name, get_test_engine
from testfork.forked.report_builder import ReportBuilder
from testfork.model import TestParameters, TestReport
from testfork.protocol import frame
from testfork.telemetry import StructLogger, setup_logging

log: StructLogger = structlog.get_logger("forked.launcher")

EXIT_CODE_REPORTED = 0
EXIT_CODE_CRASHED = 1


class ForkedChannel:
    """The child's end of the protocol: one parameters blob in, one framed report out."""

    def __init__(self, stdin: BinaryIO, stdout: BinaryIO):
        self._stdin = stdin
        self._stdout = stdout

    def read_parameters(self) -> TestParameters:
        """Reads stdin to the end and decodes it as a single TestParameters value."""
        payload = self._stdin.read()
        log.debug("Received parameters", size=len(payload))
        return TestParameters.from_bytes(payload)

    def write_report(self, report: TestReport) -> None:
        self.write_payload(report.to_bytes())

    def write_payload(self, payload: bytes) -> None:
        """Writes an already encoded report."""
        self._stdout.write(frame(payload))
        self._stdout.flush()


def redirect_stdout() -> BinaryIO:
    """
    Points file descriptor 1 and ``sys.stdout`` at stderr.

    Returns a binary stream on a duplicate of the original stdout, which is
    then reserved for the report.
    """
    sys.stdout.flush()
    protocol_fd = os.dup(1)
    os.dup2(2, 1)
    sys.stdout = sys.stderr
    return os.fdopen(protocol_fd, "wb")


def run_forked(channel: ForkedChannel) -> TestReport:
    """Reads parameters, runs the plan and returns the resulting report."""
    parameters = channel.read_parameters()
    setup_logging(level=parameters.numeric_log_level, colors=False)

    builder = ReportBuilder(filter_stack_traces=parameters.filter_stack_traces)
    engine = get_test_engine(engine_name(parameters))
    TestEngineAdapter(engine, builder.handle).run(parameters)

    if not builder.complete:
        log.warning("Test plan did not finish; the report is partial")
    return builder.test_report()


def launch(channel: ForkedChannel | None = None) -> int:
    """
    Runs one protocol exchange and returns the process exit code.

    Returns 0 once the report is written (tests may still have failed) and
    1 when anything went wrong before that, in which case no payload is
    emitted.
    """
    if channel is None:
        channel = ForkedChannel(sys.stdin.buffer, redirect_stdout())

    try:
        report = run_forked(channel)
        payload = report.to_bytes()
    except Exception:
        log.exception("Forked test run failed before a report could be written")
        return EXIT_CODE_CRASHED

    channel.write_payload(payload)
    log.info("Report written", nodes=len(report), failed=report.failed, emoji_key="report")
    return EXIT_CODE_REPORTED


# 🔼⚙️
