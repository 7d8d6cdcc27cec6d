# src/testfork/model/report.py

"""
The ordered result of a whole test run.
"""

import io
from collections import Counter

from attrs import define

from testfork.exceptions import ProtocolVersionError, WireFormatError
from testfork.protocol import PROTOCOL_VERSION, WireReader, WireWriter

from .data import TestData, TestStatus
from .identifier import TestIdentifier

EXIT_CODE_SUCCESS = 0
EXIT_CODE_FAILURE = 1


@define(frozen=True, slots=True)
class ReportSummary:
    """Per-status counts of containers and tests in a report."""

    containers: Counter
    tests: Counter

    @property
    def containers_found(self) -> int:
        return sum(self.containers.values())

    @property
    def tests_found(self) -> int:
        return sum(self.tests.values())


class TestReport(dict[TestIdentifier, TestData]):
    """
    Identifiers that were observed during the run, in the order they were
    first observed, mapped to their results.
    """

    __test__ = False

    @property
    def failed(self) -> bool:
        """True when at least one entry failed. Aborted and skipped entries never fail a run."""
        return any(data.status is TestStatus.FAILED for data in self.values())

    @property
    def exit_code(self) -> int:
        return EXIT_CODE_FAILURE if self.failed else EXIT_CODE_SUCCESS

    def summary(self) -> ReportSummary:
        containers: Counter = Counter()
        tests: Counter = Counter()
        for identifier, data in self.items():
            if identifier.is_container:
                containers[data.status] += 1
            if identifier.is_test:
                tests[data.status] += 1
        return ReportSummary(containers=containers, tests=tests)

    def write_to(self, writer: WireWriter) -> None:
        writer.write_byte(PROTOCOL_VERSION)
        writer.write_int(len(self))
        for identifier, data in self.items():
            identifier.write_to(writer)
            data.write_to(writer)

    def read_from(self, reader: WireReader) -> None:
        """Replaces the contents of this report with the decoded entries."""
        self.clear()
        version = reader.read_byte()
        if version != PROTOCOL_VERSION:
            raise ProtocolVersionError(PROTOCOL_VERSION, version)
        for _ in range(reader.read_count()):
            identifier = TestIdentifier.read_from(reader)
            self[identifier] = TestData.read_from(reader)

    def to_bytes(self) -> bytes:
        buffer = io.BytesIO()
        self.write_to(WireWriter(buffer))
        return buffer.getvalue()

    @classmethod
    def from_bytes(cls, payload: bytes) -> "TestReport":
        reader = WireReader(io.BytesIO(payload))
        report = cls()
        report.read_from(reader)
        if not reader.at_end():
            raise WireFormatError("Trailing bytes after test report")
        return report


# 🔼⚙️
