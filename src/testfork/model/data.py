# src/testfork/model/data.py

"""
Execution results recorded for each test identifier.
"""

from enum import Enum

from attrs import define, field, mutable

from testfork.exceptions import WireFormatError
from testfork.protocol import WireReader, WireWriter


class TestStatus(Enum):
    """Outcome of a test or container. Values are the wire codes."""

    __test__ = False

    SUCCESSFUL = 0  # Containers may succeed even if their tests did not.
    ABORTED = 1  # Started, then stopped without failing (e.g. a skip inside the test body).
    SKIPPED = 2  # Never started, see TestData.skip_reason.
    FAILED = 3  # See TestData.stack_trace.
    NOT_RUN = 4  # No terminal event arrived; indicates a problem somewhere.


@define(frozen=True, slots=True)
class ReportEntry:
    """A key/value pair published by a test while it ran."""

    timestamp: int  # epoch milliseconds
    key: str
    value: str


@mutable(slots=True)
class TestData:
    """
    Results of a run of a single TestIdentifier.

    Created lazily on the first event for the identifier and mutated as
    further events arrive.
    """

    __test__ = False

    status: TestStatus = field(default=TestStatus.NOT_RUN)
    # In milliseconds, -1 when not measured.
    duration: int = field(default=-1)
    # Only meaningful when status is SKIPPED.
    skip_reason: str = field(default="")
    # Only meaningful when status is FAILED, may span multiple lines.
    stack_trace: str = field(default="")
    # Append-only, in publication order.
    reports: list[ReportEntry] = field(factory=list)

    def __str__(self) -> str:
        parts = [f"{{{self.status.name}"]
        if self.duration != -1:
            parts.append(f" in {self.duration} ms")
        if self.skip_reason:
            label = " reason: " if self.status is TestStatus.SKIPPED else " skip reason: "
            parts.append(label + self.skip_reason)
        if self.stack_trace:
            if "\n" in self.stack_trace:
                parts.append(f" exception:\n{self.stack_trace}\n")
            else:
                parts.append(f" exception:{self.stack_trace} ")
        if self.reports:
            rendered = ", ".join(f"{r.key}={r.value}" for r in self.reports)
            parts.append(f"reports=[{rendered}]")
        parts.append("}")
        return "".join(parts)

    def write_to(self, writer: WireWriter) -> None:
        writer.write_byte(self.status.value)
        writer.write_long(self.duration)
        writer.write_utf(self.skip_reason)
        writer.write_utf(self.stack_trace)
        writer.write_int(len(self.reports))
        for report in self.reports:
            writer.write_long(report.timestamp)
            writer.write_utf(report.key)
            writer.write_utf(report.value)

    @classmethod
    def read_from(cls, reader: WireReader) -> "TestData":
        code = reader.read_byte()
        try:
            status = TestStatus(code)
        except ValueError as e:
            raise WireFormatError(f"Unknown test status code {code}", details=e) from e
        data = cls(
            status=status,
            duration=reader.read_long(),
            skip_reason=reader.read_utf(),
            stack_trace=reader.read_utf(),
        )
        for _ in range(reader.read_count()):
            timestamp = reader.read_long()
            key = reader.read_utf()
            data.reports.append(ReportEntry(timestamp, key, reader.read_utf()))
        return data


# 🔼⚙️
