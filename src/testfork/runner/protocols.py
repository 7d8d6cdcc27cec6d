#
# src/testfork/runner/protocols.py
#
"""
Defines protocols and data structures for running tests in a forked process.
"""
from pathlib import Path
from typing import Protocol, runtime_checkable

from attrs import define, field

from testfork.model import TestParameters, TestReport


@define(frozen=True, slots=True)
class ForkedRunResult:
    """
    Structured result of one forked test run.

    ``report`` is None when the child exited without a complete report,
    which is a crash rather than a failed test run.
    """
    exit_code: int
    report: TestReport | None
    stderr_lines: tuple[str, ...] = field(factory=tuple, converter=tuple)
    timed_out: bool = False

    @property
    def crashed(self) -> bool:
        return self.report is None


@runtime_checkable
class TestRunner(Protocol):
    """
    Protocol for a runner that executes a test plan outside the current process.
    """
    async def run_tests(
        self,
        parameters: TestParameters,
        working_dir: Path,
        timeout: float | None = None,
    ) -> ForkedRunResult:
        """
        Runs the test plan described by the parameters.

        Args:
            parameters: Selection, filtering and logging options of the run.
            working_dir: The directory from which to run the tests.
            timeout: Seconds without any child output after which the run
                is abandoned. None waits indefinitely.

        Returns:
            A ForkedRunResult with the decoded report, if any.
        """
        ...

# 🔼⚙️
