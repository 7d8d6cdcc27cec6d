#
# src/testfork/runner/subprocess_runner.py
#
"""
Parent side of the protocol: spawns the forked test process with asyncio.subprocess.
"""
import asyncio
import sys
from pathlib import Path

import structlog

from testfork.exceptions import ProtocolError, TestforkError
from testfork.model import TestParameters, TestReport
from testfork.protocol import unframe
from testfork.runner.protocols import ForkedRunResult, TestRunner
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("runner.subprocess")
# Lines the child writes to stderr: its logs and whatever the tests print.
output_log: StructLogger = structlog.get_logger("test.output")

FORKED_MODULE = "testfork.forked"
_READ_CHUNK_SIZE = 64 * 1024


class ForkedTestRunner(TestRunner):
    """
    Implements the TestRunner protocol by running ``python -m testfork.forked``.
    """
    def __init__(self, python_executable: str | None = None):
        self.python_executable = python_executable or sys.executable

    @property
    def command(self) -> list[str]:
        return [self.python_executable, "-m", FORKED_MODULE]

    async def run_tests(
        self,
        parameters: TestParameters,
        working_dir: Path,
        timeout: float | None = None,
    ) -> ForkedRunResult:
        """
        Sends the parameters to a fresh child and collects its framed report.
        """
        runner_log = log.bind(
            command=" ".join(self.command),
            working_dir=str(working_dir),
        )
        runner_log.info("Starting forked test process", emoji_key="fork")

        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=working_dir,
            )
        except FileNotFoundError as e:
            runner_log.error("Python executable not found", executable=self.python_executable)
            raise TestforkError(
                f"Python executable not found: '{self.python_executable}'", details=e
            ) from e

        loop = asyncio.get_running_loop()
        last_activity = loop.time()
        stdout = bytearray()
        stderr_lines: list[str] = []

        async def pump_stdout() -> None:
            nonlocal last_activity
            while chunk := await process.stdout.read(_READ_CHUNK_SIZE):
                stdout.extend(chunk)
                last_activity = loop.time()

        def emit_line(raw_line: bytes) -> None:
            line = raw_line.decode("utf-8", errors="replace").rstrip("\r")
            stderr_lines.append(line)
            output_log.info(line, emoji_key="output")

        async def pump_stderr() -> None:
            # Chunked reads: a single line may be far longer than any stream buffer limit.
            nonlocal last_activity
            pending = bytearray()
            while chunk := await process.stderr.read(_READ_CHUNK_SIZE):
                last_activity = loop.time()
                pending.extend(chunk)
                *complete, rest = pending.split(b"\n")
                for raw_line in complete:
                    emit_line(bytes(raw_line))
                pending = bytearray(rest)
            if pending:
                emit_line(bytes(pending))

        readers = asyncio.gather(pump_stdout(), pump_stderr())
        await self._send_parameters(process, parameters)

        timed_out = False
        wait_for = timeout
        while True:
            try:
                await asyncio.wait_for(asyncio.shield(readers), wait_for)
                break
            except TimeoutError:
                idle = loop.time() - last_activity
                if idle < timeout:
                    wait_for = timeout - idle
                    continue
                runner_log.error("No output from forked test process, killing it", idle_seconds=round(idle, 1))
                timed_out = True
                process.kill()
                await readers
                break

        exit_code = await process.wait()
        runner_log.info("Forked test process finished", exit_code=exit_code, stdout_len=len(stdout))

        report = None if timed_out else self._decode_report(exit_code, bytes(stdout))
        return ForkedRunResult(
            exit_code=exit_code,
            report=report,
            stderr_lines=stderr_lines,
            timed_out=timed_out,
        )

    async def _send_parameters(self, process: asyncio.subprocess.Process, parameters: TestParameters) -> None:
        try:
            process.stdin.write(parameters.to_bytes())
            await process.stdin.drain()
            process.stdin.close()
            await process.stdin.wait_closed()
        except (BrokenPipeError, ConnectionResetError) as e:
            # The child died before reading its input; its exit code tells the rest.
            log.warning("Forked test process closed stdin early", error=str(e))

    def _decode_report(self, exit_code: int, output: bytes) -> TestReport | None:
        if exit_code != 0:
            log.error("Forked test process crashed", exit_code=exit_code, emoji_key="fail")
            return None
        try:
            return TestReport.from_bytes(unframe(output))
        except ProtocolError as e:
            log.error("Could not decode report from forked test process", error=str(e))
            return None

# 🔼⚙️
