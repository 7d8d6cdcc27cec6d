# src/testfork/cli/report_cmds.py

from pathlib import Path

import click
import structlog
from rich.console import Console

from testfork.exceptions import ProtocolError
from testfork.model import TestReport
from testfork.protocol import MAGIC_MESSAGE_DELIMITER_REPEAT, MAGIC_MESSAGE_START, unframe
from testfork.report import print_report
from testfork.telemetry import StructLogger

log: StructLogger = structlog.get_logger("cli.report")

_FRAME_START = bytes((MAGIC_MESSAGE_START,)) * MAGIC_MESSAGE_DELIMITER_REPEAT


@click.group(name="report")
def report_cli():
    """Commands for inspecting saved test reports."""
    pass


@report_cli.command(name="show")
@click.argument(
    "report_path",
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True, path_type=Path),
)
@click.pass_context
def show_report(ctx: click.Context, report_path: Path):
    """Decode a saved report (raw or framed child output) and print it."""
    log.info("Executing 'report show' command", report_path=str(report_path))
    data = report_path.read_bytes()
    try:
        if _FRAME_START in data:
            data = unframe(data)
        report = TestReport.from_bytes(data)
    except ProtocolError as e:
        log.error("Could not decode report", path=str(report_path), error=str(e))
        click.echo(f"Error: could not decode report '{report_path}': {e}", err=True)
        ctx.exit(1)

    print_report(report, Console())

# 🔼⚙️
