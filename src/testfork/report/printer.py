# src/testfork/report/printer.py

"""
Human readable rendering of a TestReport with rich.
"""

from datetime import datetime

from rich.console import Console, Group
from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from testfork.model import TestData, TestIdentifier, TestReport, TestStatus

STATUS_ICONS: dict[TestStatus, tuple[str, str]] = {
    TestStatus.SUCCESSFUL: ("✔", "green"),
    TestStatus.ABORTED: ("⊘", "yellow"),
    TestStatus.SKIPPED: ("↷", "yellow"),
    TestStatus.FAILED: ("✘", "red"),
    TestStatus.NOT_RUN: ("?", "magenta"),
}


def format_duration(millis: int) -> str:
    if millis < 1000:
        return f"{millis} ms"
    seconds = millis / 1000
    if seconds < 60:
        return f"{seconds:.2f} s"
    minutes, seconds = divmod(int(seconds), 60)
    return f"{minutes} min {seconds} s"


def _label(identifier: TestIdentifier, data: TestData) -> Group | Text:
    style = "bold" if identifier.is_test else "italic" if identifier.is_container else ""
    label = Text(identifier.display_name.strip() or identifier.id, style=style)

    icon, color = STATUS_ICONS[data.status]
    label.append(f" {icon}", style=color)
    if data.skip_reason:
        label.append(f" {data.skip_reason}", style="white")
    if data.duration >= 0:
        label.append(f" {format_duration(data.duration)}", style="italic cyan")

    extra: list[Text] = []
    if data.stack_trace:
        extra.append(Text(data.stack_trace.expandtabs(4), style="red"))

    last_timestamp = None
    for entry in data.reports:
        if entry.timestamp != last_timestamp:
            last_timestamp = entry.timestamp
            moment = datetime.fromtimestamp(entry.timestamp / 1000)
            extra.append(Text(f"{moment.isoformat(sep=' ', timespec='milliseconds')}:"))
        line = Text(" ")
        line.append(entry.key, style="white")
        line.append(' = "')
        line.append(entry.value, style="blue")
        line.append('"')
        extra.append(line)

    return Group(label, *extra) if extra else label


def render_report(report: TestReport, title: str = "Test results") -> Tree:
    """
    Arranges report entries into a tree by their parent ids.

    Entries whose parent is not part of the report become top level nodes.
    Siblings keep the order in which they were first observed.
    """
    root = Tree(Text(title, style="bold underline"), guide_style="dim")
    ids = {identifier.id for identifier in report}
    branches: dict[str, Tree] = {}
    pending = list(report.items())

    # Parents are normally observed before their children, so one pass
    # usually suffices; the loop handles the rest.
    while pending:
        remaining = []
        for identifier, data in pending:
            parent = identifier.parent_id if identifier.parent_id in ids else None
            if parent is None:
                branches[identifier.id] = root.add(_label(identifier, data))
            elif parent in branches:
                branches[identifier.id] = branches[parent].add(_label(identifier, data))
            else:
                remaining.append((identifier, data))
        if len(remaining) == len(pending):
            # Parent cycle; attach what is left at the top level.
            for identifier, data in remaining:
                branches[identifier.id] = root.add(_label(identifier, data))
            break
        pending = remaining
    return root


def render_summary(report: TestReport) -> Table:
    """Counts of containers and tests per status."""
    summary = report.summary()
    table = Table(title="Summary", show_header=True, header_style="bold")
    table.add_column("", style="bold")
    table.add_column("Found", justify="right")
    for status in TestStatus:
        icon, color = STATUS_ICONS[status]
        table.add_column(f"{icon} {status.name.replace('_', ' ').title()}", justify="right", style=color)

    table.add_row(
        "Containers",
        str(summary.containers_found),
        *(str(summary.containers[status]) for status in TestStatus),
    )
    table.add_row(
        "Tests",
        str(summary.tests_found),
        *(str(summary.tests[status]) for status in TestStatus),
    )
    return table


def print_report(report: TestReport, console: Console | None = None) -> None:
    console = console or Console()
    console.print(render_report(report))
    console.print(render_summary(report))


# 🔼⚙️
