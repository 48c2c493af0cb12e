"""Status aggregation and output formatting for console and JSON display."""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import reduce
from typing import TYPE_CHECKING, assert_never

from rich.console import Console
from rich.text import Text

if TYPE_CHECKING:
    from .core import (
        ActionKind,
        Divergence,
        FetchOutcome,
        OperationResult,
        RepositoryReport,
    )

STATUS_HEADER = [
    "directory",
    "#A",
    "#M",
    "#D",
    "repository",
    "branch",
    "fetch",
    "↓",
    "↑",
    "↓default",
    "↑default",
    "action",
]

# Columns holding counts, right-aligned
NUMERIC_COLUMNS = {1, 2, 3, 7, 8, 9, 10}
FETCH_COLUMN = 6
ACTION_COLUMN = 11

UNKNOWN_MARK = "?"

LEGEND = (
    "Number of local files: #A = untracked, #M = modified, #D = deleted; "
    "Number of commits: ↓ = to pull, ↑ = to push (against upstream, then default branch); "
    f"{UNKNOWN_MARK} = unknown"
)


def common_prefix(values: Iterable[str]) -> str:
    """Longest leading substring shared by all non-empty ``values``."""
    candidates = [value for value in values if value]
    if not candidates:
        return ""
    return reduce(_common_prefix_pair, candidates)


def _common_prefix_pair(a: str, b: str) -> str:
    index = 0
    for left, right in zip(a, b):
        if left != right:
            break
        index += 1
    return a[:index]


def format_divergence(divergence: Divergence | None) -> tuple[str, str]:
    """Render (behind, ahead), with unknown shown as a marker rather than zero."""
    if divergence is None:
        return UNKNOWN_MARK, UNKNOWN_MARK
    return str(divergence.behind), str(divergence.ahead)


def format_fetch(outcome: FetchOutcome) -> str:
    from .core import FetchOutcome

    match outcome:
        case FetchOutcome.SUCCESS:
            return "✓"
        case FetchOutcome.FAILED:
            return "✗"
        case FetchOutcome.SKIPPED:
            return "-"
        case _:
            assert_never(outcome)


def action_style(kind: ActionKind) -> str:
    """Console style for an action label."""
    from .core import ActionKind

    match kind:
        case ActionKind.COMMIT:
            return "blue"
        case ActionKind.RESOLVE:
            return "bold red"
        case ActionKind.PULL:
            return "cyan"
        case ActionKind.PUSH:
            return "yellow"
        case ActionKind.MERGE:
            return "magenta"
        case ActionKind.PR:
            return "green"
        case ActionKind.OK:
            return "green"
        case _:
            assert_never(kind)


@dataclass
class StatusRow:
    """One repository's table cells plus its explanation line."""

    cells: list[str]
    action: ActionKind
    explanation: str


@dataclass
class StatusTable:
    """Display-ready status of the whole fleet."""

    rows: list[StatusRow]
    prefix: str
    reports: list[RepositoryReport] = field(default_factory=list)
    header: list[str] = field(default_factory=lambda: list(STATUS_HEADER))

    def to_dict(self) -> dict:
        return {
            "prefix": self.prefix,
            "repositories": [report.to_dict() for report in self.reports],
        }


def build_status_table(reports: list[RepositoryReport]) -> StatusTable:
    """Assemble table rows, trimming the remote URL prefix all repositories share."""
    prefix = common_prefix(report.status.remote_url for report in reports)

    rows = []
    for report in reports:
        status = report.status
        upstream_behind, upstream_ahead = format_divergence(status.upstream)
        default_behind, default_ahead = format_divergence(status.default)
        cells = [
            status.name,
            str(status.tally.untracked),
            str(status.tally.modified),
            str(status.tally.deleted),
            status.remote_url.removeprefix(prefix),
            status.branch,
            format_fetch(status.fetch),
            upstream_behind,
            upstream_ahead,
            default_behind,
            default_ahead,
            report.action.kind.value,
        ]
        rows.append(StatusRow(cells, report.action.kind, report.action.explanation))

    return StatusTable(rows=rows, prefix=prefix, reports=list(reports))


def summarize_actions(rows: list[StatusRow]) -> Counter:
    return Counter(row.action for row in rows)


class OutputFormatter:
    """Format output for console or JSON."""

    def __init__(self, console: Console, use_json: bool = False):
        self.console = console
        self.use_json = use_json

    def print_status_table(self, table: StatusTable):
        """Print status table."""
        if self.use_json:
            self._print_json(table.to_dict())
        else:
            self._print_status_grid(table)

    def _cell(self, value: str, column: int, row: StatusRow) -> Text:
        if column == ACTION_COLUMN:
            return Text(value, style=action_style(row.action))
        if value == UNKNOWN_MARK and column in NUMERIC_COLUMNS:
            return Text(value, style="dim")
        if column == FETCH_COLUMN:
            return Text(value, style={"✓": "green", "✗": "red"}.get(value, "dim"))
        if column == 0:
            return Text(value, style="cyan")
        return Text(value)

    def _print_status_grid(self, table: StatusTable):
        """Print aligned rows, each followed by a full-width explanation."""
        widths = [Text(title).cell_len for title in table.header]
        for row in table.rows:
            for column, value in enumerate(row.cells):
                widths[column] = max(widths[column], Text(value).cell_len)

        def align(text: Text, column: int) -> Text:
            text.align("right" if column in NUMERIC_COLUMNS else "left", widths[column])
            return text

        header = Text(" ").join(
            align(Text(title, style="bold underline"), column)
            for column, title in enumerate(table.header)
        )
        self.console.print(header, soft_wrap=True)

        for row in table.rows:
            line = Text(" ").join(
                align(self._cell(value, column, row), column)
                for column, value in enumerate(row.cells)
            )
            self.console.print(line, soft_wrap=True)
            for explanation in row.explanation.splitlines():
                self.console.print(Text(f"  {explanation}", style="dim"), soft_wrap=True)

        self.console.print()
        self.console.print(Text(LEGEND), soft_wrap=True)
        self.console.print(Text(f"Repository prefix: {table.prefix}"), soft_wrap=True)
        self._print_summary(table.rows)

    def _print_summary(self, rows: list[StatusRow]):
        """Print action counts."""
        from .core import ActionKind

        counts = summarize_actions(rows)
        parts = [f"[bold]Total:[/] {len(rows)}"]
        for kind in ActionKind:
            if counts[kind] > 0:
                parts.append(f"[{action_style(kind)}]{kind.value}:[/] {counts[kind]}")
        self.console.print(" | ".join(parts))

    def print_operation_results(self, results: list[OperationResult]):
        """Print each repository's output under its name."""
        if not results:
            self.console.print("[dim]No repositories[/]")
            return

        for result in results:
            self.console.print(Text(result.name, style="underline cyan"))
            if result.output:
                self.console.print(Text(result.output), soft_wrap=True)

    def _print_json(self, data: dict):
        self.console.print(
            json.dumps(data, indent=2, ensure_ascii=False),
            markup=False,
            highlight=False,
            soft_wrap=True,
        )
