"""
Debug trace tool for visual QA of statement parsing.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence
import logging

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..core.anchors import find_anchor, is_account_anchor
from ..core.cursor import LineCursor
from ..core.detectors import StatementLayout
from ..core.details import classify_detail
from ..core.lines import normalize_lines
from ..core.normalize import normalize_date
from ..core.runner import is_operation_line, is_value_line

logger = logging.getLogger(__name__)

LABEL_STYLES = {
    "account anchor": "bold magenta",
    "operations header": "bold magenta",
    "booking date": "cyan",
    "operation": "bold green",
    "value line": "green",
    "footer": "red",
    "ignored": "dim",
}


@dataclass
class TraceRow:
    index: int
    line: str
    label: str


def trace_lines(lines: Sequence[str], layout: StatementLayout) -> List[TraceRow]:
    """
    Label every normalized line with the role the parser gives it.

    Args:
        lines: Raw statement lines
        layout: Statement layout to trace against

    Returns:
        One TraceRow per normalized line
    """
    normalized = normalize_lines(lines).lines
    rows = []
    header = find_anchor(normalized, layout.operations_header, layout.header_fuzzy_threshold)
    table_start: Optional[int] = header.index + 1 if header else None
    anchor_seen = False
    in_operation = False
    finished = False

    cursor = LineCursor(normalized)
    while not cursor.exhausted:
        line, index = cursor.current, cursor.position
        step = cursor.advance()

        if table_start is None or index < table_start:
            if header and index == header.index:
                label = "operations header"
            elif not anchor_seen and is_account_anchor(line, layout.anchor_min_length):
                label = "account anchor"
                anchor_seen = True
            else:
                label = "header"
        elif finished:
            label = "ignored"
        elif layout.is_footer(line):
            label = "footer"
            finished = True
        elif not in_operation and layout.is_header_continuation(line):
            label = "header"
        elif layout.is_continuation(line):
            label = "continuation"
        elif normalize_date(line):
            label = "booking date"
        elif is_operation_line(line):
            label = "operation"
            in_operation = True
        elif in_operation and is_value_line(line):
            label = "value line"
            in_operation = False
        elif in_operation:
            detail, step = classify_detail(cursor, layout)
            label = f"detail: {detail.kind.value}"
        else:
            label = "ignored"

        rows.append(TraceRow(index, line, label))
        # A labelled value on the next line belongs to the same detail field
        for skipped in range(cursor.position + 1, step.position):
            rows.append(TraceRow(skipped, normalized[skipped], label))
        cursor = step

    return rows


def render_trace(rows: Sequence[TraceRow], console: Optional[Console] = None) -> None:
    console = console or Console()
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right")
    table.add_column("Role")
    table.add_column("Line", overflow="fold")

    for row in rows:
        style = LABEL_STYLES.get(row.label.split(":")[0], "")
        table.add_row(str(row.index), row.label, escape(row.line), style=style)

    console.print(table)
