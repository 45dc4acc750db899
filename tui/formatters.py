from __future__ import annotations

import io
import json
from typing import Any, Dict, List, Protocol, Tuple

from rich import box
from rich.console import Console
from rich.table import Table

from core.errors import InputValidationError

REPORT_WIDTH = 80


class SizingReport(Protocol):
    """What a sizing result exposes to formatters."""

    title: str
    label_width: int

    def to_dict(self) -> Dict[str, Any]: ...

    def report_sections(self) -> List[List[Tuple[str, str]]]: ...

    def config_snippet(self) -> str: ...


class Formatter:
    name = "base"

    def render(self, result: SizingReport) -> str:
        raise NotImplementedError


class TableFormatter(Formatter):
    """Two-column text report followed by the suggested server config."""

    name = "table"

    def __init__(self, width: int = REPORT_WIDTH):
        self.width = width

    def build_table(self, result: SizingReport) -> Table:
        table = Table(
            title=result.title,
            box=box.ASCII,
            show_header=False,
            title_justify="left",
            pad_edge=False,
        )
        table.add_column("setting", min_width=result.label_width, no_wrap=True)
        table.add_column("value", overflow="fold")
        sections = result.report_sections()
        for index, rows in enumerate(sections):
            for label, value in rows:
                table.add_row(label, value)
            if index < len(sections) - 1:
                table.add_section()
        return table

    def render(self, result: SizingReport) -> str:
        buffer = io.StringIO()
        console = Console(file=buffer, width=self.width, color_system=None, highlight=False, emoji=False)
        console.print(self.build_table(result))
        console.print()
        # Snippets contain braces and brackets; print them verbatim
        console.print(result.config_snippet(), markup=False, highlight=False, soft_wrap=True)
        return buffer.getvalue()


class JsonFormatter(Formatter):
    name = "json"

    def __init__(self, indent: int = 2):
        self.indent = indent

    def render(self, result: SizingReport) -> str:
        return json.dumps(result.to_dict(), indent=self.indent) + "\n"


FORMATTERS = {
    TableFormatter.name: TableFormatter,
    JsonFormatter.name: JsonFormatter,
}


def get_formatter(name: str) -> Formatter:
    try:
        return FORMATTERS[name]()
    except KeyError:
        raise InputValidationError(f"Unknown output format: {name}", field="format")
