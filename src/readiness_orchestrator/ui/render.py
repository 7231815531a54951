"""Terminal output for the readiness CLI.

Every method writes one logical block. With color off (``--no-color``, ``NO_COLOR`` or
a non-terminal stdout) the output is plain, padded text that is stable byte for byte;
with color on the same content is styled through a ``rich`` console.
"""

from __future__ import annotations

import os
import sys
from typing import TYPE_CHECKING, Final

from rich.console import Console
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Sequence

_BADGE_STYLES: Final[dict[str, str]] = {
    "green": "bold green",
    "amber": "bold yellow",
    "red": "bold red",
}

_SEVERITY_STYLES: Final[dict[str, str]] = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "cyan",
    "info": "dim",
}

_INDENT: Final[str] = "  "


def wants_color(*, no_color: bool = False) -> bool:
    if no_color or os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(sys.stdout, "isatty", None)
    return bool(isatty and isatty())


def plain_table_lines(headers: Sequence[str], rows: Sequence[Sequence[object]]) -> list[str]:
    """Left-aligned columns two spaces apart, a dashed rule under the header."""

    widths = [len(header) for header in headers]
    for row in rows:
        for index, cell in enumerate(row[: len(widths)]):
            widths[index] = max(widths[index], len(str(cell)))

    def line(cells: Sequence[object]) -> str:
        padded = (
            str(cells[index] if index < len(cells) else "").ljust(width)
            for index, width in enumerate(widths)
        )
        return (_INDENT + "  ".join(padded)).rstrip()

    rule = _INDENT + "  ".join("-" * width for width in widths)
    return [line(headers), rule, *(line(row) for row in rows)]


class CLIRenderer:
    def __init__(self, *, no_color: bool = False) -> None:
        self._console = Console(highlight=False) if wants_color(no_color=no_color) else None

    @property
    def color(self) -> bool:
        return self._console is not None

    def _line(self, plain: str, style: str = "") -> None:
        if self._console is None:
            print(plain)
        else:
            self._console.print(Text(plain, style=style))

    def _pair(self, label: str, value: str, style: str = "") -> None:
        if self._console is None:
            print(f"{label}: {value}")
        else:
            self._console.print(Text.assemble((f"{label}: ", "dim"), (value, style)))

    def text(self, line: str) -> None:
        self._line(line)

    def heading(self, text: str) -> None:
        self._line(text, "bold")

    def section(self, title: str) -> None:
        self._line("")
        self._line(title, "bold underline")

    def kv(self, key: str, value: object) -> None:
        self._pair(key, str(value))

    def badge(self, label: str, value: str) -> None:
        self._pair(label, value.upper(), _BADGE_STYLES.get(value, ""))

    def warning(self, text: str) -> None:
        self._line(f"{_INDENT}Warning: {text}", "yellow")

    def ok(self, label: str) -> None:
        self._line(f"{_INDENT}OK  {label}", "green")

    def fail(self, label: str) -> None:
        self._line(f"{_INDENT}FAIL  {label}", "red")

    def items(self, entries: Sequence[str], *, prefix: str = "- ") -> None:
        for entry in entries:
            self._line(f"{_INDENT}{prefix}{entry}")

    def next_steps(self, steps: Sequence[str]) -> None:
        if steps:
            self.section("Next steps:")
            self.items(steps, prefix="$ ")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[str]],
        *,
        title: str | None = None,
        severity_column: int | None = None,
    ) -> None:
        """Nothing is printed for an empty ``rows``; ``severity_column`` is styled in color."""

        if not rows:
            return
        if self._console is None:
            if title:
                self.section(title)
            for line in plain_table_lines(headers, rows):
                print(line)
            return

        table = Table(title=title, title_justify="left", header_style="bold")
        for header in headers:
            table.add_column(header)
        for row in rows:
            table.add_row(
                *(
                    Text(
                        str(cell),
                        style=_SEVERITY_STYLES.get(str(cell), "") if i == severity_column else "",
                    )
                    for i, cell in enumerate(row)
                )
            )
        self._console.print(table)


def create_renderer(*, no_color: bool = False) -> CLIRenderer:
    return CLIRenderer(no_color=no_color)


__all__ = ["CLIRenderer", "create_renderer", "plain_table_lines", "wants_color"]
