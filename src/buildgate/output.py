"""Deploy output sinks.

Progress messages are plain, human-readable lines appended to the deploy's
output; their wording is not a stable interface.
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape


class ConsoleOutput:
    """Writes progress lines to a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def puts(self, line: str) -> None:
        self.console.print(escape(line))


class BufferedOutput:
    """Collects progress lines in memory."""

    def __init__(self) -> None:
        self.lines: list[str] = []

    def puts(self, line: str) -> None:
        self.lines.append(line)

    def getvalue(self) -> str:
        return "".join(f"{line}\n" for line in self.lines)
