"""Progress output for the --verbose flag.

Timed steps and one line per extraction group, written to stderr so that
stdout keeps only the report table.
"""

import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

import click
from rich.console import Console
from rich.markup import escape

from fsmsplit.core.splitter import GroupResult

_stderr_console = Console(stderr=True, highlight=False)


@dataclass
class Step:
    """A timed step; set ``result`` inside the block to report a summary."""

    name: str
    result: str | None = None


class VerboseLogger:
    """Writes timestamped progress lines when enabled, nothing otherwise."""

    def __init__(self, enabled: bool = False, target_console: Console | None = None) -> None:
        self.enabled = enabled
        self._console = target_console if target_console is not None else _stderr_console

    def log(self, message: str) -> None:
        """Print a message prefixed with an HH:MM:SS timestamp.

        Args:
            message: Rich markup to print.
        """
        if not self.enabled:
            return
        timestamp = datetime.now(UTC).strftime("%H:%M:%S")
        self._console.print(f"[dim]\\[{timestamp}][/dim] {message}")

    @contextmanager
    def step(self, name: str) -> Iterator[Step]:
        """Time a block and log its duration.

        A block that raises is logged as failed and the exception propagates.

        Args:
            name: Step name shown in both lines.

        Yields:
            The step, whose ``result`` is appended to the completion line.
        """
        current = Step(name)
        self.log(f"Starting: {escape(name)}")
        started = time.perf_counter()
        try:
            yield current
        except Exception:
            self.log(f"[red]Failed:[/red] {escape(name)} ({time.perf_counter() - started:.2f}s)")
            raise
        line = f"Completed: {escape(name)} ({time.perf_counter() - started:.2f}s)"
        if current.result:
            line += f" - {escape(current.result)}"
        self.log(line)

    def group(self, result: GroupResult) -> None:
        """Log the outcome of one extraction group.

        Args:
            result: The group as recorded in the split report.
        """
        head = f"Group {result.index} ({escape(result.label)}): {len(result.states)} states"
        if result.status == "failed":
            self.log(f"{head}, [red]failed[/red]: {escape(result.error or '')}")
        elif result.status == "empty":
            self.log(f"{head}, skipped")
        else:
            where = result.path if result.path is not None else result.output_name
            self.log(f"{head}, {result.status} → {escape(str(where))}")


def get_verbose_logger(ctx: click.Context) -> VerboseLogger:
    """Build a logger from the --verbose flag stored on the click context."""
    if ctx.obj is None:
        return VerboseLogger(enabled=False)
    return VerboseLogger(enabled=ctx.obj.get("verbose", False))
