"""
CLI output helpers built on rich.

Environment handling:
- Respects NO_COLOR and FORCE_COLOR environment variables
- Falls back to plain text when stdout is not a terminal
"""

from __future__ import annotations

import os
from typing import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from egressprobe.models import ProbeResult

EGRESSPROBE_THEME = Theme(
    {
        "info": "#88C0D0",
        "success": "#A3BE8C",
        "warning": "#EBCB8B",
        "error": "#BF616A bold",
        "muted": "#D8DEE9",
    }
)

console = Console(
    theme=EGRESSPROBE_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)


def success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]✓ {message}[/success]")


def error(message: str) -> None:
    """Print an error message."""
    console.print(f"[error]✗ {message}[/error]")


def warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[warning]⚠ {message}[/warning]")


def info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]ℹ {message}[/info]")


def header(title: str) -> None:
    """Print a section header."""
    console.print()
    console.print(Panel(f"[bold]{title}[/bold]", border_style="cyan"))


def results_table(results: Sequence[ProbeResult], max_elapsed_seconds: float) -> Table:
    """Render probe results, highlighting failing and slow checks."""
    table = Table(title="Egress checks")
    table.add_column("Name")
    table.add_column("URL")
    table.add_column("Code", justify="right")
    table.add_column("Elapsed (s)", justify="right")
    table.add_column("Result")
    table.add_column("Message", style="muted")

    for result in results:
        if not result.success:
            verdict = "[error]failed[/error]"
        elif result.elapsed_seconds > max_elapsed_seconds:
            verdict = "[warning]slow[/warning]"
        else:
            verdict = "[success]ok[/success]"
        table.add_row(
            result.name,
            result.url,
            str(result.response_code),
            f"{result.elapsed_seconds:.2f}",
            verdict,
            result.message,
        )
    return table
