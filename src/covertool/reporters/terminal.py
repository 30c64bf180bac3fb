"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from covertool.models import CoverageReport, Summary

console = Console()
err_console = Console(stderr=True)

_GOOD_COVERAGE = 80.0
_FAIR_COVERAGE = 50.0


def _coverage_color(percentage: float) -> str:
    """Return a Rich color name for a coverage percentage."""
    if percentage >= _GOOD_COVERAGE:
        return "green"
    if percentage >= _FAIR_COVERAGE:
        return "yellow"
    return "red"


def _format_summary(summary: Summary, *, bold: bool = False) -> str:
    if summary.valid == 0:
        return "[dim]-[/dim]"
    percentage = summary.covered / summary.valid * 100
    style = _coverage_color(percentage)
    if bold:
        style = f"bold {style}"
    return f"[{style}]{percentage:.1f}%[/{style}]"


def print_summary(report: CoverageReport, target: Console | None = None) -> None:
    """Print a per-module line coverage table for *report*."""
    out = target or console
    table = Table(title="Coverage Summary", title_style="bold cyan")
    table.add_column("Module", style="bold")
    table.add_column("File")
    table.add_column("Lines", justify="right")
    table.add_column("Line Coverage", justify="right")

    for cls in report.classes:
        table.add_row(
            escape(cls.name),
            escape(cls.filename) if cls.filename else "[dim]unresolved[/dim]",
            f"{cls.line_summary.covered}/{cls.line_summary.valid}",
            _format_summary(cls.line_summary),
        )

    table.add_section()
    table.add_row(
        "[bold]Overall[/bold]",
        "",
        f"{report.line_summary.covered}/{report.line_summary.valid}",
        _format_summary(report.line_summary, bold=True),
    )
    out.print(table)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {escape(message)}", soft_wrap=True)


def print_error(message: str) -> None:
    """Print an error message to standard error."""
    err_console.print(f"[red]✗[/red] {escape(message)}", soft_wrap=True)
