"""
JUNKER Console Summary

Rich tables printed to stderr once a scan finishes, so stdout stays a
clean JSON-lines stream when results go there.
"""

from typing import Mapping

from rich.console import Console
from rich.table import Table

from junker.core.types import Outcome, ScanStats


def summary_table(stats: ScanStats) -> Table:
    table = Table(
        title="[bright_yellow]Scan Summary[/bright_yellow]",
        show_header=True,
        header_style="bold cyan",
        border_style="bright_yellow",
        pad_edge=True,
    )
    table.add_column("Outcome", style="bold", min_width=18)
    table.add_column("Tests", justify="right")

    for outcome in Outcome:
        table.add_row(
            f"[{outcome.color}]{outcome.value}[/{outcome.color}]",
            str(stats.outcomes[outcome]),
        )
    table.add_section()
    table.add_row("lines read", str(stats.lines_read))
    table.add_row("input errors", str(stats.input_errors))
    table.add_row("tests generated", str(stats.tests_generated))
    table.add_row("tests completed", str(stats.tests_completed))
    return table


def vulnerable_table(stats: ScanStats) -> Table:
    table = Table(
        title="[bright_red]Parsing Disagreements[/bright_red]",
        show_header=True,
        header_style="bold cyan",
        border_style="bright_red",
        pad_edge=True,
    )
    table.add_column("Method", style="bold green")
    table.add_column("URL", style="white")
    table.add_column("IP", style="white")
    table.add_column("Slot 1", style="yellow")
    table.add_column("Slot 2", style="yellow")

    for test in stats.vulnerable:
        table.add_row(test.method, test.url.geturl(), test.ip, *test.mutations)
    return table


def print_summary(stats: ScanStats, console: Console) -> None:
    console.print(summary_table(stats))
    if stats.vulnerable:
        console.print(vulnerable_table(stats))
    console.print(f"[dim]Finished in {stats.duration:.1f}s[/dim]")


def catalog_table(catalog: Mapping[str, str]) -> Table:
    """Mutation names with their templates, control bytes made visible"""
    table = Table(show_header=True, header_style="bold cyan", border_style="dim", pad_edge=True)
    table.add_column("Name", style="bold green", min_width=20)
    table.add_column("Template", style="white")
    for name, template in catalog.items():
        table.add_row(name, repr(template)[1:-1])
    return table
