"""
JUNKER CLI

Usage:
    junker scan targets.txt                       # resolve hosts, POST, 10 workers
    cat targets.txt | junker scan -o -            # JSON lines to stdout
    junker scan -n pairs.txt                      # <ip>,<url> input, no DNS
    junker scan targets.txt -m POST -m GET -c 50  # two methods, 50 workers
    junker mutations                              # show the mutation catalog
"""

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler

from junker import __version__
from junker.core import mutations
from junker.core.engine import JunkerEngine, ScanConfig
from junker.core.errors import ConfigError
from junker.core.types import Outcome, SmuggleTest
from junker.reporters import JsonlSink, print_summary
from junker.reporters.console import catalog_table

# Everything human-readable goes to stderr; stdout may carry results
console = Console(stderr=True)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # dnspython and asyncio are chatty at DEBUG
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def build_config(config_path, **options) -> ScanConfig:
    """Config file values, overridden by every option given on the command line"""
    config = ScanConfig.from_yaml(Path(config_path)) if config_path else ScanConfig()

    if options["no_resolve"]:
        config.resolve = False
    for name in ("workers", "batch_size", "timeout", "rounds", "seed"):
        if options[name] is not None:
            setattr(config, name, options[name])
    if options["methods"]:
        config.methods = [m.upper() for m in options["methods"]]
    if options["headers"]:
        config.headers = list(options["headers"])
    return config.validate()


@click.group()
@click.version_option(__version__, prog_name="junker")
def cli():
    """Differential HTTP request smuggling scanner."""


@cli.command()
# Undecodable bytes become U+FFFD so the line fails parsing and is skipped
@click.argument("input_file", type=click.File("r", errors="replace"),
                default="-", required=False)
@click.option("--no-resolve", "-n", is_flag=True,
              help="Don't resolve domains; expect input lines as <ip>,<url>")
@click.option("--workers", "-c", type=int, help="Concurrent workers (default: 10)")
@click.option("--batch-size", "-b", type=int,
              help="Input lines per batch; tests are shuffled within a batch (default: 200)")
@click.option("--method", "-m", "methods", multiple=True,
              help="HTTP method to test (repeatable, default: POST)")
@click.option("--output", "-o", type=click.File("w", lazy=False), default="junker.json",
              show_default=True,
              help="JSON-lines output file, '-' for stdout")
@click.option("--timeout", "-t", type=float, help="Per-request timeout in seconds (default: 5)")
@click.option("--header", "-H", "headers", multiple=True,
              help="Extra request header 'Name: value' (repeatable)")
@click.option("--rounds", "-r", type=int,
              help="Protocol rounds per test; a vulnerable verdict must repeat in every round")
@click.option("--seed", type=int, help="Seed for the test shuffle")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="YAML config file")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging")
@click.option("--quiet", "-q", is_flag=True, help="No summary table")
def scan(input_file, output, config_path, verbose, quiet, **options):
    """
    Scan the targets in INPUT_FILE (default: stdin).

    \b
    Each line is a URL, or <ip>,<url> with --no-resolve:
        https://example.com/login
        93.184.216.34,https://example.com/login
    """
    setup_logging(verbose)
    try:
        config = build_config(config_path, **options)
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    def _on_result(test: SmuggleTest) -> None:
        if test.outcome is Outcome.VULNERABLE:
            console.print(
                f"[bright_red]⚡ vulnerable[/bright_red] {test.method} {test.url.geturl()} "
                f"@ {test.ip} [yellow]{test.mutations[0]} / {test.mutations[1]}[/yellow]"
            )

    engine = JunkerEngine(config)
    try:
        stats = asyncio.run(engine.run(input_file, JsonlSink(output), on_result=_on_result))
    except OSError as e:
        raise click.ClickException(f"Scan aborted: {e}") from e

    if not quiet:
        print_summary(stats, console)


@cli.command("mutations")
def list_mutations():
    """Show the mutation catalog."""
    catalog = mutations.load()
    console.print(catalog_table(catalog))
    pairs = len(catalog) * (len(catalog) - 1) // 2
    console.print(f"[dim]{len(catalog)} mutations, {pairs} pairs per target and method[/dim]")


def main():
    cli()


if __name__ == "__main__":
    main()
