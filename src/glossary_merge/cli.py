"""Main CLI entry point for glossary-merge."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import click
import structlog
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from glossary_merge import __version__
from glossary_merge.config import AppConfig, get_config, set_config

logger = structlog.get_logger()


def setup_config(env_file: Optional[Path] = None) -> AppConfig:
    """Load configuration from environment."""
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    config = AppConfig.load(env_file)
    set_config(config)
    return config


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output")
@click.option("--log-file", type=click.Path(), help="Write JSON logs to file")
@click.option("--env-file", type=click.Path(exists=True), help="Path to .env file")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, verbose: bool, quiet: bool, log_file: Optional[str], env_file: Optional[str]) -> None:
    """Merge proposed terminology into multi-key translation glossaries.

    Conflicting proposals are arbitrated by an LLM; the rest merge directly.
    """
    from glossary_merge.log import configure_logging

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    config = setup_config(Path(env_file) if env_file else None)

    # -v / -q win over LOG_LEVEL
    verbosity = 1 if verbose else (-1 if quiet else 0)
    log_path = Path(log_file) if log_file else None
    configure_logging(
        verbosity=verbosity,
        log_file=log_path,
        level_name=None if (verbose or quiet) else config.log_level,
    )


# =============================================================================
# Merge Command (Main Workflow)
# =============================================================================


def _print_stats(stats: dict, total: int, console: Console) -> None:
    table = Table(title="Glossary merge", show_header=True, header_style="bold blue")
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")

    table.add_row("Proposals", str(stats.get("proposals", 0)))
    table.add_row("Added directly", str(stats.get("added_directly", 0)))
    table.add_row("Arbitrated", str(stats.get("arbitrated", 0)))
    table.add_row("  applied", str(stats.get("applied", 0)))
    table.add_row("  rejected", str(stats.get("rejected", 0)))
    table.add_row("Actions applied", str(stats.get("actions_applied", 0)))
    table.add_row("Entries after merge", str(total))

    console.print(table)


@cli.command()
@click.argument("glossary_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("proposals_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output", "-o", type=click.Path(dir_okay=False), help="Write merged glossary to file"
)
@click.option("--in-place", is_flag=True, help="Overwrite GLOSSARY_PATH with the result")
@click.option("--language-pair", help="Language pair, e.g. ja_en (default from MERGE_* settings)")
@click.pass_context
def merge(
    ctx,
    glossary_path: str,
    proposals_path: str,
    output: Optional[str],
    in_place: bool,
    language_pair: Optional[str],
) -> None:
    """Merge PROPOSALS_PATH into GLOSSARY_PATH.

    Both files are JSON. The glossary is {"entries": [{id, keys, value}]},
    proposals are a list (or {"entries": [...]}) of {keys, value}. Without
    --output or --in-place the merged glossary is printed to stdout.
    """
    from glossary_merge.events import MERGE_COMPLETED, EventBus
    from glossary_merge.glossary import GlossaryDictionary, merge_glossary
    from glossary_merge.glossary.models import load_proposals

    if output and in_place:
        raise click.UsageError("Use either --output or --in-place, not both")

    existing = GlossaryDictionary.load(Path(glossary_path))
    proposals = load_proposals(Path(proposals_path))

    stats: dict = {"proposals": len(proposals)}
    bus = EventBus()
    bus.subscribe(lambda event: stats.update(event.data) if event.type == MERGE_COMPLETED else None)

    result = asyncio.run(
        merge_glossary(existing, proposals, event_bus=bus, language_pair=language_pair)
    )

    target = Path(glossary_path) if in_place else (Path(output) if output else None)
    if target:
        result.save(target)
        logger.info("glossary_written", path=str(target), entries=len(result))
    else:
        click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))

    if not ctx.obj.get("quiet"):
        _print_stats(stats, len(result), Console(stderr=True))


# =============================================================================
# Inspection Commands
# =============================================================================


@cli.command()
@click.argument("glossary_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--limit", default=50, help="Maximum entries to show")
def show(glossary_path: str, limit: int) -> None:
    """Display glossary contents."""
    from glossary_merge.glossary import GlossaryDictionary

    g = GlossaryDictionary.load(Path(glossary_path))
    if len(g) == 0:
        click.echo(f"Glossary {glossary_path} is empty")
        return

    click.echo(f"Glossary ({len(g)} entries):")
    for entry in g.entries[:limit]:
        click.echo(f"  [{entry.id}] {', '.join(entry.keys)} → {entry.value}")

    if len(g) > limit:
        click.echo(f"  ... and {len(g) - limit} more")


@cli.command("config")
def show_config() -> None:
    """Show effective LLM and merge configuration."""
    from glossary_merge.config import log_llm_config_summary

    log_llm_config_summary()


@cli.command("test-llm")
def test_llm() -> None:
    """Check that the arbitration LLM is reachable."""
    from glossary_merge.llm import test_llm_connection

    ok = asyncio.run(test_llm_connection(task="glossary_update"))
    if not ok:
        logger.error("llm_unreachable", model=get_config().llm.model)
        raise SystemExit(1)
    click.echo("LLM connection OK")


if __name__ == "__main__":
    cli()
