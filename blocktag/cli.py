"""Command-line interface for blocktag."""

import json
import logging
import sys
from pathlib import Path
from typing import TextIO

import click
import requests
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from blocktag.config import Config, find_config_file, load_config, merge_cli_options
from blocktag.engine import BlocklistEngine
from blocktag.errors import BlocklistDirectoryError, BlocklistNotFoundError, ConfigError
from blocktag.feeds import BlocklistFeedManager
from blocktag.sources import DirectorySource, load_category

console = Console()
err_console = Console(stderr=True)

EXIT_NO_MATCH = 1
EXIT_BUILD_ERROR = 2


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to config file (default: searches standard locations)",
)
@click.option(
    "--blocklists",
    "-b",
    type=click.Path(path_type=Path),
    default=None,
    help="Blocklist root directory (one subdirectory per category)",
)
@click.option(
    "--category",
    multiple=True,
    help="Only load this category (can specify multiple)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
@click.pass_context
def main(
    ctx: click.Context,
    config: Path | None,
    blocklists: Path | None,
    category: tuple[str, ...],
    verbose: bool,
) -> None:
    """blocktag - Categorize URLs and domains against named blocklists."""
    ctx.ensure_object(dict)

    try:
        cfg = load_config(config)
    except ConfigError as e:
        err_console.print(f"[red]{escape(str(e))}[/red]")
        sys.exit(EXIT_BUILD_ERROR)

    merge_cli_options(cfg, blocklists=blocklists, category=category)
    ctx.obj["config"] = cfg

    log_level = logging.DEBUG if verbose else getattr(logging, cfg.log_level, logging.WARNING)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    config_path = config or find_config_file()
    if config_path:
        ctx.obj["config_path"] = config_path


def _load_engine(cfg: Config) -> BlocklistEngine:
    """Build the engine from the configured directory, exiting on build errors."""
    root = cfg.resolve_blocklist_path()
    try:
        if cfg.categories:
            for name in cfg.categories:
                load_category(root, name)
        return BlocklistEngine.from_sources(DirectorySource(root, cfg.categories))
    except BlocklistDirectoryError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        err_console.print("[yellow]Run 'blocktag update' or pass --blocklists[/yellow]")
    except (BlocklistNotFoundError, OSError) as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
    sys.exit(EXIT_BUILD_ERROR)


@main.command()
@click.argument("candidates", nargs=-1, required=True)
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.pass_context
def detect(ctx: click.Context, candidates: tuple[str, ...], as_json: bool) -> None:
    """Show the categories of one or more URLs or domains.

    Exits with status 1 when nothing matched.

    Example:
        blocktag -b ./blacklists detect https://example.com/page example.org
    """
    engine = _load_engine(ctx.obj["config"])

    results = {candidate: engine.detect(candidate) for candidate in candidates}

    if as_json:
        payload = {c: sorted(tags) if tags else None for c, tags in results.items()}
        click.echo(json.dumps(payload, indent=2))
    else:
        for candidate, tags in results.items():
            if tags:
                console.print(f"{escape(candidate)}\t[yellow]{escape(', '.join(sorted(tags)))}[/yellow]")
            else:
                console.print(f"{escape(candidate)}\t[dim]-[/dim]")

    if not any(results.values()):
        sys.exit(EXIT_NO_MATCH)


@main.command()
@click.argument("source", type=click.File("r", encoding="utf-8", errors="replace"))
@click.option("--all", "show_all", is_flag=True, help="Also print candidates without a category")
@click.pass_context
def classify(ctx: click.Context, source: TextIO, show_all: bool) -> None:
    """Categorize every line of a file (use - for stdin).

    Prints one tab-separated line per match: candidate, then categories.
    """
    engine = _load_engine(ctx.obj["config"])

    total = 0
    matched = 0
    for line in source:
        candidate = line.strip()
        if not candidate:
            continue
        total += 1
        tags = engine.detect(candidate)
        if tags:
            matched += 1
            click.echo(f"{candidate}\t{','.join(sorted(tags))}")
        elif show_all:
            click.echo(f"{candidate}\t")

    err_console.print(f"[cyan]{matched:,} of {total:,} candidates matched[/cyan]")


@main.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show per-category entry counts of the loaded blocklists."""
    engine = _load_engine(ctx.obj["config"])
    build = engine.stats

    table = Table(title="Blocklist Categories")
    table.add_column("Category")
    table.add_column("Domains", justify="right")
    table.add_column("URLs", justify="right")
    table.add_column("Skipped", justify="right")

    for name in sorted(set(engine.categories) | set(build.skipped_by_category)):
        skipped = build.skipped_by_category[name]
        table.add_row(
            escape(name),
            f"{build.domains_by_category[name]:,}",
            f"{build.urls_by_category[name]:,}",
            f"[yellow]{skipped:,}[/yellow]" if skipped else "0",
        )

    console.print(table)
    console.print(f"  Unique domains: {engine.domain_count:,}")
    console.print(f"  Unique URLs: {engine.url_count:,}")
    console.print(f"  Skipped lines: {build.skipped:,}")


@main.command()
@click.option("--force", is_flag=True, help="Download even if the cached archive is fresh")
@click.option("--cache-dir", type=click.Path(path_type=Path), default=None, help="Archive cache directory")
@click.option("--url", "feed_url", type=str, default=None, help="Archive URL (.tar.gz)")
@click.pass_context
def update(ctx: click.Context, force: bool, cache_dir: Path | None, feed_url: str | None) -> None:
    """Download and unpack the UT1 blocklist archive."""
    cfg: Config = ctx.obj["config"]
    merge_cli_options(cfg, cache_dir=cache_dir, feed_url=feed_url)

    manager = BlocklistFeedManager(
        cfg.feed_cache_dir,
        url=cfg.feed_url,
        update_interval_hours=cfg.feed_update_interval_hours,
        timeout_seconds=cfg.feed_timeout_seconds,
    )

    console.print(f"[cyan]Checking {escape(cfg.feed_url)}...[/cyan]")
    try:
        updated = manager.update(force=force)
    except requests.RequestException as e:
        err_console.print(f"[red]Download failed: {escape(str(e))}[/red]")
        sys.exit(1)

    info = manager.get_stats()
    if updated:
        console.print(f"[green]Unpacked {info['categories']} categories into {info['blocklist_dir']}[/green]")
    else:
        console.print(f"[green]Blocklists up to date ({info['categories']} categories)[/green]")
    if info["updated"]:
        console.print(f"  Archive: {info['archive']} ({info['size_bytes']:,} bytes, {info['age_hours']}h old)")


if __name__ == "__main__":
    main()
