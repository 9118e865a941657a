"""
Command-line interface for the news pipeline.

Uses Typer to expose the refresh entry point and its maintenance
operations. Supports loading .env files for API key configuration.
"""

from __future__ import annotations

import json
from pathlib import Path

from dotenv import load_dotenv
import typer
from rich.console import Console
from rich.table import Table

from .config import AppConfig, load_config
from .pipeline import NewsPipeline
from .utils.logging import setup_logging

app = typer.Typer(add_completion=False, help="Aggregate, classify and serve AI news.")
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", exists=True, help="Path to YAML config file.")
LogLevelOption = typer.Option(None, "--log-level", help="Logging level.")


def _build_pipeline(config: Path | None, log_level: str | None) -> NewsPipeline:
    # Load environment variables from .env if available
    load_dotenv()
    cfg: AppConfig = load_config(str(config) if config else None)
    if log_level:
        cfg.logging.level = log_level
    setup_logging(cfg.logging, Path(cfg.storage.data_dir))
    return NewsPipeline.from_config(cfg)


@app.command()
def refresh(
    config: Path | None = ConfigOption,
    force: bool = typer.Option(False, "--force", help="Fetch and classify regardless of the schedule."),
    as_json: bool = typer.Option(False, "--json", help="Print the full JSON record."),
    log_level: str | None = LogLevelOption,
):
    """Return the current news, refreshing it when the schedule allows."""
    pipeline = _build_pipeline(config, log_level)
    try:
        result = pipeline.refresh(force=force)
    finally:
        pipeline.close()

    if as_json:
        typer.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
        return

    table = Table(title=f"News ({result.origin}, from cache: {result.from_cache})")
    table.add_column("Priority")
    table.add_column("Category")
    table.add_column("Rel", justify="right")
    table.add_column("Source")
    table.add_column("Title", overflow="fold")
    for item in result.items:
        table.add_row(
            item.priority or "-",
            item.category or "-",
            str(item.relevance or "-"),
            item.source,
            item.title,
        )
    console.print(table)
    stats = result.stats
    console.print(
        f"{stats.get('total', 0)} items, {stats.get('new', 0)} new, "
        f"{stats.get('sources', 0)} sources; next refresh in "
        f"{result.scheduler.get('next_refresh_seconds', 0)}s"
    )
    if result.error:
        console.print(f"[red]{result.error}[/red]")
        raise typer.Exit(code=1)


@app.command()
def status(
    config: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
):
    """Show scheduler, credential pool and cache status."""
    pipeline = _build_pipeline(config, log_level)
    info = pipeline.status()

    scheduler = Table(title="Scheduler")
    scheduler.add_column("Field")
    scheduler.add_column("Value")
    for key, value in info["scheduler"].items():
        scheduler.add_row(key, str(value))
    console.print(scheduler)

    caches = Table(title="Caches")
    for column in ("Cache", "Valid", "Expired", "Hits", "Misses", "Newest"):
        caches.add_column(column)
    for name, stats in info["caches"].items():
        caches.add_row(
            name,
            str(stats["valid"]),
            str(stats["expired"]),
            str(stats["hits"]),
            str(stats["misses"]),
            stats["newest"] or "-",
        )
    console.print(caches)

    pool = info["analysis"]["pool"]
    console.print(
        f"Keys: {pool['healthy_keys']}/{pool['total_keys']} healthy, "
        f"{pool['keys_in_cooldown']} in cooldown, "
        f"{pool['total_requests']} requests, {pool['total_errors']} errors"
    )
    if info["analysis"]["keys"]:
        keys = Table(title="Keys")
        for column in ("Key", "Requests", "Errors", "Healthy", "Success %"):
            keys.add_column(column)
        for entry in info["analysis"]["keys"]:
            keys.add_row(
                entry["key"],
                str(entry["request_count"]),
                str(entry["error_count"]),
                "yes" if entry["healthy"] else "no",
                f"{entry['success_rate']:.0f}",
            )
        console.print(keys)
    console.print(f"Combined news cached: {'yes' if info['news_cached'] else 'no'}")
    console.print(f"Sources: {', '.join(info['sources'])}")


@app.command()
def cleanup(
    config: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
):
    """Remove expired entries from every cache."""
    pipeline = _build_pipeline(config, log_level)
    removed = pipeline.cleanup()
    for name, count in removed.items():
        console.print(f"{name}: removed {count}")


@app.command()
def reset(
    config: Path | None = ConfigOption,
    log_level: str | None = LogLevelOption,
):
    """Reset the scheduler state (clears a stuck processing flag)."""
    pipeline = _build_pipeline(config, log_level)
    pipeline.reset_scheduler()
    console.print("Scheduler reset")


if __name__ == "__main__":
    app()
