#!/usr/bin/env python3
"""
CLI for the Scrape Orchestrator

Commands:
    scrape        - Run a scrape across sources and persist the records
    test-source   - Run a single source without persisting (smoke test)
    status        - Show registered sources, rate limits and cache state
    list-records  - List stored records
    cleanup       - Deactivate expired hackathons and delete stale records
    trending      - Recompute trending flags for recent records
    init-db       - Create the scraped_records table

Usage:
    python cli.py scrape
    python cli.py scrape --source dribbble --source behance --limit 30
    python cli.py scrape --category ui-ux --query "dashboard" --dry-run
    python cli.py test-source devpost
    python cli.py list-records --source awwwards --limit 10
"""

import asyncio
import json
import sys

import click

from config import get_log_level
from scrapers.categories import CanonicalCategory
from scrapers.observability import setup_logging

CATEGORY_CHOICES = ["all"] + [c.value for c in CanonicalCategory]


def get_record_store():
    """Record store on the shared engine (requires DATABASE_URL)."""
    from db.engine import get_engine
    from scrapers.persistence import SqlAlchemyRecordStore

    return SqlAlchemyRecordStore(get_engine())


def _print_result(result, output_json: bool):
    if output_json:
        click.echo(json.dumps(result.to_dict(include_records=True), indent=2, default=str))
        return

    status_colors = {"ok": "green", "degraded": "yellow", "down": "red", "empty": "red"}

    click.echo("=" * 60)
    click.secho("RUN SUMMARY", fg="cyan", bold=True)
    click.echo("=" * 60)
    click.echo(f"Run ID:   {result.run_id}")
    click.echo("Status:   " + click.style(result.status, fg=status_colors.get(result.status, "white")))
    click.echo(f"Records:  {result.total_records}")
    click.echo(f"Duration: {result.duration_ms}ms")
    click.echo()

    for name, outcome in result.per_source_outcome.items():
        color = "green" if outcome.succeeded else "red"
        line = f"  {name:<10} {outcome.state.value:<10} {outcome.count:>4} records"
        if outcome.strategy:
            line += f" via {outcome.strategy}"
        if outcome.rejected:
            line += f", {outcome.rejected} rejected"
        if outcome.error:
            line += f" ({outcome.error})"
        click.secho(line, fg=color)

    for error in result.configuration_errors:
        click.secho(f"  config: {error}", fg="red")

    if result.persistence:
        p = result.persistence
        click.echo()
        click.echo(
            f"Persisted: {p.inserted} new, {p.updated} updated, {p.unchanged} unchanged "
            f"in {p.batches} batch(es)"
        )
        if p.failed_batches:
            click.secho(f"  {p.failed_batches} batch(es) failed ({p.failed_records} records)", fg="red")


@click.group()
@click.version_option(version="1.0.0", prog_name="scrape-cli")
def cli():
    """Scrape Orchestrator CLI - Run and inspect hackathon/design scrapes."""
    setup_logging(get_log_level())


@cli.command("scrape")
@click.option("--source", "-s", "sources", multiple=True, help="Source to run (repeatable); default all")
@click.option("--limit", "-n", type=int, default=20, show_default=True, help="Max records per source")
@click.option("--category", "-c", type=click.Choice(CATEGORY_CHOICES), default="all", help="Category filter")
@click.option("--query", "-q", default=None, help="Search text")
@click.option("--force-refresh", is_flag=True, help="Bypass the run cache")
@click.option("--dry-run", is_flag=True, help="Scrape and normalize without persisting")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def scrape(sources, limit, category, query, force_refresh, dry_run, output_json):
    """Run a scrape across sources."""
    from scrapers.errors import ConfigurationError
    from scrapers.orchestrator import build_orchestrator

    orchestrator = build_orchestrator(persist=not dry_run)
    options = {
        "enabled_sources": list(sources),
        "limit": limit,
        "category": category,
        "query": query,
        "force_refresh": force_refresh,
    }

    if not output_json:
        click.echo(f"Mode: {'DRY RUN' if dry_run else 'LIVE'}")

    try:
        result = asyncio.run(orchestrator.run(options))
    except ConfigurationError as e:
        click.secho(f"Error: {e}", fg="red")
        sys.exit(2)

    _print_result(result, output_json)
    if result.status in ("down", "empty"):
        sys.exit(1)


@cli.command("test-source")
@click.argument("source_name")
@click.option("--limit", "-n", type=int, default=5, show_default=True)
@click.option("--query", "-q", default=None, help="Search text")
def test_source(source_name, limit, query):
    """
    Run one source without persisting and print its records.

    SOURCE_NAME: Source identifier (e.g. dribbble)
    """
    from scrapers.orchestrator import build_orchestrator

    orchestrator = build_orchestrator(persist=False)
    result = asyncio.run(orchestrator.run_scraper(source_name.lower(), {"limit": limit, "query": query}))

    _print_result(result, output_json=False)
    click.echo()
    for record in result.records:
        click.echo(f"  [{record.category.value}] {record.title}")
        click.echo(f"      {record.url}")

    if result.status != "ok":
        sys.exit(1)


@cli.command("status")
def status():
    """Show registered sources, rate-limit windows and cache stats."""
    from scrapers.orchestrator import build_orchestrator

    report = build_orchestrator(persist=False).get_status()
    click.echo(json.dumps(report, indent=2, default=str))


@cli.command("list-records")
@click.option("--source", "-s", "source_name", default=None)
@click.option("--category", "-c", type=click.Choice(CATEGORY_CHOICES), default="all")
@click.option("--kind", type=click.Choice(["hackathon", "design"]), default=None)
@click.option("--include-inactive", is_flag=True)
@click.option("--limit", "-n", type=int, default=20, show_default=True)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def list_records(source_name, category, kind, include_inactive, limit, output_json):
    """List stored records, most recently scraped first."""
    from scrapers.errors import ConfigurationError
    from scrapers.orchestrator import build_orchestrator

    try:
        records = asyncio.run(build_orchestrator().list_records(
            source_name=source_name,
            category=None if category == "all" else category,
            kind=kind,
            active_only=not include_inactive,
            limit=limit,
        ))
    except ConfigurationError as e:
        click.secho(f"Error: {e}", fg="red")
        sys.exit(2)

    if output_json:
        click.echo(json.dumps(records, indent=2, default=str))
        return

    if not records:
        click.secho("No records found", fg="yellow")
        return

    for record in records:
        flag = click.style(" *trending*", fg="magenta") if record["is_trending"] else ""
        click.echo(f"{record['source_name']:<10} [{record['category']}] {record['title']}{flag}")


@cli.command("cleanup")
def cleanup():
    """Deactivate expired hackathons and delete stale records."""
    from scrapers.jobs import run_cleanup

    counts = run_cleanup(get_record_store())
    click.echo(f"Deactivated:       {counts['deactivated']}")
    click.echo(f"Deleted inactive:  {counts['deleted_inactive']}")
    click.echo(f"Deleted designs:   {counts['deleted_designs']}")


@cli.command("trending")
@click.option("--days", type=int, default=30, show_default=True)
def trending(days):
    """Recompute is_trending for records scraped in the last DAYS days."""
    changed = get_record_store().refresh_trending(days=days)
    click.echo(f"Trending flags changed: {changed}")


@cli.command("init-db")
def init_db():
    """Create the scraped_records table if missing."""
    get_record_store().create_tables()
    click.secho("scraped_records table ready", fg="green")


if __name__ == "__main__":
    cli()
