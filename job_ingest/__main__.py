"""CLI: python -m job_ingest"""

from __future__ import annotations

import logging
import signal
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from . import ingest_jobs
from .config import load_config
from .models import JobSearchCriteria, ScrapingResult, Seniority
from .progress import ConsoleProgressSink, LoggingProgressSink, NullProgressSink, QueuedProgressSink
from .store import JobStore
from .validation import InvalidCriteriaError

app = typer.Typer(help="Job offer ingestion: scrape boards, normalize with an LLM, dedup, store")
console = Console()


def _split_csv(values: Optional[List[str]]) -> list[str]:
    out = []
    for value in values or []:
        out.extend(part.strip() for part in value.split(",") if part.strip())
    return out


def _parse_seniorities(values: Optional[List[str]]) -> Optional[list[Seniority]]:
    parsed = []
    for value in _split_csv(values):
        try:
            parsed.append(Seniority(value.lower()))
        except ValueError:
            valid = ", ".join(s.value for s in Seniority)
            console.print(f"[yellow]Unknown seniority '{value}'. Valid values: {valid}[/yellow]")
    return parsed or None


def _summary_table(result: ScrapingResult) -> Table:
    table = Table(title=f"Ingestion Run {result.run_id}")
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    table.add_row("Total found", str(result.total_found))
    table.add_row("Processed", str(result.processed))
    table.add_row("Failed", str(result.failed))
    table.add_row("Skipped (already stored)", str(result.skipped))
    table.add_row("Duplicates", str(result.duplicates))
    table.add_row("Would save (dry run)" if result.dry_run else "Saved", str(result.saved_count))
    return table


@app.command()
def scrape(
    title: List[str] = typer.Option(..., "--title", "-t", help="Job title to search for (repeatable or comma-separated)"),
    location: Optional[List[str]] = typer.Option(None, "--location", "-l", help="Location filter (repeatable or comma-separated)"),
    seniority: Optional[List[str]] = typer.Option(None, "--seniority", "-s", help="junior, mid, senior, lead"),
    date_from: Optional[datetime] = typer.Option(None, "--date-from", "-d", formats=["%Y-%m-%d"], help="Earliest posting date of interest; must not be in the future"),
    max_per_site: Optional[int] = typer.Option(None, "--max", "-m", help="Maximum offers per source"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config override"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the JSON result to file"),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", help="Sources scraped in parallel"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Don't save offers or run history"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="No live progress output"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Run a full ingestion cycle."""
    load_dotenv()
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )

    criteria = JobSearchCriteria(
        titles=_split_csv(title),
        locations=_split_csv(location) or None,
        seniorities=_parse_seniorities(seniority),
        date_from=date_from,
        max_per_site=max_per_site,
    )

    cancel = threading.Event()

    def _on_interrupt(signum, frame):
        if cancel.is_set():
            raise KeyboardInterrupt
        console.print("\n[yellow]Cancelling after the current offer… (Ctrl+C again to abort)[/yellow]")
        cancel.set()

    previous = signal.signal(signal.SIGINT, _on_interrupt)
    if quiet:
        inner = LoggingProgressSink() if verbose else NullProgressSink()
    else:
        inner = ConsoleProgressSink()
    sink = QueuedProgressSink(inner)
    try:
        result = ingest_jobs(
            criteria,
            config_path=config,
            progress=sink,
            dry_run=dry_run,
            max_workers=workers,
            cancel=cancel,
        )
    except InvalidCriteriaError as exc:
        for problem in exc.problems:
            console.print(f"[red]✗[/red] {problem}")
        raise typer.Exit(code=2)
    finally:
        sink.close()
        signal.signal(signal.SIGINT, previous)

    console.print(_summary_table(result))

    if result.processed_by_source:
        by_source = Table(title="By Source")
        by_source.add_column("Source")
        by_source.add_column("Processed", justify="right")
        for source, count in result.processed_by_source.items():
            by_source.add_row(source.value, str(count))
        console.print(by_source)

    if result.failed_sources:
        console.print(f"[red]Failed sources:[/red] {', '.join(s.value for s in result.failed_sources)}")
    if result.persistence_failed:
        console.print("[yellow]Warning: failed to save offers to the store[/yellow]")
    if result.cancelled:
        console.print("[yellow]Run was cancelled; partial results were kept[/yellow]")

    if output:
        output.write_text(result.model_dump_json(indent=2))
        console.print(f"\nJSON written to [bold]{output}[/bold]")


@app.command()
def stats(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config override"),
):
    """Show stored offer count and the last run."""
    cfg = load_config(config)
    with JobStore(cfg.store.resolved_path()) as store:
        total = store.offer_count()
        last = store.last_run()
        db_path = store.db_path

    table = Table(title="Job Store")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Offers stored", str(total))
    table.add_row("Database", str(db_path))
    if last:
        table.add_row("Last run", f"{last['run_id']} ({last['finished_at'][:19]})")
        table.add_row("Last run saved", str(last["saved_count"]))
        if last["failed_sources"]:
            table.add_row("Last run failed sources", ", ".join(last["failed_sources"]))
    console.print(table)


@app.command()
def recent(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of recent offers to show"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config override"),
):
    """Show recently stored offers."""
    cfg = load_config(config)
    with JobStore(cfg.store.resolved_path()) as store:
        offers = store.recent_offers(limit)

    if not offers:
        console.print("No offers yet.")
        return

    table = Table(title=f"Last {len(offers)} Offers")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Title")
    table.add_column("Company")
    table.add_column("Source")
    table.add_column("Salary")
    table.add_column("Experience")
    table.add_column("Link", style="cyan")

    for i, offer in enumerate(offers, 1):
        table.add_row(
            str(i),
            offer.title[:50],
            (offer.company or "")[:30],
            offer.source.value,
            offer.salary.display() if offer.salary else "",
            offer.years_experience.display() if offer.years_experience else "",
            offer.link[:70],
        )
    console.print(table)


if __name__ == "__main__":
    app()
