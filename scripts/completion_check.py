# ABOUTME: Provides an operator CLI that checks PDF and video completion from exported logs.
# ABOUTME: Also scans event histories for suspicious-activity signals.

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from src.common.config import load_rules
from src.common.errors import CompletionError
from src.common.event_log import ParquetEventLog
from src.completion.pdf_validator import PdfCompletionValidator
from src.completion.suspicious_detector import generate_activity_report
from src.completion.video_validator import VideoCompletionValidator

console = Console()
app = typer.Typer(help="Check learning completion and suspicious activity from learning-log exports.")

DEFAULT_EVENTS = Path("data/learning_events.parquet")
DEFAULT_SUBJECTS = Path("data/subjects.parquet")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _reader(events_path: Path, subjects_path: Optional[Path]) -> ParquetEventLog:
    if not events_path.exists():
        console.print(f"[red]Missing events parquet at {events_path}[/red]")
        raise typer.Exit(code=1)
    if subjects_path is not None and not subjects_path.exists():
        console.print(f"[yellow]No subjects parquet at {subjects_path}; subject metadata unavailable.[/yellow]")
        subjects_path = None
    return ParquetEventLog(events_path, subjects_path)


def _flag(value: bool) -> str:
    return "[green]yes[/green]" if value else "[red]no[/red]"


@app.command()
def pdf(
    user_id: str = typer.Option(..., "--user-id", help="Learner identifier."),
    file_id: str = typer.Option(..., "--file-id", help="PDF file identifier."),
    events_path: Path = typer.Option(DEFAULT_EVENTS, "--events-path", help="Learning events parquet."),
    subjects_path: Path = typer.Option(DEFAULT_SUBJECTS, "--subjects-path", help="Subject metadata parquet."),
    rules: Optional[Path] = typer.Option(None, "--rules", help="Rules YAML overriding default thresholds."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    """
    Decide whether a PDF was meaningfully read.
    """
    _configure_logging(verbose)
    validator = PdfCompletionValidator(_reader(events_path, subjects_path), load_rules(rules))
    try:
        result = validator.validate(file_id, user_id)
        progress = validator.learning_progress(file_id, user_id)
    except CompletionError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    console.rule(f"[bold blue]PDF {file_id} / {user_id}[/bold blue]")
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Check")
    table.add_column("Value")
    table.add_row("Opened", _flag(result.is_opened))
    table.add_row("Duration (min)", str(result.duration_minutes))
    table.add_row("Pages", f"{progress.max_page_viewed} / {progress.total_pages or '?'}")
    table.add_row("Reached last page", _flag(result.reached_last_page))
    table.add_row("Valid", _flag(result.is_valid))
    console.print(table)


@app.command()
def video(
    user_id: str = typer.Option(..., "--user-id", help="Learner identifier."),
    video_ids: List[str] = typer.Option(..., "--video-id", help="Video identifier; repeat for several."),
    events_path: Path = typer.Option(DEFAULT_EVENTS, "--events-path", help="Learning events parquet."),
    subjects_path: Path = typer.Option(DEFAULT_SUBJECTS, "--subjects-path", help="Subject metadata parquet."),
    rules: Optional[Path] = typer.Option(None, "--rules", help="Rules YAML overriding default thresholds."),
    workers: Optional[int] = typer.Option(None, "--workers", help="Parallel validations for several videos."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    """
    Decide whether one or more videos were meaningfully watched.
    """
    _configure_logging(verbose)
    validator = VideoCompletionValidator(_reader(events_path, subjects_path), load_rules(rules), max_workers=workers)
    results = validator.validate_multiple(user_id, video_ids)

    table = Table(show_header=True, header_style="bold magenta")
    for column in ("Video", "Watched (s)", "Total (s)", "Ratio", "Pauses", "Max speed", "Valid"):
        table.add_column(column)
    for video_id in video_ids:
        result = results.get(video_id)
        if result is None:
            table.add_row(video_id, "-", "-", "-", "-", "-", "[red]error[/red]")
            continue
        table.add_row(
            video_id,
            f"{result.watched_seconds:.2f}",
            f"{result.total_seconds:.0f}",
            f"{result.watched_ratio:.2%}",
            f"{result.pause_count}" + ("" if result.meets_pause_requirement else " [red]![/red]"),
            f"{result.max_speed:g}x" + ("" if result.meets_speed_requirement else " [red]![/red]"),
            _flag(result.is_valid),
        )
    console.print(table)

    all_valid = all(vid in results and results[vid].is_valid for vid in video_ids)
    console.print(f"[bold]All videos complete:[/] {_flag(all_valid)}")
    if not all_valid:
        raise typer.Exit(code=2)


@app.command()
def scan(
    events_path: Path = typer.Option(DEFAULT_EVENTS, "--events-path", help="Learning events parquet."),
    user_id: Optional[str] = typer.Option(None, "--user-id", help="Restrict to one learner."),
    file_id: Optional[str] = typer.Option(None, "--file-id", help="Restrict to one file (requires --user-id)."),
    output: Optional[Path] = typer.Option(None, "--output", help="Write the activity report to this parquet."),
    rules: Optional[Path] = typer.Option(None, "--rules", help="Rules YAML overriding default thresholds."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging."),
) -> None:
    """
    Replay the suspicious-activity detector over stored events.
    """
    _configure_logging(verbose)
    reader = _reader(events_path, None)
    try:
        if user_id and file_id:
            events = reader.fetch_events(user_id, file_id)
        else:
            events = reader.fetch_all_events()
            if user_id:
                events = [e for e in events if e.user_id == user_id]
    except CompletionError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)

    report = generate_activity_report(events, load_rules(rules))
    if report.empty:
        console.print("[green]No suspicious activity found.[/green]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    for column in ("User", "File", "Type", "Reason"):
        table.add_column(column)
    for row in report.itertuples(index=False):
        table.add_row(row.user_id, str(row.file_id), row.activity_type, row.reason)
    console.print(table)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        report.assign(evidence=report["evidence"].astype(str)).to_parquet(output, index=False)
        console.print(f"[bold]{len(report):,} activities saved to {output}[/bold]")


if __name__ == "__main__":
    app()
