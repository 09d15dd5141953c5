"""
Typer CLI for the ceprep content pipeline.

Commands:
    ceprep import PATH          - Import a course document (.docx or .md)
    ceprep import PATH --clear  - Clear existing content first
    ceprep init-db              - Initialize database tables
    ceprep lessons              - List imported lessons
    ceprep review D G I         - Show the next schedule for a flashcard review

Usage:
    ceprep --help
    ceprep init-db
    ceprep import "215 DFS Self Study Course.docx" --clear
    ceprep review 2.5 2 6
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from loguru import logger
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from config import get_settings

app = typer.Typer(
    help="ceprep: insurance licensing course import and study tools",
    no_args_is_help=True,
)

console = Console()


def configure_logging() -> None:
    """stderr sink at the configured level, plus a rotating file sink when log_file is set."""
    settings = get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if settings.log_file:
        logger.add(settings.log_file, level="DEBUG", rotation="10 MB", retention=5)


def _storage():
    from ceprep.db.storage import Storage

    storage = Storage()
    storage.create_all()
    return storage


# ========================================
# Import
# ========================================


@app.command("import")
def import_document(
    path: Path = typer.Argument(..., help="Course document (.docx, .md or .txt)"),
    clear: bool = typer.Option(False, "--clear", help="Delete all existing content before importing"),
) -> None:
    """
    Import a licensing course document.

    Builds tracks, modules, lessons, chunks, checkpoints, question banks,
    exam configurations and marker flashcards. Exits with code 1 when any
    lesson failed to process.
    """
    from ceprep.errors import CeprepError
    from ceprep.importer.import_service import ImportService

    if not path.exists():
        rprint(f"[red]✗[/red] File not found: {path}")
        raise typer.Exit(code=1)

    service = ImportService(_storage())
    if clear:
        service.clear_all_content()
        rprint("[green]✓[/green] All content cleared")

    try:
        result = service.run_import(path)
    except CeprepError as e:
        rprint(f"[red]✗[/red] Import failed: {e}")
        raise typer.Exit(code=1)

    table = Table(title=f"Import Summary ({result.version})", show_header=True)
    table.add_column("Entity", style="cyan")
    table.add_column("Created", justify="right", style="green")
    for label, value in [
        ("Tracks", result.tracks),
        ("Modules", result.modules),
        ("Lessons", result.lessons),
        ("Content chunks", result.chunks),
        ("Question banks", result.banks),
        ("Questions", result.questions),
        ("Exams", result.exams),
        ("Flashcards", result.flashcards),
    ]:
        table.add_row(label, str(value))
    console.print(table)

    if result.errors:
        rprint(f"[yellow]⚠[/yellow] Import completed with {len(result.errors)} errors:")
        for i, error in enumerate(result.errors, 1):
            rprint(f"  {i}. {error}")
        raise typer.Exit(code=1)

    rprint("[green]✓[/green] Import completed successfully")


# ========================================
# Database
# ========================================


@app.command("init-db")
def init_database() -> None:
    """Initialize database tables. Safe to run multiple times."""
    from ceprep.db.database import init_db

    init_db()
    rprint("[green]✓[/green] Database initialized!")


@app.command("lessons")
def list_lessons(
    limit: int = typer.Option(50, "--limit", "-l", help="Max lessons to show"),
) -> None:
    """List imported lessons in outline order."""
    lessons = _storage().get_all_lessons()
    if not lessons:
        rprint("[yellow]⚠[/yellow] No lessons imported yet")
        return

    table = Table(title=f"Lessons ({len(lessons)})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Slug", style="cyan")
    table.add_column("Title")
    table.add_column("Minutes", justify="right")
    table.add_column("CE hrs", justify="right", style="green")
    for i, lesson in enumerate(lessons[:limit], 1):
        table.add_row(str(i), f"/lesson/{lesson.slug}", lesson.title, str(lesson.duration_minutes), str(lesson.ce_hours or ""))
    console.print(table)


# ========================================
# Study
# ========================================


@app.command("review")
def review_card(
    difficulty: float = typer.Argument(..., help="Current ease factor (>= 1.3)"),
    grade: int = typer.Argument(..., help="0 Again, 1 Hard, 2 Good, 3 Easy"),
    interval: int = typer.Argument(..., help="Current interval in days"),
) -> None:
    """Show the schedule a card would get after one review."""
    from ceprep.study.scheduler import review

    try:
        outcome = review(difficulty, grade, interval)
    except ValueError as e:
        rprint(f"[red]✗[/red] {e}")
        raise typer.Exit(code=1)

    rprint(f"Interval:    [bold]{outcome.interval}[/bold] days")
    rprint(f"Ease:        [bold]{outcome.difficulty:.2f}[/bold]")
    rprint(f"Next review: [bold]{outcome.next_review_date.isoformat()}[/bold]")


@app.command("version")
def show_version() -> None:
    """Show version information."""
    from ceprep import __version__

    rprint(f"[bold]ceprep[/bold] v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    configure_logging()
    app()


if __name__ == "__main__":
    main()
