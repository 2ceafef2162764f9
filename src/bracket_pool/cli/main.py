"""Typer CLI application for bracket-pool."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from bracket_pool.bracket import (
    BracketLayout,
    LayoutNotFoundError,
    get_layout,
    list_layouts,
    load_bracket,
    repair,
)
from bracket_pool.bracket import validate as validate_bracket
from bracket_pool.errors import BracketPoolError, MalformedBracketError
from bracket_pool.pipeline import LeaguePipeline
from bracket_pool.scoring import ScoreBreakdown, ScoringConfig, list_presets, score
from bracket_pool.stats.league import LeagueStatsDocument
from bracket_pool.store import DEFAULT_BATCH_SIZE, JsonDocumentStore
from bracket_pool.utils.logger import LogLevel, configure_logging

app = typer.Typer(help="bracket-pool scoring and league statistics CLI")
console = Console()


@app.callback()
def _callback(
    log_level: LogLevel | None = typer.Option(
        None,
        "--log-level",
        help="QUIET, NORMAL, VERBOSE or DEBUG (default: $BRACKET_POOL_LOG_LEVEL or NORMAL)",
    ),
) -> None:
    """bracket-pool: validate brackets, score them and aggregate league statistics."""
    try:
        configure_logging(log_level)
    except ValueError as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _read_json(path: Path) -> Any:
    if not path.exists():
        console.print(f"[red]Error: File not found: {path}[/red]")
        raise typer.Exit(code=1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        console.print(f"[red]Error: {path} is not valid JSON: {exc}[/red]")
        raise typer.Exit(code=1)


def _layout(name: str) -> BracketLayout:
    try:
        return get_layout(name)
    except LayoutNotFoundError:
        console.print(f"[red]Error: Unknown layout {name!r}[/red]")
        console.print(f"Available layouts: {', '.join(list_layouts())}")
        raise typer.Exit(code=1)


def _print_breakdown(breakdown: ScoreBreakdown) -> None:
    table = Table(title="Score Breakdown")
    table.add_column("Round", style="cyan")
    table.add_column("Correct", justify="right")
    table.add_column("Base", justify="right")
    table.add_column("Bonus", justify="right")
    table.add_column("Possible", justify="right")
    for key, rs in breakdown.round_breakdown.items():
        table.add_row(key, str(rs.correct), f"{rs.base:g}", f"{rs.bonus:g}", f"{rs.possible:g}")
    if breakdown.other is not None:
        other = breakdown.other
        table.add_row("Secondary", str(other.correct), f"{other.base:g}", "0", f"{other.possible:g}")
    console.print(table)
    console.print(
        f"Total: [bold green]{breakdown.total:g}[/bold green]  "
        f"(still available: {breakdown.max_possible:g})"
    )


def _print_rankings(stats: LeagueStatsDocument) -> None:
    table = Table(title=f"League {stats.league_id} ({stats.tournament_status})")
    table.add_column("Rank", justify="right", style="cyan")
    table.add_column("User")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Correct", justify="right")
    table.add_column("Adj.", justify="right")
    table.add_column("Max left", justify="right")
    for r in stats.rankings:
        table.add_row(
            str(r.rank),
            r.user_name or r.user_id,
            f"{r.score:g}",
            f"{r.correct_picks}/{r.graded_picks}",
            f"{r.adjustment:+g}" if r.adjustment else "",
            f"{r.max_possible:g}",
        )
    console.print(table)
    d = stats.distribution
    console.print(
        f"{stats.progress.completed_games}/{stats.progress.total_games} games decided; "
        f"average {d.average_score:.2f}, median {d.median_score:g}, "
        f"high {d.highest_score:g}, low {d.lowest_score:g}"
    )
    if stats.failed_users:
        console.print(f"[yellow]Excluded users: {', '.join(stats.failed_users)}[/yellow]")


def _export(stats: LeagueStatsDocument, export_dir: Path | None) -> None:
    if export_dir is None:
        return
    from bracket_pool.stats.frames import export_league_tables

    paths = export_league_tables(stats, export_dir)
    console.print(f"Exported {len(paths)} tables to {export_dir / stats.league_id}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def layouts() -> None:
    """List the registered bracket layouts and scoring presets."""
    table = Table(title="Bracket Layouts")
    table.add_column("Name", style="cyan")
    table.add_column("Teams", justify="right")
    table.add_column("Rounds")
    table.add_column("Regions")
    table.add_column("Secondary")
    for name in list_layouts():
        layout = get_layout(name)
        table.add_row(
            name,
            str(layout.team_count),
            ", ".join(layout.round_keys),
            ", ".join(layout.regions) or "-",
            layout.secondary_label or "-",
        )
    console.print(table)
    console.print(f"Scoring presets: {', '.join(list_presets())}")


@app.command()
def validate(
    bracket_file: Path = typer.Argument(..., help="Bracket JSON document"),
    layout: str = typer.Option("marchMadness", "--layout", help="Registered layout name"),
) -> None:
    """Check a bracket document's structure without changing it."""
    report = validate_bracket(_read_json(bracket_file), _layout(layout))
    if report.ok:
        console.print(f"[green]{bracket_file} is a valid {layout} bracket[/green]")
        return
    for error in report.errors:
        console.print(f"[red]- {escape(error)}[/red]")
    console.print(f"[red]Error: {len(report.errors)} problem(s) found[/red]")
    raise typer.Exit(code=1)


@app.command(name="repair")
def repair_command(
    bracket_file: Path = typer.Argument(..., help="Bracket JSON document"),
    layout: str = typer.Option("marchMadness", "--layout", help="Registered layout name"),
    output: Path | None = typer.Option(None, "--output", help="Write the repaired document here"),
) -> None:
    """Repair a bracket document so it matches the layout."""
    resolved = _layout(layout)
    repaired = repair(_read_json(bracket_file), resolved).to_document(resolved)
    if output is None:
        console.print_json(data=repaired)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(repaired, indent=2), encoding="utf-8")
    console.print(f"Repaired bracket written to {output}")


@app.command(name="score")
def score_command(
    user_file: Path = typer.Argument(..., help="User bracket JSON document"),
    official_file: Path = typer.Argument(..., help="Official bracket JSON document"),
    layout: str = typer.Option("marchMadness", "--layout", help="Registered layout name"),
    settings: Path | None = typer.Option(None, "--settings", help="Scoring settings JSON document"),
) -> None:
    """Score one bracket against the official results."""
    resolved = _layout(layout)
    try:
        config = ScoringConfig.from_settings(_read_json(settings) if settings else None, resolved)
        user = load_bracket(_read_json(user_file), resolved, label=str(user_file))
        official = load_bracket(_read_json(official_file), resolved, label=str(official_file))
    except (ValidationError, MalformedBracketError) as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1)
    _print_breakdown(score(user, official, config, resolved))


@app.command()
def preview(
    league: str = typer.Option(..., "--league", help="League id"),
    store_dir: Path = typer.Option(Path("data/"), "--store-dir", help="JSON document store root"),
    layout: str | None = typer.Option(None, "--layout", help="Override the league's layout"),
    n_jobs: int = typer.Option(1, "--jobs", help="Parallel scoring workers (-1 for all cores)"),
    export_dir: Path | None = typer.Option(None, "--export", help="Also write Parquet tables here"),
) -> None:
    """Compute league standings without writing them."""
    pipeline = LeaguePipeline(
        JsonDocumentStore(store_dir),
        league,
        layout=_layout(layout) if layout else None,
        n_jobs=n_jobs,
    )
    try:
        stats = pipeline.preview()
    except (BracketPoolError, LayoutNotFoundError, ValidationError) as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1)
    _print_rankings(stats)
    _export(stats, export_dir)


@app.command()
def finalize(  # noqa: PLR0913
    league: str = typer.Option(..., "--league", help="League id"),
    store_dir: Path = typer.Option(Path("data/"), "--store-dir", help="JSON document store root"),
    layout: str | None = typer.Option(None, "--layout", help="Override the league's layout"),
    n_jobs: int = typer.Option(1, "--jobs", help="Parallel scoring workers (-1 for all cores)"),
    batch_size: int = typer.Option(
        DEFAULT_BATCH_SIZE, "--batch-size", min=1, help="Writes per committed chunk"
    ),
    export_dir: Path | None = typer.Option(None, "--export", help="Also write Parquet tables here"),
) -> None:
    """Write league statistics and update every ranked user's statistics."""
    pipeline = LeaguePipeline(
        JsonDocumentStore(store_dir),
        league,
        layout=_layout(layout) if layout else None,
        n_jobs=n_jobs,
        batch_size=batch_size,
    )
    try:
        result = pipeline.finalize()
    except (BracketPoolError, LayoutNotFoundError, ValidationError) as exc:
        console.print(f"[red]Error: {escape(str(exc))}[/red]")
        raise typer.Exit(code=1)
    _print_rankings(result.stats)
    console.print(
        f"[green]Finalized {league}: {len(result.updated_users)} user(s) updated, "
        f"{result.operations} write(s)[/green]"
    )
    _export(result.stats, export_dir)
