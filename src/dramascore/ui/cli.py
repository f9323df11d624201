"""Command-line interface for DramaScore."""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ..config import Config
from ..core.importer import FileImportError, import_script
from ..core.metrics import compute_metrics
from ..core.models import DramaScoreError, ParseResult
from ..core.preflight import ensure_scorable, parse_and_preflight
from ..core.windows import build_windows
from ..logging_config import setup_logging
from ..report import render_report
from ..scoring.aggregate import AnalysisScoreResult
from ..scoring.rules import score_document

app = typer.Typer(
    name="dramascore",
    help="Quality scorer for multi-episode short-drama scripts"
)
console = Console()

STATUS_STYLES = {'ok': 'green', 'warn': 'yellow', 'fail': 'red'}


@app.callback()
def configure(
    log_level: str = typer.Option(Config.LOG_LEVEL, help="Logging level"),
):
    """Quality scorer for multi-episode short-drama scripts."""
    setup_logging(log_level)


def _read_script(script_file: Path) -> str:
    try:
        return import_script(script_file).text
    except FileImportError as e:
        console.print(f"[red]Error: {e.message}[/red]")
        raise typer.Exit(1)


def _print_issues(parsed: ParseResult) -> None:
    if not parsed.errors and not parsed.warnings:
        console.print("[green]No preflight issues.[/green]")
        return
    for issue in parsed.errors:
        console.print(f"  [red]FATAL[/red] {issue.code.value}: {issue.message}")
    for issue in parsed.warnings:
        console.print(f"  [yellow]WARN[/yellow]  {issue.code.value}: {issue.message}")


def rule_score(parsed: ParseResult) -> AnalysisScoreResult:
    """Deterministic score of a parsed, scorable document."""
    ensure_scorable(parsed)
    language, tokenizer = parsed.meta.language, parsed.meta.tokenizer
    metrics = compute_metrics(parsed.episodes, language, tokenizer)
    windows = build_windows(parsed.episodes, tokenizer)
    return score_document(
        parsed.episodes,
        windows,
        language,
        tokenizer,
        total_words=metrics.totals.word_count,
        ingest=parsed.ingest,
    )


def ai_score(parsed: ParseResult) -> AnalysisScoreResult:
    """Two-pass AI score of a parsed, scorable document."""
    from ..ai.orchestrator import evaluate_ai_score

    ensure_scorable(parsed)
    return asyncio.run(evaluate_ai_score(parsed.episodes, parsed.meta.language, parsed.meta.tokenizer))


def _print_result(result: AnalysisScoreResult) -> None:
    b = result.breakdown
    console.print(Panel(
        f"Grade: [bold]{b.grade.value}[/bold]\n"
        f"Overall: {b.overall100}/100\n"
        f"Total: {b.total110:.2f}/110\n\n"
        f"Pay {b.pay:.2f}/50 | Story {b.story:.2f}/30 | "
        f"Market {b.market:.2f}/20 | Potential {b.potential:.2f}/10",
        title="Score"
    ))
    if result.redline_hit:
        console.print(f"[red]Redline content detected: {', '.join(result.redline_evidence)}[/red]")

    if result.items:
        table = Table(title="Audit Items")
        table.add_column("Item")
        table.add_column("Status")
        table.add_column("Score", justify="right")
        table.add_column("Reason")
        for item in result.items:
            style = STATUS_STYLES.get(item.status.value, 'white')
            table.add_row(
                item.id,
                f"[{style}]{item.status.value}[/{style}]",
                f"{item.score:g}/{item.max:g}",
                item.reason,
            )
        console.print(table)

    if result.presentation:
        console.print(Panel(result.presentation['commercialSummary'], title="Summary"))


@app.command()
def preflight(
    script_file: Path = typer.Argument(..., help="Path to script document"),
    as_json: bool = typer.Option(False, "--json", help="Print the parse result as JSON"),
):
    """Parse a script and report preflight issues."""

    parsed = parse_and_preflight(_read_script(script_file))

    if as_json:
        console.print_json(json.dumps(parsed.to_dict(), ensure_ascii=False))
    else:
        console.print(Panel(
            f"Title: {parsed.meta.title or '-'}\n"
            f"Language: {parsed.meta.language.value} ({parsed.meta.tokenizer.value})\n"
            f"Episodes: {parsed.ingest.observed_count} observed, "
            f"{parsed.ingest.total_for_scoring} for scoring\n"
            f"Mode: {parsed.ingest.mode.value}",
            title="Preflight"
        ))
        _print_issues(parsed)

    if not parsed.is_scorable:
        raise typer.Exit(1)


@app.command()
def score(
    script_file: Path = typer.Argument(..., help="Path to script document"),
    use_ai: bool = typer.Option(False, "--ai", help="Use the two-pass AI scorer"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
    report: Optional[Path] = typer.Option(None, help="Write a markdown report to this path"),
):
    """Score a script document."""

    parsed = parse_and_preflight(_read_script(script_file))

    try:
        if use_ai:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                task = progress.add_task("Scoring with AI...", total=None)
                result = ai_score(parsed)
                progress.update(task, completed=True)
        else:
            result = rule_score(parsed)
    except DramaScoreError as e:
        console.print(f"[red]{e.code}: {e.message}[/red]")
        raise typer.Exit(1)

    if as_json:
        console.print_json(json.dumps(result.to_dict(), ensure_ascii=False))
    else:
        _print_issues(parsed)
        _print_result(result)

    if report:
        report.parent.mkdir(parents=True, exist_ok=True)
        report.write_text(render_report(parsed, result), encoding='utf-8')
        console.print(f"Report written to {report}")


@app.command()
def serve(
    host: str = typer.Option(Config.HOST, help="Bind address"),
    port: int = typer.Option(Config.PORT, help="Port"),
    debug: bool = typer.Option(False, help="Enable Flask debug mode"),
):
    """Run the scoring HTTP API."""
    from ..web.app import run_app

    console.print(f"Starting server at http://{host}:{port}")
    run_app(host=host, port=port, debug=debug)


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
