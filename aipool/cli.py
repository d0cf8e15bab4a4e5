"""Click CLI — loads config, builds the worker pool, runs a flow and prints the result."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import load_config
from aipool.autofix import SyntaxChecker
from aipool.backends.base import BackendError
from aipool.healthcheck import run_health_checks
from aipool.merger import MergeStrategy
from aipool.models import ContextFile, RefinementRound
from aipool.orchestrator import BACKEND_NAMES, Orchestrator, build_backend
from aipool.output import (
    print_answer,
    print_fix_result,
    print_outcome,
    print_quality,
    print_round_summary,
    print_tracks,
)
from aipool.refinement import MAX_ROUNDS

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_context_option = click.option(
    "--context", "-c", "context_paths", multiple=True, type=click.Path(exists=True, dir_okay=False),
    help="File to send along with the prompt (repeatable)",
)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _read_context(paths: tuple[str, ...]) -> list[ContextFile]:
    return [ContextFile(path=p, content=Path(p).read_text(encoding="utf-8")) for p in paths]


def _check_workers(orchestrator: Orchestrator) -> None:
    """Run health checks and ask the user what to do on failures.

    Exits if no worker passes or the user declines to continue.
    """
    console.print("\n[bold]Checking workers...[/bold]")
    results: dict[str, tuple[bool, str]] = asyncio.run(run_health_checks(orchestrator.pool))

    failed_names: list[str] = []
    for name, (ok, err) in results.items():
        if ok:
            console.print(f"  [green]OK  [/green] {name}")
        else:
            short_err = err.splitlines()[0][:120] if err else "unknown error"
            console.print(f"  [red]FAIL[/red] {name}: {short_err}")
            failed_names.append(name)

    if not failed_names:
        console.print()
        return

    if len(failed_names) == len(results):
        console.print("\n[bold red]Error:[/bold red] No workers passed the health check.")
        sys.exit(1)

    console.print(f"\n[yellow]{len(failed_names)} worker(s) failed:[/yellow] {', '.join(failed_names)}")
    if not click.confirm("Continue anyway? Failed workers will report fallback messages.", default=True):
        sys.exit(0)
    console.print()


def _orchestrator(ctx: click.Context) -> Orchestrator:
    state = ctx.obj
    if not state["health_checked"]:
        _check_workers(state["orchestrator"])
        state["health_checked"] = True
    return state["orchestrator"]


@click.group()
@click.option("--backend", type=click.Choice(BACKEND_NAMES), default=None,
              help="Worker backend (default: from config)")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
@click.option("--skip-health-check", is_flag=True, default=False,
              help="Skip pinging every worker at startup")
@click.pass_context
def main(ctx: click.Context, backend: str | None, verbose: bool, skip_health_check: bool) -> None:
    """AI Pool -- route coding tasks to a pool of workers and merge their answers.

    \b
    Examples:
      aipool ask "fix this bug in my function" -c app.py
      aipool ask "explain this module" --strategy expert --workers 4
      aipool refine "build a rate limiter" --adaptive
      aipool tracks "write a CSV parser"
      aipool assess app.py
      aipool fix broken.py --python
    """
    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except FileNotFoundError as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)

    try:
        worker_backend = build_backend(config, backend or config.defaults.backend)
    except (BackendError, ValueError) as exc:
        console.print(f"[bold red]Backend error:[/bold red] {exc}")
        sys.exit(1)

    ctx.obj = {
        "orchestrator": Orchestrator(config, worker_backend),
        "health_checked": skip_health_check,
    }


@main.command()
@click.argument("prompt")
@_context_option
@click.option("--strategy", type=click.Choice([s.value for s in MergeStrategy]), default=None,
              help="Merge strategy (default: from config)")
@click.option("--workers", "worker_count", type=click.IntRange(min=1), default=None,
              help="How many workers to consult (default: from config)")
@click.pass_context
def ask(ctx: click.Context, prompt: str, context_paths: tuple[str, ...], strategy: str | None,
        worker_count: int | None) -> None:
    """Send PROMPT to the best-fitting workers once and merge their answers."""
    orchestrator = _orchestrator(ctx)
    answer = asyncio.run(orchestrator.ask(prompt, _read_context(context_paths), strategy, worker_count))
    print_answer(answer)


@main.command()
@click.argument("prompt")
@_context_option
@click.option("--rounds", type=click.IntRange(1, MAX_ROUNDS), default=None,
              help="Fixed number of rounds (default: from config)")
@click.option("--adaptive", is_flag=True, help="Pick the round count from prompt complexity")
@click.pass_context
def refine(ctx: click.Context, prompt: str, context_paths: tuple[str, ...], rounds: int | None,
           adaptive: bool) -> None:
    """Refine PROMPT over several generate/critique/fix/validate/polish rounds."""
    orchestrator = _orchestrator(ctx)
    files = _read_context(context_paths)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:

        def on_round_complete(rnd: RefinementRound) -> None:
            progress.print(f"[green]OK[/green] Round {rnd.index} complete ({rnd.stage})")

        progress.add_task("Running refinement rounds...", total=None)
        outcome = asyncio.run(
            orchestrator.refine(prompt, files, adaptive=adaptive, fixed_rounds=rounds,
                                on_round_complete=on_round_complete)
        )

    for rnd in outcome.rounds:
        print_round_summary(rnd)
    print_outcome(outcome)


@main.command()
@click.argument("prompt")
@_context_option
@click.pass_context
def tracks(ctx: click.Context, prompt: str, context_paths: tuple[str, ...]) -> None:
    """Explore PROMPT along independent performance/readability/balanced tracks."""
    orchestrator = _orchestrator(ctx)
    with console.status("Running parallel tracks..."):
        result = asyncio.run(orchestrator.explore(prompt, _read_context(context_paths)))
    print_tracks(result)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def assess(ctx: click.Context, file: str) -> None:
    """Rate FILE for readability, performance, security and best practices."""
    orchestrator = _orchestrator(ctx)
    code = Path(file).read_text(encoding="utf-8")
    assessment = asyncio.run(orchestrator.assessor.assess(code))
    print_quality(assessment)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--python", "python_syntax", is_flag=True, help="Also parse FILE as Python source")
@click.pass_context
def fix(ctx: click.Context, file: str, python_syntax: bool) -> None:
    """Check FILE and route its errors to specialist fixers until it is valid."""
    orchestrator = _orchestrator(ctx)
    pipeline = orchestrator.autofix
    pipeline.checker = SyntaxChecker(python_syntax=python_syntax)
    code = Path(file).read_text(encoding="utf-8")
    result = asyncio.run(pipeline.fix(code))
    print_fix_result(result)
    for error_type, stats in pipeline.statistics().items():
        logger.debug("Fixer %s (%s): %s", error_type, stats["worker"], stats)


if __name__ == "__main__":
    main()
