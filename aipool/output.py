"""Markdown conversation entries and Rich console output."""

import logging

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.syntax import Syntax
from rich.text import Text

from aipool.models import (
    FixResult,
    PoolAnswer,
    QualityAssessment,
    RefinementOutcome,
    RefinementRound,
    TracksResult,
    WorkerResponse,
)

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_DIMENSION_LABELS = {
    "readability": "Readability",
    "performance": "Performance",
    "security": "Security",
    "best_practices": "Best Practices",
}


def _response_preview(response: WorkerResponse, words: int = 50) -> str:
    """Return first N words of a response."""
    all_words = response.content.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


def _fenced(code: str) -> str:
    return f"```\n{code}\n```"


def format_conversation_entry(answer: PoolAnswer) -> str:
    """Render a single-shot answer as the assistant's conversation entry."""
    failed = [r for r in answer.responses if not r.succeeded]
    lines = [
        f"**Task type:** {answer.classification.primary_category} | "
        f"**Workers:** {', '.join(answer.selected_workers) or 'none'} | "
        f"**Merge:** {answer.merged.kind.value}",
        "",
        answer.merged.content,
    ]
    if failed:
        lines += ["", "**Unavailable workers:**"]
        lines += [f"- {r.worker_name}: {r.content}" for r in failed]
    return "\n".join(lines)


def format_outcome(outcome: RefinementOutcome) -> str:
    """Render a refinement run: round history first, then the final artifact."""
    status = "stopped early at the quality gate" if outcome.terminated_early else "completed"
    lines = [f"**Refinement {status} after {outcome.total_rounds} round(s)**", ""]
    if outcome.complexity is not None:
        c = outcome.complexity
        lines += [f"Complexity: {c.score}/10 ({c.tier}), planned {c.round_count} rounds", ""]
    lines += [f"- {entry}" for entry in outcome.history]
    lines += ["", "### Final artifact", "", _fenced(outcome.final_artifact)]
    return "\n".join(lines)


def format_tracks(result: TracksResult) -> str:
    lines: list[str] = []
    for track in result.tracks:
        lines += [
            f"### Track: {track.name}",
            f"*{track.focus}* ({', '.join(track.workers)})",
            "",
            _fenced(track.final_artifact),
            "",
        ]
    return "\n".join(lines).rstrip()


def format_quality_report(assessment: QualityAssessment) -> str:
    lines = [f"Code Quality: {assessment.score}/10 ({assessment.rating})", "", "Breakdown:"]
    suggestions: list[str] = []
    for key, label in _DIMENSION_LABELS.items():
        dim = assessment.breakdown.get(key)
        if dim is None:
            continue
        line = f"- {label}: {dim.score:g}/10 ({dim.source})"
        if dim.reason:
            line += f" - {dim.reason}"
        lines.append(line)
        lines += [f"    * {issue}" for issue in dim.issues[:2]]
        suggestions += dim.suggestions[:1]
    if suggestions:
        lines += ["", "Top suggestions:"]
        lines += [f"- {s}" for s in suggestions]
    return "\n".join(lines)


def print_answer(answer: PoolAnswer) -> None:
    console.print(Rule(f"[bold cyan]Worker responses ({answer.classification.primary_category})[/bold cyan]"))
    for resp in answer.responses:
        console.print(
            Panel(
                _response_preview(resp),
                title=f"[bold]{resp.worker_name}[/bold] ({resp.specialty})",
                border_style="dim" if resp.succeeded else "red",
            )
        )
    console.print(Rule(f"[bold green]Merged answer ({answer.merged.kind.value})[/bold green]"))
    console.print(Markdown(format_conversation_entry(answer)))


def print_round_summary(rnd: RefinementRound) -> None:
    ok = sum(1 for r in rnd.responses if r.succeeded)
    quality = f" | quality {rnd.quality:.1f}/10" if rnd.quality is not None else ""
    console.print(
        Text(
            f"Round {rnd.index} [{rnd.stage}] {rnd.purpose}: "
            f"{ok}/{len(rnd.responses)} ok | {rnd.merged.kind.value} merge{quality}",
            style="dim",
        )
    )


def print_outcome(outcome: RefinementOutcome) -> None:
    console.print(Rule("[bold green]Refinement result[/bold green]"))
    console.print(Markdown(format_outcome(outcome)))


def print_tracks(result: TracksResult) -> None:
    console.print(Rule("[bold green]Parallel tracks[/bold green]"))
    console.print(Markdown(format_tracks(result)))


def print_quality(assessment: QualityAssessment) -> None:
    console.print(Panel(format_quality_report(assessment), title="[bold]Quality assessment[/bold]"))


def print_fix_result(result: FixResult) -> None:
    style = "green" if result.success else "yellow"
    console.print(Rule(f"[bold {style}]{result.message}[/bold {style}]"))
    for issue in result.remaining_issues:
        console.print(f"  [{style}]{issue.severity}[/{style}] {issue.message}")
    console.print(Syntax(result.code, "python", line_numbers=True))
