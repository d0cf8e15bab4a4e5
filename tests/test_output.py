"""Tests for aipool/output.py."""

import pytest

from aipool.models import (
    ComplexityAssessment,
    DimensionScore,
    MergeKind,
    MergeResult,
    PoolAnswer,
    QualityAssessment,
    RefinementOutcome,
    TaskClassification,
    Track,
    TracksResult,
)
from aipool.output import (
    _response_preview,
    format_conversation_entry,
    format_outcome,
    format_quality_report,
    format_tracks,
)
from tests.conftest import make_response


@pytest.fixture
def sample_answer() -> PoolAnswer:
    responses = [
        make_response("Qwen", "Guard the empty list."),
        make_response("StarCoder", "StarCoder could not complete this request ([StarCoder] API error).", succeeded=False),
    ]
    return PoolAnswer(
        prompt="fix this bug",
        classification=TaskClassification("debug", {"debug": 2}, ("debug",)),
        selected_workers=["Qwen", "StarCoder"],
        responses=responses,
        merged=MergeResult(kind=MergeKind.SINGLE, content="Guard the empty list.", sources=(responses[0],)),
    )


def test_response_preview_truncates():
    resp = make_response("Qwen", " ".join(["word"] * 60))
    preview = _response_preview(resp)
    assert preview.endswith("...")
    assert len(preview.split()) == 50


def test_response_preview_short_unchanged():
    assert _response_preview(make_response("Qwen", "short answer")) == "short answer"


def test_format_conversation_entry_header(sample_answer):
    text = format_conversation_entry(sample_answer)
    assert "**Task type:** debug" in text
    assert "**Workers:** Qwen, StarCoder" in text
    assert "**Merge:** single" in text
    assert "Guard the empty list." in text


def test_format_conversation_entry_lists_unavailable_workers(sample_answer):
    text = format_conversation_entry(sample_answer)
    assert "**Unavailable workers:**" in text
    assert "- StarCoder: StarCoder could not complete" in text


def test_format_conversation_entry_no_failures_section(sample_answer):
    sample_answer.responses = sample_answer.responses[:1]
    assert "Unavailable" not in format_conversation_entry(sample_answer)


def test_format_outcome():
    outcome = RefinementOutcome(
        final_artifact="def f():\n    return 1",
        total_rounds=2,
        history=["Round 1/5 [generate] ...", "Round 2/5 [critique] ... (quality gate reached, stopping early)"],
        terminated_early=True,
        complexity=ComplexityAssessment(score=9, round_count=5, tier="complex"),
    )
    text = format_outcome(outcome)
    assert "stopped early at the quality gate after 2 round(s)" in text
    assert "Complexity: 9/10 (complex), planned 5 rounds" in text
    assert "- Round 1/5 [generate] ..." in text
    assert text.endswith("```\ndef f():\n    return 1\n```")


def test_format_outcome_completed():
    outcome = RefinementOutcome(final_artifact="x", total_rounds=3, history=[], terminated_early=False)
    text = format_outcome(outcome)
    assert "completed after 3 round(s)" in text
    assert "Complexity" not in text


def test_format_tracks():
    result = TracksResult(tracks=(
        Track("performance", "Make it fast", ["DeepSeek", "Grok"], final_artifact="fast()"),
        Track("readability", "Make it clear", ["Claude"], final_artifact="clear()"),
    ))
    text = format_tracks(result)
    assert "### Track: performance" in text
    assert "*Make it fast* (DeepSeek, Grok)" in text
    assert "```\nclear()\n```" in text
    assert text.index("performance") < text.index("readability")


def test_format_quality_report():
    assessment = QualityAssessment(
        score=6.5,
        rating="Fair",
        breakdown={
            "readability": DimensionScore("readability", 8, "GPT-4o", reason="clear"),
            "security": DimensionScore(
                "security", 5, "heuristic", issues=["eval() detected", "innerHTML", "third"],
                suggestions=["avoid eval", "second"],
            ),
        },
        code_length=120,
    )
    text = format_quality_report(assessment)
    assert text.startswith("Code Quality: 6.5/10 (Fair)")
    assert "- Readability: 8/10 (GPT-4o) - clear" in text
    assert "- Security: 5/10 (heuristic)" in text
    assert "third" not in text
    assert "- avoid eval" in text
    assert "second" not in text
