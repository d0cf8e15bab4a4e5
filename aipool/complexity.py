"""Heuristic prompt complexity scoring used to plan refinement rounds."""

import logging

from config.config_loader import ComplexityConfig
from aipool.models import ComplexityAssessment

logger = logging.getLogger(__name__)

_MIN_SCORE = 1
_MAX_SCORE = 10


def rounds_for_score(score: int) -> int:
    if score <= 3:
        return 2
    if score >= 8:
        return 5
    return 3


def tier_for_score(score: int) -> str:
    if score <= 3:
        return "simple"
    if score <= 7:
        return "medium"
    return "complex"


class ComplexityAnalyzer:
    def __init__(self, config: ComplexityConfig) -> None:
        self._config = config

    def analyze(self, prompt_text: str) -> ComplexityAssessment:
        text = prompt_text.lower()
        score = self._config.base_score
        matched: list[str] = []

        for kw in self._config.complex_keywords:
            if kw in text:
                score = min(_MAX_SCORE, score + 2)
                matched.append(kw)
        for kw in self._config.medium_keywords:
            if kw in text:
                score += 1
                matched.append(kw)
        for kw in self._config.simple_keywords:
            if kw in text:
                score = max(_MIN_SCORE, score - 1)
                matched.append(kw)

        score = max(_MIN_SCORE, min(_MAX_SCORE, score))
        assessment = ComplexityAssessment(
            score=score,
            round_count=rounds_for_score(score),
            tier=tier_for_score(score),
            matched_keywords=matched,
        )
        logger.info(
            "Complexity %d/10 (%s) -> %d rounds",
            assessment.score,
            assessment.tier,
            assessment.round_count,
        )
        return assessment
