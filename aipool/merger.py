"""Reduce N worker responses to one: democratic, expert, or balanced merge."""

import logging
import math
from enum import Enum

from config.config_loader import RoutingConfig
from aipool.extraction import extract_phrases
from aipool.models import (
    BalancedDetails,
    DemocraticDetails,
    ExpertDetails,
    MergeKind,
    MergeResult,
    WorkerResponse,
)

logger = logging.getLogger(__name__)

_PHRASE_SIZE = 3
_HIGH_AGREEMENT = 5
_MEDIUM_AGREEMENT = 2
_MAX_LISTED_PHRASES = 10
_DEFAULT_EXPERT_WEIGHT = 1.0

NO_RESPONSES_CONTENT = "No worker responses were available to merge."


class MergeStrategy(str, Enum):
    DEMOCRATIC = "democratic"
    EXPERT = "expert"
    BALANCED = "balanced"


def parse_strategy(value: "str | MergeStrategy") -> MergeStrategy:
    """Map a strategy name to a MergeStrategy; unknown names fall back to balanced."""
    try:
        return MergeStrategy(value)
    except ValueError:
        logger.warning("Unknown merge strategy %r, falling back to balanced", value)
        return MergeStrategy.BALANCED


def agreement_level(common_count: int) -> str:
    if common_count > _HIGH_AGREEMENT:
        return "high"
    if common_count > _MEDIUM_AGREEMENT:
        return "medium"
    return "low"


def find_common_phrases(responses: list[WorkerResponse]) -> list[str]:
    """Phrases that recur in at least half (rounded up) of the other responses."""
    phrase_lists = [extract_phrases(r.content, _PHRASE_SIZE) for r in responses]
    phrase_sets = [set(p) for p in phrase_lists]
    needed = max(1, math.ceil((len(responses) - 1) / 2))

    common: dict[str, None] = {}
    for i, phrases in enumerate(phrase_lists):
        for phrase in phrases:
            if phrase in common:
                continue
            others = sum(1 for j, s in enumerate(phrase_sets) if j != i and phrase in s)
            if others >= needed:
                common[phrase] = None
    return list(common)


class ResponseMerger:
    def __init__(self, routing: RoutingConfig) -> None:
        self._expert_weights = routing.expert_weights

    def merge(
        self,
        responses: list[WorkerResponse],
        task_category: str,
        strategy: "str | MergeStrategy" = MergeStrategy.BALANCED,
    ) -> MergeResult:
        if not responses:
            return MergeResult(kind=MergeKind.NONE, content=NO_RESPONSES_CONTENT)
        if len(responses) == 1:
            return MergeResult(kind=MergeKind.SINGLE, content=responses[0].content, sources=(responses[0],))

        chosen = parse_strategy(strategy)
        logger.debug("Merging %d responses (%s, category %s)", len(responses), chosen.value, task_category)
        if chosen is MergeStrategy.DEMOCRATIC:
            return self.democratic(responses)
        if chosen is MergeStrategy.EXPERT:
            return self.expert(responses, task_category)
        return self.balanced(responses, task_category)

    def democratic(self, responses: list[WorkerResponse]) -> MergeResult:
        common = find_common_phrases(responses)
        agreement = agreement_level(len(common))

        base = responses[0]
        for r in responses[1:]:
            if len(r.content) > len(base.content):
                base = r

        listed = ", ".join(f'"{p}"' for p in common[:_MAX_LISTED_PHRASES]) or "none"
        content = (
            f"{base.content}\n\n---\n"
            f"**Consensus:** {agreement} agreement across {len(responses)} workers "
            f"({len(common)} shared phrases)\n"
            f"Common phrases: {listed}"
        )
        return MergeResult(
            kind=MergeKind.DEMOCRATIC,
            content=content,
            sources=tuple(responses),
            details=DemocraticDetails(common_phrases=common, agreement=agreement, base_worker=base.worker_name),
        )

    def expert(self, responses: list[WorkerResponse], task_category: str) -> MergeResult:
        weights = self._expert_weights.get(task_category, {})
        scores: dict[str, float] = {}
        best = responses[0]
        best_score = -math.inf

        for r in responses:
            score = weights.get(r.worker_name, _DEFAULT_EXPERT_WEIGHT) * (1 + len(r.content) / 1000)
            scores[r.worker_name] = score
            # strict comparison: ties keep the earlier response
            if score > best_score:
                best, best_score = r, score

        logger.info("Expert merge selected %s (score %.2f)", best.worker_name, best_score)
        return MergeResult(
            kind=MergeKind.EXPERT,
            content=best.content,
            sources=tuple(responses),
            details=ExpertDetails(expert_name=best.worker_name, expert_score=best_score, scores=scores),
        )

    def balanced(self, responses: list[WorkerResponse], task_category: str) -> MergeResult:
        expert = self.expert(responses, task_category)
        consensus = self.democratic(responses)
        expert_details: ExpertDetails = expert.details  # type: ignore[assignment]
        consensus_details: DemocraticDetails = consensus.details  # type: ignore[assignment]

        content = (
            f"## Expert recommendation ({expert_details.expert_name}, "
            f"score {expert_details.expert_score:.2f})\n\n"
            f"{expert.content}\n\n"
            f"## Consensus view ({consensus_details.agreement} agreement)\n\n"
            f"{consensus.content}"
        )
        return MergeResult(
            kind=MergeKind.BALANCED,
            content=content,
            sources=tuple(responses),
            details=BalancedDetails(expert=expert, consensus=consensus),
        )
