"""Keyword classification of prompts and specialty-based worker ranking."""

import logging

from config.config_loader import RoutingConfig
from aipool.models import TaskClassification, Worker

logger = logging.getLogger(__name__)

_PRIMARY_WEIGHT = 3.0
_RELEVANCE_WEIGHT = 1.0
_GENERAL_WEIGHT = 0.5


class TaskClassifier:
    """Scores prompts against the configured category keywords.

    Category order in the routing config is significant: it breaks ties for
    the primary category, and the first category is the fallback when no
    keyword matches at all.
    """

    def __init__(self, routing: RoutingConfig, workers: list[Worker]) -> None:
        if not routing.categories:
            raise ValueError("Routing config declares no categories")
        self._routing = routing
        self._workers = list(workers)

    @property
    def categories(self) -> list[str]:
        return list(self._routing.categories)

    def classify(self, prompt_text: str) -> TaskClassification:
        text = prompt_text.lower()
        scores = {
            category: sum(1 for kw in keywords if kw in text)
            for category, keywords in self._routing.categories.items()
        }

        primary = next(iter(scores))
        for category, score in scores.items():
            if score > scores[primary]:
                primary = category

        matched = tuple(c for c, s in scores.items() if s > 0)
        logger.debug("Classified prompt as %s (scores: %s)", primary, scores)
        return TaskClassification(primary_category=primary, scores=scores, matched_categories=matched)

    def worker_score(self, worker: Worker, classification: TaskClassification) -> float:
        relevant = set(classification.matched_categories) or {classification.primary_category}
        score = 0.0
        if worker.specialty == classification.primary_category:
            score += _PRIMARY_WEIGHT
        if worker.specialty in relevant:
            score += _RELEVANCE_WEIGHT
        if worker.specialty in self._routing.general_specialties:
            score += _GENERAL_WEIGHT
        return score

    def select_workers(self, classification: TaskClassification, count: int) -> list[str]:
        """Return the names of the best-fitting workers, at most the pool size.

        Sorting is stable, so equal scores keep registration order.
        """
        if count <= 0:
            return []
        ranked = sorted(self._workers, key=lambda w: self.worker_score(w, classification), reverse=True)
        return [w.name for w in ranked[:count]]
