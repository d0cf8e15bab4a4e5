"""Wires config, backend and components together; runs the single-shot flow."""

import logging
from collections.abc import Callable

from config.config_loader import AppConfig
from aipool.autofix import AutoFixPipeline
from aipool.backends.base import BackendError, WorkerBackend
from aipool.backends.simulated import SimulatedBackend
from aipool.classifier import TaskClassifier
from aipool.complexity import ComplexityAnalyzer
from aipool.merger import ResponseMerger
from aipool.models import ContextFile, PoolAnswer, RefinementOutcome, RefinementRound, TracksResult
from aipool.pool import WorkerPool, build_workers
from aipool.quality import CodeQualityAssessor, QualityScorer
from aipool.refinement import RefinementEngine
from aipool.tracks import ParallelTracks

logger = logging.getLogger(__name__)

BACKEND_NAMES = ("simulated", "openai", "anthropic")


def build_backend(config: AppConfig, name: str) -> WorkerBackend:
    """Instantiate a backend by name.

    Raises:
        BackendError: If an SDK backend is requested without its API key.
        ValueError: If the name is unknown.
    """
    if name == "simulated":
        sim = config.simulated
        return SimulatedBackend(base_delay_sec=sim.base_delay_sec, failure_rate=sim.failure_rate, seed=sim.seed)
    if name not in config.models:
        raise ValueError(f"Unknown backend: {name}")
    if name not in config.available_backends:
        raise BackendError(name, f"Missing API key: {config.models[name].api_key_env}")

    # SDK imports stay local so the simulated path never needs them
    if name == "openai":
        from aipool.backends.openai_backend import OpenAIBackend
        return OpenAIBackend(config.models[name])
    if name == "anthropic":
        from aipool.backends.anthropic import AnthropicBackend
        return AnthropicBackend(config.models[name])
    raise ValueError(f"Unknown backend: {name}")


class Orchestrator:
    """Owns one WorkerPool and every component that runs against it."""

    def __init__(
        self,
        config: AppConfig,
        backend: WorkerBackend,
        scorer: QualityScorer | None = None,
    ) -> None:
        self.config = config
        self.pool = WorkerPool(build_workers(config.workers), backend)
        self.classifier = TaskClassifier(config.routing, self.pool.workers)
        self.merger = ResponseMerger(config.routing)
        self.analyzer = ComplexityAnalyzer(config.complexity)
        self.refinement = RefinementEngine(
            self.pool, self.classifier, self.merger, self.analyzer, config.refinement, scorer=scorer,
        )
        self.tracks = ParallelTracks(self.pool, self.classifier, self.merger, config.tracks)
        self.assessor = CodeQualityAssessor(self.pool, config.quality)
        self.autofix = AutoFixPipeline(self.pool, config.autofix)

    async def ask(
        self,
        prompt_text: str,
        context_files: list[ContextFile] | None = None,
        strategy: str | None = None,
        worker_count: int | None = None,
    ) -> PoolAnswer:
        """Classify, pick workers, dispatch and merge once."""
        count = worker_count if worker_count is not None else self.config.defaults.worker_count
        chosen_strategy = strategy or self.config.defaults.strategy

        classification = self.classifier.classify(prompt_text)
        selected = self.classifier.select_workers(classification, count)
        logger.info("Task category %s -> %s", classification.primary_category, ", ".join(selected))

        responses = await self.pool.dispatch(prompt_text, selected, context_files)
        usable = [r for r in responses if r.succeeded] or responses
        merged = self.merger.merge(usable, classification.primary_category, chosen_strategy)

        return PoolAnswer(
            prompt=prompt_text,
            classification=classification,
            selected_workers=selected,
            responses=responses,
            merged=merged,
        )

    async def refine(
        self,
        prompt_text: str,
        context_files: list[ContextFile] | None = None,
        adaptive: bool = False,
        fixed_rounds: int | None = None,
        on_round_complete: Callable[[RefinementRound], None] | None = None,
    ) -> RefinementOutcome:
        return await self.refinement.run(
            prompt_text,
            context_files,
            adaptive=adaptive,
            fixed_rounds=fixed_rounds,
            on_round_complete=on_round_complete,
        )

    async def explore(
        self,
        prompt_text: str,
        context_files: list[ContextFile] | None = None,
    ) -> TracksResult:
        return await self.tracks.run(prompt_text, context_files)
