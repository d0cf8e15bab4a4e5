"""Recursive refinement: sequential classify -> dispatch -> merge rounds."""

import logging
from collections.abc import Callable

from config.config_loader import RefinementConfig, StageConfig
from aipool.classifier import TaskClassifier
from aipool.complexity import ComplexityAnalyzer
from aipool.extraction import extract_code_artifact
from aipool.merger import ResponseMerger
from aipool.models import (
    ComplexityAssessment,
    ContextFile,
    MergeResult,
    RefinementOutcome,
    RefinementRound,
    WorkerResponse,
)
from aipool.pool import WorkerPool
from aipool.quality import HeuristicQualityScorer, QualityScorer

logger = logging.getLogger(__name__)

STAGE_ORDER = ("generate", "critique", "fix", "validate", "polish")
MAX_ROUNDS = len(STAGE_ORDER)


def plan_stages(round_count: int) -> list[str]:
    """Stage names for a run of ``round_count`` rounds.

    Shorter runs keep the leading stages and always finish on polish.
    """
    if not 1 <= round_count <= MAX_ROUNDS:
        raise ValueError(f"Round count must be between 1 and {MAX_ROUNDS}, got {round_count}")
    if round_count == 1:
        return ["generate"]
    return list(STAGE_ORDER[:round_count - 1]) + ["polish"]


async def run_cycle(
    pool: WorkerPool,
    merger: ResponseMerger,
    prompt: str,
    worker_names: list[str],
    category: str,
    strategy: str,
    context_files: list[ContextFile],
) -> tuple[list[WorkerResponse], MergeResult, str]:
    """One dispatch -> merge -> extract cycle.

    Failed responses are left out of the merge unless nothing succeeded,
    in which case the failure messages are merged so they stay visible.
    """
    responses = await pool.dispatch(prompt, worker_names, context_files)
    usable = [r for r in responses if r.succeeded] or responses
    merged = merger.merge(usable, category, strategy)
    return responses, merged, extract_code_artifact(merged.content)


def _summarize(rnd: RefinementRound, total: int, early_exit: bool) -> str:
    ok = sum(1 for r in rnd.responses if r.succeeded)
    line = (
        f"Round {rnd.index}/{total} [{rnd.stage}] {rnd.purpose}: "
        f"{ok}/{len(rnd.responses)} workers succeeded, {rnd.merged.kind.value} merge"
    )
    if rnd.quality is not None:
        line += f", quality {rnd.quality:.1f}/10"
    if early_exit:
        line += " (quality gate reached, stopping early)"
    return line


class RefinementEngine:
    """Drives rounds 1..N. Round k's artifact is the code input of round k+1."""

    def __init__(
        self,
        pool: WorkerPool,
        classifier: TaskClassifier,
        merger: ResponseMerger,
        analyzer: ComplexityAnalyzer,
        config: RefinementConfig,
        scorer: QualityScorer | None = None,
    ) -> None:
        self._pool = pool
        self._classifier = classifier
        self._merger = merger
        self._analyzer = analyzer
        self._config = config
        self._scorer = scorer or HeuristicQualityScorer(config.scorer)

    def _stage(self, name: str) -> StageConfig:
        return self._config.stages[name]

    async def run(
        self,
        prompt_text: str,
        context_files: list[ContextFile] | None = None,
        adaptive: bool = False,
        fixed_rounds: int | None = None,
        on_round_complete: Callable[[RefinementRound], None] | None = None,
    ) -> RefinementOutcome:
        """Run the refinement state machine.

        Args:
            prompt_text: The user's task.
            context_files: Files passed to every worker invocation.
            adaptive: Take the round count from the complexity analyzer.
            fixed_rounds: Round count when not adaptive (default from config).
            on_round_complete: Optional callback invoked after each round.

        Returns:
            RefinementOutcome with the final artifact and round history.

        Raises:
            ValueError: If the round count is outside 1..5.
        """
        files = list(context_files or [])
        complexity: ComplexityAssessment | None = None
        if adaptive:
            complexity = self._analyzer.analyze(prompt_text)
            total = complexity.round_count
        else:
            total = fixed_rounds if fixed_rounds is not None else self._config.default_rounds

        stages = plan_stages(total)
        rounds: list[RefinementRound] = []
        history: list[str] = []
        artifact = ""
        terminated_early = False

        for index, stage_name in enumerate(stages, start=1):
            stage = self._stage(stage_name)
            round_prompt = stage.template.format(prompt=prompt_text, code=artifact)
            classification = self._classifier.classify(round_prompt)
            worker_names = self._classifier.select_workers(classification, stage.workers)

            logger.info("Round %d/%d (%s): %s", index, total, stage_name, ", ".join(worker_names))
            responses, merged, artifact = await run_cycle(
                self._pool,
                self._merger,
                round_prompt,
                worker_names,
                classification.primary_category,
                stage.strategy,
                files,
            )

            is_final = index == total
            quality = None if is_final else self._scorer.score(artifact)
            early_exit = quality is not None and quality >= self._config.quality_threshold

            current = RefinementRound(
                index=index,
                stage=stage_name,
                purpose=stage.purpose,
                prompt=round_prompt,
                responses=responses,
                merged=merged,
                artifact=artifact,
                quality=quality,
            )
            rounds.append(current)
            history.append(_summarize(current, total, early_exit))

            if on_round_complete:
                on_round_complete(current)

            if early_exit:
                logger.info("Quality %.1f reached threshold after round %d, stopping early", quality, index)
                terminated_early = True
                break

        return RefinementOutcome(
            final_artifact=artifact,
            total_rounds=len(rounds),
            history=history,
            terminated_early=terminated_early,
            rounds=rounds,
            complexity=complexity,
        )
