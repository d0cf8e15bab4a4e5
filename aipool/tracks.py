"""Parallel exploration tracks: independent refinement loops run side by side."""

import asyncio
import logging

from config.config_loader import TrackConfig, TracksConfig
from aipool.classifier import TaskClassifier
from aipool.merger import ResponseMerger
from aipool.models import ContextFile, RefinementRound, Track, TracksResult
from aipool.pool import WorkerPool
from aipool.refinement import run_cycle

logger = logging.getLogger(__name__)


class ParallelTracks:
    """Runs every configured track concurrently; rounds inside a track are sequential.

    Tracks never see each other's artifacts and their results are not merged.
    """

    def __init__(
        self,
        pool: WorkerPool,
        classifier: TaskClassifier,
        merger: ResponseMerger,
        config: TracksConfig,
    ) -> None:
        self._pool = pool
        self._classifier = classifier
        self._merger = merger
        self._config = config

    async def run(
        self,
        prompt_text: str,
        context_files: list[ContextFile] | None = None,
    ) -> TracksResult:
        files = list(context_files or [])
        category = self._classifier.classify(prompt_text).primary_category
        logger.info("Starting %d parallel tracks", len(self._config.definitions))
        tracks = await asyncio.gather(
            *(self._run_track(d, prompt_text, category, files) for d in self._config.definitions)
        )
        return TracksResult(tracks=tuple(tracks))

    async def _run_track(
        self,
        definition: TrackConfig,
        prompt_text: str,
        category: str,
        context_files: list[ContextFile],
    ) -> Track:
        track = Track(name=definition.name, focus=definition.focus, workers=list(definition.workers))
        artifact = ""

        for index in range(1, self._config.rounds + 1):
            if index == 1:
                prompt = self._config.first_template.format(prompt=prompt_text, focus=definition.focus)
            else:
                prompt = self._config.refine_template.format(
                    prompt=prompt_text, focus=definition.focus, code=artifact,
                )

            responses, merged, artifact = await run_cycle(
                self._pool,
                self._merger,
                prompt,
                track.workers,
                category,
                definition.strategy,
                context_files,
            )
            track.history.append(RefinementRound(
                index=index,
                stage="explore" if index == 1 else "refine",
                purpose=definition.focus,
                prompt=prompt,
                responses=responses,
                merged=merged,
                artifact=artifact,
            ))
            logger.info("Track %s round %d/%d complete", definition.name, index, self._config.rounds)

        track.final_artifact = artifact
        return track
