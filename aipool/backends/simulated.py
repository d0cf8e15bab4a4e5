"""Simulated backend: randomized latency, deterministic specialty-flavoured replies."""

import asyncio
import logging
import random
import re

from aipool.backends.base import BackendError, WorkerBackend
from aipool.extraction import extract_code_artifact
from aipool.models import BackendReply, ContextFile, Worker

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```")

_SPECIALTY_NOTES: dict[str, str] = {
    "refactor": "Split the logic into small named helpers and remove duplicated branches.",
    "debug": "Guard against empty input and report the failing value instead of crashing.",
    "create": "Start from a minimal working version and grow it behind a clear entry point.",
    "optimize": "Avoid repeated work inside loops and cache values that do not change.",
    "explain": "Each step is commented so the intent of the code is easy to follow.",
    "architecture": "Keep the core logic independent from I/O so it can be reused and tested.",
}
_DEFAULT_NOTE = "Keep the solution small, readable and easy to test."


def _slug_identifier(prompt: str) -> str:
    words = re.findall(r"[a-z]+", prompt.lower())[:3]
    return "_".join(words) or "solve"


class SimulatedBackend(WorkerBackend):
    """Stands in for real providers. Randomness affects latency and failures only."""

    def __init__(
        self,
        base_delay_sec: float = 0.6,
        failure_rate: float = 0.0,
        seed: int | None = None,
    ) -> None:
        self._base_delay_sec = base_delay_sec
        self._failure_rate = failure_rate
        self._rng = random.Random(seed)

    def name(self) -> str:
        return "simulated"

    async def send_prompt(
        self,
        worker: Worker,
        prompt: str,
        context_files: list[ContextFile],
    ) -> BackendReply:
        delay = self._base_delay_sec * worker.latency_factor * self._rng.uniform(0.5, 1.5)
        failed = self._rng.random() < self._failure_rate
        await asyncio.sleep(delay)

        if failed:
            raise BackendError(worker.name, "Simulated backend failure")

        logger.debug("Simulated reply from %s after %.2fs", worker.name, delay)
        return BackendReply(content=self._compose(worker, prompt, context_files))

    def _compose(self, worker: Worker, prompt: str, context_files: list[ContextFile]) -> str:
        note = _SPECIALTY_NOTES.get(worker.specialty, _DEFAULT_NOTE)
        summary = "\n".join(f"- {f.path} ({len(f.content)} chars)" for f in context_files)

        if _FENCE_RE.search(prompt):
            previous = extract_code_artifact(prompt)
            code = f"# {worker.name}: {worker.specialty} review applied\n{previous}"
        else:
            ident = _slug_identifier(prompt)
            code = (
                f"def {ident}(items):\n"
                f"    # {worker.specialty} approach by {worker.name}\n"
                "    if not items:\n"
                "        return []\n"
                "    result = []\n"
                "    for item in items:\n"
                "        result.append(item)\n"
                "    return result\n"
            )

        return (
            f"{worker.name} ({worker.specialty} specialist) response.\n\n"
            f"The proposed solution below handles the task step by step. {note}\n\n"
            f"```python\n{code.rstrip()}\n```\n\n"
            f"Context files ({len(context_files)}):\n{summary or 'none supplied'}"
        )
