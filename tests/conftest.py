"""Shared pytest fixtures."""

import asyncio
from collections.abc import Callable

import pytest

from config.config_loader import (
    AppConfig,
    ComplexityConfig,
    RefinementConfig,
    RoutingConfig,
    StageConfig,
    TrackConfig,
    TracksConfig,
    load_config,
)
from aipool.backends.base import BackendError, WorkerBackend
from aipool.classifier import TaskClassifier
from aipool.complexity import ComplexityAnalyzer
from aipool.merger import ResponseMerger
from aipool.models import BackendReply, ContextFile, Worker, WorkerResponse
from aipool.pool import WorkerPool
from aipool.quality import QualityScorer

Reply = str | Callable[[str], str]


class FakeBackend(WorkerBackend):
    """Deterministic test double WorkerBackend.

    Replies are looked up per worker name; a callable reply receives the
    prompt. Workers listed in ``failures`` raise BackendError, workers in
    ``crashes`` raise a plain RuntimeError.

    With ``barrier=N`` every call waits until N calls have started, so a
    caller that runs them one after another never gets past the first.
    A worker with an entry in ``gates`` waits for that event before
    replying, which lets a test choose the completion order.
    """

    def __init__(
        self,
        replies: dict[str, Reply] | None = None,
        default: str = "```python\ndef answer():\n    return 42\n```",
        failures: set[str] | None = None,
        crashes: set[str] | None = None,
        barrier: int | None = None,
        gates: dict[str, asyncio.Event] | None = None,
    ) -> None:
        self.replies = replies or {}
        self.default = default
        self.failures = failures or set()
        self.crashes = crashes or set()
        self.barrier = barrier
        self.gates = gates or {}
        self.calls: list[tuple[str, str]] = []
        self.context_seen: list[list[ContextFile]] = []
        self.completed: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._all_started = asyncio.Event()

    def name(self) -> str:
        return "fake"

    async def send_prompt(self, worker: Worker, prompt: str, context_files: list[ContextFile]) -> BackendReply:
        self.calls.append((worker.name, prompt))
        self.context_seen.append(context_files)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await self._wait_turn(worker.name)
            if worker.name in self.failures:
                raise BackendError(worker.name, "API error")
            if worker.name in self.crashes:
                raise RuntimeError("connection reset")
            reply = self.replies.get(worker.name, self.default)
            if callable(reply):
                reply = reply(prompt)
            return BackendReply(content=reply)
        finally:
            self.in_flight -= 1
            self.completed.append(worker.name)

    async def _wait_turn(self, worker_name: str) -> None:
        if self.barrier is not None:
            if len(self.calls) >= self.barrier:
                self._all_started.set()
            await self._all_started.wait()
        gate = self.gates.get(worker_name)
        if gate is not None:
            await gate.wait()

    def prompts_for(self, worker_name: str) -> list[str]:
        return [p for name, p in self.calls if name == worker_name]


class FixedScorer(QualityScorer):
    """Returns queued scores in order, then repeats the last one."""

    def __init__(self, scores: list[float]) -> None:
        self.scores = list(scores)
        self.seen: list[str] = []

    def score(self, artifact: str) -> float:
        self.seen.append(artifact)
        if len(self.scores) > 1:
            return self.scores.pop(0)
        return self.scores[0]


def make_response(worker_name: str, content: str, succeeded: bool = True, specialty: str = "general") -> WorkerResponse:
    return WorkerResponse(
        worker_name=worker_name,
        content=content,
        timestamp=0.0,
        specialty=specialty,
        succeeded=succeeded,
    )


@pytest.fixture
def sample_routing() -> RoutingConfig:
    return RoutingConfig(
        categories={
            "refactor": ["refactor", "clean"],
            "debug": ["bug", "fix", "error"],
            "create": ["create", "build"],
            "optimize": ["optimiz", "faster"],
        },
        general_specialties=["general"],
        expert_weights={"debug": {"Qwen": 2.0, "Claude": 1.5}},
    )


@pytest.fixture
def sample_workers() -> list[Worker]:
    return [
        Worker("worker-1", "Claude", "refactor"),
        Worker("worker-2", "Qwen", "debug"),
        Worker("worker-3", "Llama", "create"),
        Worker("worker-4", "DeepSeek", "optimize"),
        Worker("worker-5", "Mistral", "general"),
        Worker("worker-6", "StarCoder", "debug"),
    ]


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def pool(sample_workers: list[Worker], fake_backend: FakeBackend) -> WorkerPool:
    return WorkerPool(sample_workers, fake_backend)


@pytest.fixture
def classifier(sample_routing: RoutingConfig, sample_workers: list[Worker]) -> TaskClassifier:
    return TaskClassifier(sample_routing, sample_workers)


@pytest.fixture
def merger(sample_routing: RoutingConfig) -> ResponseMerger:
    return ResponseMerger(sample_routing)


@pytest.fixture
def sample_complexity() -> ComplexityConfig:
    return ComplexityConfig(
        complex_keywords=["architecture", "distributed", "concurrent", "security"],
        medium_keywords=["api", "test", "class"],
        simple_keywords=["simple", "small", "typo"],
    )


@pytest.fixture
def analyzer(sample_complexity: ComplexityConfig) -> ComplexityAnalyzer:
    return ComplexityAnalyzer(sample_complexity)


@pytest.fixture
def sample_refinement() -> RefinementConfig:
    def stage(name: str, workers: int, strategy: str, template: str) -> StageConfig:
        return StageConfig(name=name, purpose=f"{name} purpose", workers=workers, strategy=strategy, template=template)

    return RefinementConfig(
        stages={
            "generate": stage("generate", 5, "balanced", "{prompt}"),
            "critique": stage("critique", 3, "democratic", "Critique for {prompt}:\n```\n{code}\n```"),
            "fix": stage("fix", 3, "expert", "Fix for {prompt}:\n```\n{code}\n```"),
            "validate": stage("validate", 1, "expert", "Validate for {prompt}:\n```\n{code}\n```"),
            "polish": stage("polish", 2, "balanced", "Polish for {prompt}:\n```\n{code}\n```"),
        },
    )


@pytest.fixture
def sample_tracks() -> TracksConfig:
    return TracksConfig(
        definitions=[
            TrackConfig(name="performance", focus="Make it fast", workers=["DeepSeek", "Qwen"]),
            TrackConfig(name="readability", focus="Make it readable", workers=["Claude", "Mistral"]),
            TrackConfig(name="balanced", focus="Balance both", workers=["Llama", "StarCoder"]),
        ],
        first_template="{prompt}\n\nFocus: {focus}",
        refine_template="Improve for {prompt}. Focus: {focus}\n```\n{code}\n```",
    )


@pytest.fixture
def app_config() -> AppConfig:
    """The bundled settings.yaml with simulated latency switched off."""
    config = load_config()
    config.simulated.base_delay_sec = 0.0
    return config
