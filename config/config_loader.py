"""Load settings.yaml into typed dataclasses. Checks backend API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"


@dataclass
class WorkerConfig:
    name: str
    specialty: str
    latency_factor: float = 1.0


@dataclass
class RoutingConfig:
    categories: dict[str, list[str]]          # declared order is the tie-break order
    general_specialties: list[str] = field(default_factory=list)
    expert_weights: dict[str, dict[str, float]] = field(default_factory=dict)


@dataclass
class ComplexityConfig:
    complex_keywords: list[str]
    medium_keywords: list[str]
    simple_keywords: list[str]
    base_score: int = 5


@dataclass
class StageConfig:
    name: str
    purpose: str
    workers: int
    strategy: str
    template: str


@dataclass
class ScorerConfig:
    target_length: int = 800
    target_comment_ratio: float = 0.15
    weights: dict[str, float] = field(default_factory=lambda: {
        "length": 0.2, "constructs": 0.3, "comments": 0.2, "balance": 0.3,
    })


@dataclass
class RefinementConfig:
    stages: dict[str, StageConfig]            # generate, critique, fix, validate, polish
    default_rounds: int = 5
    quality_threshold: float = 9.5
    scorer: ScorerConfig = field(default_factory=ScorerConfig)


@dataclass
class TrackConfig:
    name: str
    focus: str
    workers: list[str]
    strategy: str = "balanced"


@dataclass
class TracksConfig:
    definitions: list[TrackConfig]
    first_template: str
    refine_template: str
    rounds: int = 3


@dataclass
class QualityConfig:
    dimensions: dict[str, str]                # dimension -> worker name


@dataclass
class FixerConfig:
    error_type: str
    worker: str
    specialties: list[str]


@dataclass
class AutofixConfig:
    fixers: list[FixerConfig]
    fallback_worker: str
    max_attempts: int = 3


@dataclass
class SimulatedConfig:
    base_delay_sec: float = 0.6
    failure_rate: float = 0.0
    seed: int | None = None


@dataclass
class ModelConfig:
    name: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int
    base_url: str | None = None


@dataclass
class DefaultsConfig:
    strategy: str = "balanced"
    worker_count: int = 3
    backend: str = "simulated"


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    workers: list[WorkerConfig]
    routing: RoutingConfig
    complexity: ComplexityConfig
    refinement: RefinementConfig
    tracks: TracksConfig
    quality: QualityConfig
    autofix: AutofixConfig
    simulated: SimulatedConfig
    models: dict[str, ModelConfig] = field(default_factory=dict)
    available_backends: set[str] = field(default_factory=lambda: {"simulated"})


def _load_refinement(raw: dict) -> RefinementConfig:
    stages = {
        name: StageConfig(
            name=name,
            purpose=str(stage_raw["purpose"]),
            workers=int(stage_raw["workers"]),
            strategy=str(stage_raw["strategy"]),
            template=str(stage_raw["template"]),
        )
        for name, stage_raw in raw["stages"].items()
    }
    scorer_raw = raw.get("scorer", {})
    scorer = ScorerConfig(
        target_length=int(scorer_raw.get("target_length", 800)),
        target_comment_ratio=float(scorer_raw.get("target_comment_ratio", 0.15)),
    )
    if "weights" in scorer_raw:
        scorer.weights = {k: float(v) for k, v in scorer_raw["weights"].items()}
    return RefinementConfig(
        stages=stages,
        default_rounds=int(raw.get("default_rounds", 5)),
        quality_threshold=float(raw.get("quality_threshold", 9.5)),
        scorer=scorer,
    )


def _load_tracks(raw: dict) -> TracksConfig:
    return TracksConfig(
        definitions=[
            TrackConfig(
                name=str(t["name"]),
                focus=str(t["focus"]),
                workers=[str(w) for w in t["workers"]],
                strategy=str(t.get("strategy", "balanced")),
            )
            for t in raw["definitions"]
        ],
        first_template=str(raw["first_template"]),
        refine_template=str(raw["refine_template"]),
        rounds=int(raw.get("rounds", 3)),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing API keys but does not raise — callers check
    available_backends before building an SDK backend.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw.get("defaults", {})
    defaults = DefaultsConfig(
        strategy=str(defaults_raw.get("strategy", "balanced")),
        worker_count=int(defaults_raw.get("worker_count", 3)),
        backend=str(defaults_raw.get("backend", "simulated")),
    )

    workers = [
        WorkerConfig(
            name=str(w["name"]),
            specialty=str(w["specialty"]),
            latency_factor=float(w.get("latency_factor", 1.0)),
        )
        for w in raw["workers"]
    ]

    routing_raw = raw["routing"]
    routing = RoutingConfig(
        categories={k: [str(kw).lower() for kw in v] for k, v in routing_raw["categories"].items()},
        general_specialties=list(routing_raw.get("general_specialties", [])),
        expert_weights={
            cat: {name: float(weight) for name, weight in table.items()}
            for cat, table in routing_raw.get("expert_weights", {}).items()
        },
    )

    complexity_raw = raw["complexity"]
    complexity = ComplexityConfig(
        complex_keywords=[str(k).lower() for k in complexity_raw["complex_keywords"]],
        medium_keywords=[str(k).lower() for k in complexity_raw["medium_keywords"]],
        simple_keywords=[str(k).lower() for k in complexity_raw["simple_keywords"]],
        base_score=int(complexity_raw.get("base_score", 5)),
    )

    quality = QualityConfig(dimensions=dict(raw["quality"]["dimensions"]))

    autofix_raw = raw["autofix"]
    autofix = AutofixConfig(
        fixers=[
            FixerConfig(error_type=error_type, worker=str(f["worker"]), specialties=list(f["specialties"]))
            for error_type, f in autofix_raw["fixers"].items()
        ],
        fallback_worker=str(autofix_raw["fallback_worker"]),
        max_attempts=int(autofix_raw.get("max_attempts", 3)),
    )

    backends_raw = raw.get("backends", {})
    simulated_raw = backends_raw.get("simulated", {})
    simulated = SimulatedConfig(
        base_delay_sec=float(simulated_raw.get("base_delay_sec", 0.6)),
        failure_rate=float(simulated_raw.get("failure_rate", 0.0)),
        seed=simulated_raw.get("seed"),
    )

    models: dict[str, ModelConfig] = {}
    available_backends: set[str] = {"simulated"}

    for backend_name, model_raw in backends_raw.items():
        if backend_name == "simulated":
            continue
        models[backend_name] = ModelConfig(
            name=backend_name,
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=int(model_raw["max_tokens"]),
            base_url=model_raw.get("base_url"),
        )

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_backends.add(backend_name)
            logger.info("Backend available: %s", backend_name)
        else:
            logger.info(
                "Backend skipped (no API key): %s — set %s in .env",
                backend_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        workers=workers,
        routing=routing,
        complexity=complexity,
        refinement=_load_refinement(raw["refinement"]),
        tracks=_load_tracks(raw["tracks"]),
        quality=quality,
        autofix=autofix,
        simulated=simulated,
        models=models,
        available_backends=available_backends,
    )
