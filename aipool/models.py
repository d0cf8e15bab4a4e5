"""Pure dataclasses for the worker pool pipeline. No logic, no deps."""

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class ContextFile:
    path: str
    content: str


@dataclass(frozen=True)
class Worker:
    worker_id: str
    name: str                  # display name, unique within a pool
    specialty: str             # "refactor", "debug", ... or a general specialty
    latency_factor: float = 1.0


@dataclass
class TaskClassification:
    primary_category: str
    scores: dict[str, int]                 # category -> keyword hits, declared order
    matched_categories: tuple[str, ...]    # categories with score > 0


@dataclass
class BackendReply:
    content: str
    succeeded: bool = True


@dataclass(frozen=True)
class WorkerResponse:
    worker_name: str
    content: str
    timestamp: float           # time.monotonic() when the reply resolved
    specialty: str
    succeeded: bool


class MergeKind(str, Enum):
    NONE = "none"
    SINGLE = "single"
    DEMOCRATIC = "democratic"
    EXPERT = "expert"
    BALANCED = "balanced"


@dataclass
class DemocraticDetails:
    common_phrases: list[str]
    agreement: str             # "high", "medium", "low"
    base_worker: str           # whose response forms the merged body


@dataclass
class ExpertDetails:
    expert_name: str
    expert_score: float
    scores: dict[str, float]


@dataclass
class BalancedDetails:
    expert: "MergeResult"
    consensus: "MergeResult"


@dataclass
class MergeResult:
    kind: MergeKind
    content: str
    sources: tuple[WorkerResponse, ...] = ()
    details: DemocraticDetails | ExpertDetails | BalancedDetails | None = None


@dataclass
class ComplexityAssessment:
    score: int                 # 1..10
    round_count: int           # 2, 3 or 5
    tier: str                  # "simple", "medium", "complex"
    matched_keywords: list[str] = field(default_factory=list)


@dataclass
class RefinementRound:
    index: int                 # 1-based
    stage: str
    purpose: str
    prompt: str
    responses: list[WorkerResponse]
    merged: MergeResult
    artifact: str
    quality: float | None = None


@dataclass
class RefinementOutcome:
    final_artifact: str
    total_rounds: int
    history: list[str]
    terminated_early: bool
    rounds: list[RefinementRound] = field(default_factory=list)
    complexity: ComplexityAssessment | None = None


@dataclass
class Track:
    name: str
    focus: str
    workers: list[str]
    history: list[RefinementRound] = field(default_factory=list)
    final_artifact: str = ""


@dataclass
class TracksResult:
    tracks: tuple[Track, ...]

    @property
    def final_artifacts(self) -> tuple[str, ...]:
        return tuple(t.final_artifact for t in self.tracks)


@dataclass
class PoolAnswer:
    prompt: str
    classification: TaskClassification
    selected_workers: list[str]
    responses: list[WorkerResponse]
    merged: MergeResult


@dataclass
class DimensionScore:
    dimension: str             # "readability", "performance", "security", "best_practices"
    score: float
    source: str                # worker name, or "heuristic"
    reason: str = ""
    issues: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass
class QualityAssessment:
    score: float
    rating: str
    breakdown: dict[str, DimensionScore]
    code_length: int


@dataclass
class CodeIssue:
    kind: str                  # "syntax", "type", "runtime", "style", ...
    message: str
    severity: str = "error"    # "error" or "warning"
    line: int | None = None


@dataclass
class CodeCheck:
    issues: list[CodeIssue] = field(default_factory=list)

    @property
    def errors(self) -> list[CodeIssue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class FixAttempt:
    attempt: int
    code: str
    check: CodeCheck
    error_type: str | None = None
    fixer: str | None = None


@dataclass
class FixResult:
    success: bool
    code: str
    attempts: int
    history: list[FixAttempt]
    message: str
    remaining_issues: list[CodeIssue] = field(default_factory=list)
