"""Code quality scoring.

Two scorers live here:

* ``HeuristicQualityScorer`` is the cheap, synchronous gate used between
  refinement rounds. It implements the ``QualityScorer`` interface so the
  refinement engine can be given any other scorer.
* ``CodeQualityAssessor`` asks pool workers to rate four dimensions of a
  piece of code and falls back to local heuristics whenever a worker is
  missing, fails, or answers with something that is not valid JSON.
"""

import asyncio
import json
import logging
import re
from abc import ABC, abstractmethod

from config.config_loader import QualityConfig, ScorerConfig
from aipool.autofix import brackets_balanced
from aipool.models import DimensionScore, QualityAssessment
from aipool.pool import WorkerPool

logger = logging.getLogger(__name__)

_CONSTRUCT_RE = re.compile(r"\b(def|class|function)\b|=>")
_COMMENT_PREFIXES = ("#", "//", "/*", "*", '"""', "'''")
_JSON_OBJECT_RE = re.compile(r"\{.*\}", re.DOTALL)
_LOOP_RE = re.compile(r"^\s*(for|while)\b")
_INLINE_NESTED_LOOP_RE = re.compile(r"\bfor\b.*\bfor\b|\bwhile\b.*\bwhile\b")
_METHOD_CALL_RE = re.compile(r"\.\w+\(")
_SECRET_LOG_RE = re.compile(r"(print|console\.log|logger\.\w+|logging\.\w+)\(.*(password|token|secret)", re.IGNORECASE)
_FUNCTION_DEF_RE = re.compile(r"\bdef\s+\w+\s*\(|\bfunction\s+\w+\s*\(|(?:const|let|var)\s+\w+\s*=\s*(?:function)?\s*\(")
_NAMING_RE = re.compile(r"[a-z][A-Z]|[a-z]_[a-z]")

_SNIPPET_CHARS = 1000

DIMENSIONS = ("readability", "performance", "security", "best_practices")


def _comment_ratio(code: str) -> float:
    lines = [ln.strip() for ln in code.splitlines() if ln.strip()]
    if not lines:
        return 0.0
    comments = sum(1 for ln in lines if ln.startswith(_COMMENT_PREFIXES) or " # " in ln or " // " in ln)
    return comments / len(lines)


class QualityScorer(ABC):
    """Scores an artifact on a 0-10 scale."""

    @abstractmethod
    def score(self, artifact: str) -> float:
        ...


class HeuristicQualityScorer(QualityScorer):
    """Weighted average of length, constructs, comment density and bracket balance."""

    def __init__(self, config: ScorerConfig | None = None) -> None:
        self._config = config or ScorerConfig()

    def metrics(self, artifact: str) -> dict[str, float]:
        cfg = self._config
        return {
            "length": min(len(artifact) / cfg.target_length, 1.0) if cfg.target_length > 0 else 1.0,
            "constructs": 1.0 if _CONSTRUCT_RE.search(artifact) else 0.0,
            "comments": min(_comment_ratio(artifact) / cfg.target_comment_ratio, 1.0)
            if cfg.target_comment_ratio > 0 else 1.0,
            "balance": 1.0 if brackets_balanced(artifact) else 0.0,
        }

    def score(self, artifact: str) -> float:
        if not artifact.strip():
            return 0.0
        weights = self._config.weights
        total_weight = sum(weights.values())
        if total_weight <= 0:
            return 0.0
        metrics = self.metrics(artifact)
        weighted = sum(weights.get(name, 0.0) * value for name, value in metrics.items())
        return round(10 * weighted / total_weight, 2)


# --- Worker-backed multi-dimension assessment ---

_DIMENSION_PROMPTS: dict[str, str] = {
    "readability": (
        "Rate this code's readability on a scale of 1-10. Consider naming clarity, "
        "organization, comments and complexity.\n\n```\n{code}\n```\n\n"
        'Respond with ONLY a JSON object: {{"score": <number>, "reason": "<brief explanation>"}}'
    ),
    "performance": (
        "Analyze this code for performance bottlenecks. Rate it 1-10 for algorithmic "
        "efficiency, memory use and unnecessary iteration.\n\n```\n{code}\n```\n\n"
        'Respond with ONLY a JSON object: {{"score": <number>, "issues": ["..."], "suggestions": ["..."]}}'
    ),
    "security": (
        "Review this code for security vulnerabilities. Rate it 1-10 for input validation, "
        "injection risks, unsafe eval/exec and exposed secrets.\n\n```\n{code}\n```\n\n"
        'Respond with ONLY a JSON object: {{"score": <number>, "vulnerabilities": ["..."], "recommendations": ["..."]}}'
    ),
    "best_practices": (
        "Review this code for adherence to best practices. Rate it 1-10 for DRY, error "
        "handling, modularity and testability.\n\n```\n{code}\n```\n\n"
        'Respond with ONLY a JSON object: {{"score": <number>, "issues": ["..."], "improvements": ["..."]}}'
    ),
}

# JSON keys carrying (issues, suggestions) for each dimension
_LIST_KEYS: dict[str, tuple[str, str]] = {
    "readability": ("issues", "suggestions"),
    "performance": ("issues", "suggestions"),
    "security": ("vulnerabilities", "recommendations"),
    "best_practices": ("issues", "improvements"),
}


def _clamp_score(value: float) -> float:
    return min(10.0, max(0.0, float(value)))


def rating_for(score: float) -> str:
    if score >= 9:
        return "Excellent"
    if score >= 8:
        return "Very Good"
    if score >= 7:
        return "Good"
    if score >= 6:
        return "Fair"
    if score >= 5:
        return "Acceptable"
    return "Needs Improvement"


def parse_dimension_reply(dimension: str, content: str, source: str) -> DimensionScore | None:
    """Parse a worker's JSON reply. Returns None when it cannot be used."""
    match = _JSON_OBJECT_RE.search(content)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None

    raw_score = parsed.get("score") or 5
    if isinstance(raw_score, bool) or not isinstance(raw_score, (int, float)):
        return None

    issues_key, suggestions_key = _LIST_KEYS[dimension]
    issues = parsed.get(issues_key)
    suggestions = parsed.get(suggestions_key)
    return DimensionScore(
        dimension=dimension,
        score=_clamp_score(raw_score),
        source=source,
        reason=str(parsed.get("reason", "Analysis completed")),
        issues=[str(i) for i in issues] if isinstance(issues, list) else [],
        suggestions=[str(s) for s in suggestions] if isinstance(suggestions, list) else [],
    )


def _has_nested_loops(code: str) -> bool:
    open_loops: list[int] = []
    for line in code.splitlines():
        if not line.strip():
            continue
        if _INLINE_NESTED_LOOP_RE.search(line):
            return True
        indent = len(line) - len(line.lstrip())
        while open_loops and open_loops[-1] >= indent:
            open_loops.pop()
        if _LOOP_RE.match(line):
            if open_loops:
                return True
            open_loops.append(indent)
    return False


def estimate_readability(code: str) -> DimensionScore:
    score = 7.0
    if len(code) > 2000:
        score -= 1
    if len(code) < 200:
        score += 1

    ratio = _comment_ratio(code)
    if ratio < 0.05:
        score -= 1
    if ratio > 0.15:
        score += 0.5

    words = code.split()
    if words and len(_NAMING_RE.findall(code)) / len(words) > 0.1:
        score += 0.5

    return DimensionScore(
        dimension="readability",
        score=_clamp_score(score),
        source="heuristic",
        reason="Heuristic estimation based on code structure",
    )


def estimate_performance(code: str) -> DimensionScore:
    score = 7.0
    issues: list[str] = []
    suggestions: list[str] = []

    if _has_nested_loops(code):
        score -= 2
        issues.append("Nested loops detected - potential O(n^2) or worse complexity")
        suggestions.append("Consider flattening loops or using a more efficient algorithm")

    if len(_METHOD_CALL_RE.findall(code)) > 10:
        score -= 1
        issues.append("Many method calls - consider caching results")

    return DimensionScore(
        dimension="performance", score=_clamp_score(score), source="heuristic",
        issues=issues, suggestions=suggestions,
    )


def estimate_security(code: str) -> DimensionScore:
    score = 8.0
    issues: list[str] = []
    suggestions: list[str] = []

    if "eval(" in code or "exec(" in code:
        score -= 3
        issues.append("eval()/exec() detected - major security risk")
        suggestions.append("Avoid dynamic code execution - use safer alternatives")

    if "innerHTML" in code:
        score -= 1
        issues.append("innerHTML usage - potential XSS vulnerability")
        suggestions.append("Use textContent or DOM APIs instead")

    if _SECRET_LOG_RE.search(code):
        score -= 2
        issues.append("Potential sensitive data exposure in logs")
        suggestions.append("Remove sensitive data from log output")

    return DimensionScore(
        dimension="security", score=_clamp_score(score), source="heuristic",
        issues=issues, suggestions=suggestions,
    )


def estimate_best_practices(code: str) -> DimensionScore:
    score = 7.0
    issues: list[str] = []
    suggestions: list[str] = []

    if " var " in code:
        score -= 1
        issues.append("var keyword usage - should use const/let")
        suggestions.append("Replace var with const or let")

    if "try" not in code and "catch" not in code and "except" not in code:
        score -= 1
        issues.append("No error handling detected")
        suggestions.append("Add error handling around fallible operations")

    functions = _FUNCTION_DEF_RE.findall(code)
    if functions and len(code) / len(functions) > 500:
        score -= 1
        suggestions.append("Functions are large - consider breaking them down")

    return DimensionScore(
        dimension="best_practices", score=_clamp_score(score), source="heuristic",
        issues=issues, suggestions=suggestions,
    )


_ESTIMATORS = {
    "readability": estimate_readability,
    "performance": estimate_performance,
    "security": estimate_security,
    "best_practices": estimate_best_practices,
}


class CodeQualityAssessor:
    """Rates code on four dimensions, one pool worker per dimension."""

    def __init__(self, pool: WorkerPool, config: QualityConfig) -> None:
        self._pool = pool
        self._config = config

    async def evaluate(self, dimension: str, code: str) -> DimensionScore:
        worker_name = self._config.dimensions.get(dimension)
        if not worker_name or worker_name not in self._pool:
            logger.debug("No worker for %s, using heuristic estimate", dimension)
            return _ESTIMATORS[dimension](code)

        prompt = _DIMENSION_PROMPTS[dimension].format(code=code[:_SNIPPET_CHARS])
        response = await self._pool.send_to(worker_name, prompt)
        if not response.succeeded:
            logger.warning("%s evaluation by %s failed, using heuristic estimate", dimension, worker_name)
            return _ESTIMATORS[dimension](code)

        parsed = parse_dimension_reply(dimension, response.content, worker_name)
        if parsed is None:
            logger.warning("Unparsable %s reply from %s, using heuristic estimate", dimension, worker_name)
            return _ESTIMATORS[dimension](code)
        return parsed

    async def assess(self, code: str) -> QualityAssessment:
        results = await asyncio.gather(*(self.evaluate(d, code) for d in DIMENSIONS))
        breakdown = {r.dimension: r for r in results}
        aggregate = round(sum(r.score for r in results) / len(results), 1)
        return QualityAssessment(
            score=aggregate,
            rating=rating_for(aggregate),
            breakdown=breakdown,
            code_length=len(code),
        )
