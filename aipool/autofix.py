"""Syntax checks and the iterative auto-fix loop.

The pipeline routes each failing check to the fixer registered for that
error type and keeps per-fixer success counters, so fixers that keep
producing valid code are preferred next time.
"""

import ast
import logging
import re
from dataclasses import dataclass, field

from config.config_loader import AutofixConfig
from aipool.extraction import extract_code_artifact
from aipool.models import CodeCheck, CodeIssue, FixAttempt, FixResult
from aipool.pool import WorkerPool

logger = logging.getLogger(__name__)

_PAIRS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {v: k for k, v in _PAIRS.items()}
_QUOTES = ('"', "'", "`")
_STRING_PREFIXES = {"r", "u", "b", "f", "br", "rb", "fr", "rf"}

_INCOMPLETE_LINE_RE = re.compile(r"([,{(\[\\|&+\-*/:=]|\.)$")

_KEYWORD_TYPOS = {
    "funciton": "function",
    "retrun": "return",
    "whlie": "while",
    "esle": "else",
    "improt": "import",
    "pritn": "print",
    "defualt": "default",
}

_MAX_ISSUES_IN_PROMPT = 5


def _word_before(code: str, i: int) -> str:
    start = i
    while start > 0 and (code[start - 1].isalnum() or code[start - 1] == "_"):
        start -= 1
    return code[start:i]


def _is_apostrophe(code: str, i: int) -> bool:
    # don't and workers' are prose, r'...' and f'...' are strings
    word = _word_before(code, i)
    return bool(word) and word.lower() not in _STRING_PREFIXES


def _is_floor_division(code: str, i: int) -> bool:
    """`a // b` reads as an operator, `x; // note` and `{ // note` as comments."""
    before = code[code.rfind("\n", 0, i) + 1:i].rstrip()
    after = code[i + 2:].lstrip(" \t")
    if not before or not after:
        return False
    return (before[-1].isalnum() or before[-1] in "_]") and (after[0].isalnum() or after[0] in "_(")


def _starts_comment(code: str, i: int, python_syntax: bool) -> bool:
    if code.startswith("//", i):
        return not python_syntax and not _is_floor_division(code, i)
    if code[i] != "#":
        return False
    if python_syntax:
        return True
    # JS private fields (this.#count, #count = 0) are not comments
    nxt = code[i + 1:i + 2]
    return nxt in ("", "!", "#") or nxt.isspace()


def brackets_balanced(code: str, python_syntax: bool = False) -> bool:
    """True when (), [] and {} nest correctly outside strings and comments.

    Without ``python_syntax`` the text may be any language or plain prose:
    ``//`` and ``#`` comments are recognised from context and an apostrophe
    inside a word does not open a string.
    """
    stack: list[str] = []
    in_string: str | None = None
    i = 0
    n = len(code)
    while i < n:
        ch = code[i]

        if in_string:
            if ch == "\\":
                i += 2
                continue
            if ch == in_string or (ch == "\n" and in_string != "`"):
                in_string = None
            i += 1
            continue

        if code.startswith('"""', i) or code.startswith("'''", i):
            end = code.find(code[i:i + 3], i + 3)
            if end == -1:
                break
            i = end + 3
            continue

        if ch in _QUOTES:
            if not (ch == "'" and _is_apostrophe(code, i)):
                in_string = ch
        elif _starts_comment(code, i, python_syntax):
            end = code.find("\n", i)
            if end == -1:
                break
            i = end
        elif code.startswith("/*", i):
            end = code.find("*/", i + 2)
            if end == -1:
                break
            i = end + 1
        elif ch in _PAIRS:
            stack.append(ch)
        elif ch in _CLOSERS:
            if not stack or stack[-1] != _CLOSERS[ch]:
                return False
            stack.pop()
        i += 1

    return not stack


def has_incomplete_statement(code: str) -> bool:
    lines = code.strip().splitlines()
    if not lines:
        return False
    last = lines[-1].strip()
    if last.endswith("*/"):
        return False
    return bool(_INCOMPLETE_LINE_RE.search(last))


class SyntaxChecker:
    """Language-agnostic structural checks, plus a real parse for Python."""

    def __init__(self, python_syntax: bool = False) -> None:
        self._python_syntax = python_syntax

    def check(self, code: str) -> CodeCheck:
        issues: list[CodeIssue] = []

        if self._python_syntax:
            try:
                ast.parse(code)
            except SyntaxError as exc:
                issues.append(CodeIssue(kind="syntax", message=exc.msg or "invalid syntax", line=exc.lineno))

        if not brackets_balanced(code, python_syntax=self._python_syntax):
            issues.append(CodeIssue(kind="syntax", message="Unmatched brackets detected"))

        if has_incomplete_statement(code):
            issues.append(CodeIssue(kind="syntax", message="Incomplete statement detected", severity="warning"))

        for typo, correct in _KEYWORD_TYPOS.items():
            count = len(re.findall(rf"\b{typo}\b", code))
            if count:
                issues.append(CodeIssue(
                    kind="syntax",
                    message=f'Possible keyword typo: "{typo}" should be "{correct}" ({count}x)',
                    severity="warning",
                ))

        return CodeCheck(issues=issues)


def classify_error(issue: CodeIssue) -> str:
    """Map a reported issue onto a fixer error type. Defaults to logic."""
    msg = issue.message.lower()
    kind = issue.kind

    if kind == "syntax" or "syntax" in msg or "unexpected" in msg:
        return "syntax"
    if kind in ("type", "typescript") or "type" in msg or "is not assignable" in msg:
        return "type"
    if kind == "runtime" or "undefined" in msg or "is not a function" in msg or "not defined" in msg:
        return "logic"
    if "performance" in msg or "slow" in msg:
        return "performance"
    if kind in ("style", "lint") or "unused" in msg or "semicolon" in msg:
        return "style"
    if "security" in msg or "vulnerability" in msg:
        return "security"
    return "logic"


def build_fix_prompt(code: str, issues: list[CodeIssue]) -> str:
    descriptions = "\n".join(
        f"- {i.kind}: {i.message}" + (f" (line {i.line})" if i.line else "")
        for i in issues
    )
    return (
        f"Fix the following errors in this code:\n\n{descriptions}\n\n"
        f"Original code:\n```\n{code}\n```\n\n"
        "Return ONLY the fixed code in a code block, with no explanation."
    )


@dataclass
class FixerStats:
    error_type: str
    worker: str
    specialties: list[str]
    attempts: int = 0
    successes: int = 0

    @property
    def success_rate(self) -> float:
        # untried fixers start at an even chance
        return self.successes / self.attempts if self.attempts else 0.5

    def record(self, success: bool) -> None:
        self.attempts += 1
        if success:
            self.successes += 1


@dataclass
class AutoFixPipeline:
    pool: WorkerPool
    config: AutofixConfig
    checker: SyntaxChecker = field(default_factory=SyntaxChecker)
    fixers: dict[str, FixerStats] = field(init=False)

    def __post_init__(self) -> None:
        self.fixers = self._initial_fixers()

    def _initial_fixers(self) -> dict[str, FixerStats]:
        return {
            f.error_type: FixerStats(error_type=f.error_type, worker=f.worker, specialties=list(f.specialties))
            for f in self.config.fixers
        }

    def select_fixer(self, error_type: str) -> FixerStats | None:
        """Best success rate among specialists; declared order breaks ties."""
        candidates = [f for f in self.fixers.values() if error_type in f.specialties]
        if not candidates:
            return None
        return max(candidates, key=lambda f: f.success_rate)

    async def fix(self, code: str) -> FixResult:
        history: list[FixAttempt] = []
        max_attempts = max(1, self.config.max_attempts)

        for attempt in range(1, max_attempts + 1):
            check = self.checker.check(code)
            record = FixAttempt(attempt=attempt, code=code, check=check)
            history.append(record)

            if check.is_valid:
                return FixResult(
                    success=True,
                    code=code,
                    attempts=attempt,
                    history=history,
                    message=f"Code valid after {attempt} attempt(s)",
                )
            if attempt == max_attempts:
                break

            error_type = classify_error(check.errors[0])
            fixer = self.select_fixer(error_type)
            worker_name = fixer.worker if fixer else self.config.fallback_worker
            record.error_type = error_type
            record.fixer = worker_name

            logger.info("Attempt %d: routing %s error to %s", attempt, error_type, worker_name)
            prompt = build_fix_prompt(code, check.issues[:_MAX_ISSUES_IN_PROMPT])
            response = await self.pool.send_to(worker_name, prompt)
            if not response.succeeded:
                logger.warning("Fix request to %s failed: %s", worker_name, response.content)
                return FixResult(
                    success=False,
                    code=code,
                    attempts=attempt,
                    history=history,
                    message=f"Fix request to {worker_name} failed",
                    remaining_issues=check.issues,
                )

            code = extract_code_artifact(response.content, prefix_chars=len(response.content))

            # counters move only after the fixer's reply has resolved
            if fixer is not None:
                fixer.record(self.checker.check(code).is_valid)

        return FixResult(
            success=False,
            code=code,
            attempts=len(history),
            history=history,
            message=f"Could not fix all errors after {max_attempts} attempts",
            remaining_issues=history[-1].check.issues,
        )

    def statistics(self) -> dict[str, dict[str, object]]:
        return {
            error_type: {
                "worker": f.worker,
                "success_rate": round(f.success_rate, 3),
                "attempts": f.attempts,
                "successes": f.successes,
            }
            for error_type, f in self.fixers.items()
        }

    def reset_statistics(self) -> None:
        self.fixers = self._initial_fixers()
