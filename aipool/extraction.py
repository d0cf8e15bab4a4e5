"""Pure string utilities shared by merging and refinement."""

import re

_FENCED_BLOCK_RE = re.compile(r"```[\w+#.-]*[ \t]*\n(.*?)```", re.DOTALL)

# Raw-text artifacts are cut to this many characters when no fenced block exists.
ARTIFACT_PREFIX_CHARS = 1000


def extract_code_artifact(text: str, prefix_chars: int = ARTIFACT_PREFIX_CHARS) -> str:
    """Return the first fenced code block, else a fixed-length prefix of the text."""
    match = _FENCED_BLOCK_RE.search(text)
    if match:
        return match.group(1).strip("\n")
    return text.strip()[:prefix_chars]


def extract_phrases(text: str, size: int = 3) -> list[str]:
    """Sliding-window word phrases, lower-cased, unique, in first-seen order."""
    words = text.lower().split()
    seen: dict[str, None] = {}
    for i in range(len(words) - size + 1):
        seen.setdefault(" ".join(words[i:i + size]), None)
    return list(seen)
