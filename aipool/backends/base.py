"""Abstract base for all worker backends."""

from abc import ABC, abstractmethod

from aipool.models import BackendReply, ContextFile, Worker


class BackendError(Exception):
    """Raised when a backend call fails."""

    def __init__(self, worker_name: str, message: str) -> None:
        self.worker_name = worker_name
        super().__init__(f"[{worker_name}] {message}")


class WorkerBackend(ABC):
    """The single capability a worker needs: turn a prompt into a reply."""

    @abstractmethod
    def name(self) -> str:
        """Return the short backend name (e.g. 'simulated', 'openai')."""
        ...

    @abstractmethod
    async def send_prompt(
        self,
        worker: Worker,
        prompt: str,
        context_files: list[ContextFile],
    ) -> BackendReply:
        """Send a prompt on behalf of a worker.

        Args:
            worker: The pool worker being invoked.
            prompt: The full prompt text to send.
            context_files: Files supplied by the editor alongside the prompt.

        Returns:
            BackendReply with the reply text and a success flag.

        Raises:
            BackendError: On API failure, timeout, or invalid response.
        """
        ...


def render_context(context_files: list[ContextFile], max_chars: int = 4000) -> str:
    """Format context files as fenced blocks appended to a provider prompt."""
    if not context_files:
        return ""
    parts: list[str] = []
    budget = max_chars
    for f in context_files:
        body = f.content[:budget]
        budget -= len(body)
        parts.append(f"--- {f.path} ---\n```\n{body}\n```")
        if budget <= 0:
            break
    return "\n\nContext files:\n\n" + "\n\n".join(parts)
