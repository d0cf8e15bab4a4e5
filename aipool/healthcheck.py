"""Worker health checks — ping each worker through the backend before a run."""

import asyncio
import logging

from aipool.models import Worker
from aipool.pool import WorkerPool

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(pool: WorkerPool, worker: Worker) -> tuple[str, bool, str]:
    """Ping a single worker. Returns (name, ok, error_message)."""
    try:
        reply = await asyncio.wait_for(
            pool.backend.send_prompt(worker, _PING_PROMPT, []),
            timeout=_TIMEOUT_SEC,
        )
    except Exception as exc:
        return worker.name, False, str(exc) or type(exc).__name__
    if not reply.succeeded:
        return worker.name, False, reply.content
    return worker.name, True, ""


async def run_health_checks(pool: WorkerPool) -> dict[str, tuple[bool, str]]:
    """Ping all workers in parallel.

    Returns:
        Dict mapping worker name -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(pool, w) for w in pool.workers))
    return {name: (ok, err) for name, ok, err in results}
