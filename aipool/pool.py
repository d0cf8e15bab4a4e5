"""Worker registry and concurrent dispatch."""

import asyncio
import logging
import time

from config.config_loader import WorkerConfig
from aipool.backends.base import BackendError, WorkerBackend
from aipool.models import ContextFile, Worker, WorkerResponse

logger = logging.getLogger(__name__)


def build_workers(configs: list[WorkerConfig]) -> list[Worker]:
    """Turn worker config entries into Workers with positional ids."""
    return [
        Worker(
            worker_id=f"worker-{i}",
            name=cfg.name,
            specialty=cfg.specialty,
            latency_factor=cfg.latency_factor,
        )
        for i, cfg in enumerate(configs, start=1)
    ]


class WorkerPool:
    """Fixed, read-only registry of workers sharing one backend.

    Dispatch never raises: unknown workers and backend failures become
    responses with ``succeeded=False``.
    """

    def __init__(self, workers: list[Worker], backend: WorkerBackend) -> None:
        registry: dict[str, Worker] = {}
        for worker in workers:
            if worker.name in registry:
                raise ValueError(f"Duplicate worker name in pool: {worker.name}")
            registry[worker.name] = worker
        self._registry = registry
        self._backend = backend

    def __len__(self) -> int:
        return len(self._registry)

    def __contains__(self, name: object) -> bool:
        return name in self._registry

    @property
    def workers(self) -> list[Worker]:
        """Workers in registration order."""
        return list(self._registry.values())

    @property
    def backend(self) -> WorkerBackend:
        return self._backend

    def get_worker(self, name: str) -> Worker | None:
        return self._registry.get(name)

    async def send_to(
        self,
        name: str,
        prompt: str,
        context_files: list[ContextFile] | None = None,
    ) -> WorkerResponse:
        """Invoke a single worker. Never raises."""
        worker = self._registry.get(name)
        if worker is None:
            logger.warning("Worker %s is not registered in this pool", name)
            return WorkerResponse(
                worker_name=name,
                content=f"Worker '{name}' is not available in this pool.",
                timestamp=time.monotonic(),
                specialty="unknown",
                succeeded=False,
            )

        try:
            reply = await self._backend.send_prompt(worker, prompt, list(context_files or []))
        except BackendError as exc:
            logger.warning("Worker %s failed: %s", name, exc)
            return self._fallback(worker, str(exc))
        except Exception as exc:
            logger.warning("Worker %s unexpected failure: %s", name, exc)
            return self._fallback(worker, f"Unexpected error: {exc}")

        return WorkerResponse(
            worker_name=worker.name,
            content=reply.content,
            timestamp=time.monotonic(),
            specialty=worker.specialty,
            succeeded=reply.succeeded,
        )

    async def dispatch(
        self,
        prompt: str,
        worker_names: list[str],
        context_files: list[ContextFile] | None = None,
    ) -> list[WorkerResponse]:
        """Invoke all named workers concurrently.

        Returns:
            One response per requested name, in request order.
        """
        files = list(context_files or [])
        logger.info("Dispatching to %d workers: %s", len(worker_names), ", ".join(worker_names))
        responses = await asyncio.gather(*(self.send_to(n, prompt, files) for n in worker_names))

        succeeded = sum(1 for r in responses if r.succeeded)
        logger.info("Dispatch complete: %d/%d workers succeeded", succeeded, len(responses))
        return list(responses)

    @staticmethod
    def _fallback(worker: Worker, reason: str) -> WorkerResponse:
        return WorkerResponse(
            worker_name=worker.name,
            content=f"{worker.name} could not complete this request ({reason}).",
            timestamp=time.monotonic(),
            specialty=worker.specialty,
            succeeded=False,
        )
