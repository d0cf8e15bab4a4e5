"""OpenAI backend using openai SDK with native async. Also serves OpenAI-compatible APIs via base_url."""

import asyncio
import logging
import os
import time

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from aipool.backends.base import BackendError, WorkerBackend, render_context
from aipool.models import BackendReply, ContextFile, Worker

logger = logging.getLogger(__name__)

_SYSTEM_TEMPLATE = "You are {name}, a coding assistant specialised in {specialty} tasks."


class OpenAIBackend(WorkerBackend):
    """Every pool worker is served by the same configured model, primed with its specialty."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise BackendError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)

    def name(self) -> str:
        return self._config.name

    async def send_prompt(
        self,
        worker: Worker,
        prompt: str,
        context_files: list[ContextFile],
    ) -> BackendReply:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=[
                        {"role": "system", "content": _SYSTEM_TEMPLATE.format(name=worker.name, specialty=worker.specialty)},
                        {"role": "user", "content": prompt + render_context(context_files)},
                    ],
                    max_tokens=self._config.max_tokens,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise BackendError(worker.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise BackendError(worker.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise BackendError(worker.name, "Empty response content")

        logger.info("OpenAI reply for %s: %.2fs", worker.name, latency)
        return BackendReply(content=choice.message.content)
