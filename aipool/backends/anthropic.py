"""Anthropic Claude backend using anthropic SDK with native async."""

import asyncio
import logging
import os
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from aipool.backends.base import BackendError, WorkerBackend, render_context
from aipool.models import BackendReply, ContextFile, Worker

logger = logging.getLogger(__name__)


class AnthropicBackend(WorkerBackend):
    """Anthropic Claude backend via anthropic SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise BackendError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

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
                self._client.messages.create(
                    model=self._config.model,
                    max_tokens=self._config.max_tokens,
                    system=f"You are {worker.name}, a coding assistant specialised in {worker.specialty} tasks.",
                    messages=[{"role": "user", "content": prompt + render_context(context_files)}],
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise BackendError(worker.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise BackendError(worker.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.content:
            raise BackendError(worker.name, "Empty response content")

        text_blocks = [b.text for b in response.content if b.type == "text"]
        if not text_blocks:
            raise BackendError(worker.name, "No text blocks in response")

        logger.info("Anthropic reply for %s: %.2fs", worker.name, latency)
        return BackendReply(content="\n".join(text_blocks))
