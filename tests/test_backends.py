"""Tests for aipool/backends — SDK clients are mocked, no real API calls."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest

from config.config_loader import ModelConfig
from aipool.backends.anthropic import AnthropicBackend
from aipool.backends.base import BackendError, render_context
from aipool.backends.openai_backend import OpenAIBackend
from aipool.backends.simulated import SimulatedBackend
from aipool.extraction import extract_code_artifact
from aipool.models import ContextFile, Worker

QWEN = Worker("worker-4", "Qwen", "debug", latency_factor=0.8)


def _model_config(name: str, env: str) -> ModelConfig:
    return ModelConfig(name=name, model=f"{name}-model", api_key_env=env, timeout_sec=5, max_tokens=256)


def test_backend_error_message_names_worker():
    err = BackendError("Qwen", "API error")
    assert str(err) == "[Qwen] API error"
    assert err.worker_name == "Qwen"


def test_render_context_empty():
    assert render_context([]) == ""


def test_render_context_fences_files():
    rendered = render_context([ContextFile(path="app.py", content="x = 1")])
    assert "--- app.py ---" in rendered
    assert "```\nx = 1\n```" in rendered


def test_render_context_respects_budget():
    files = [ContextFile(path="a.py", content="a" * 30), ContextFile(path="b.py", content="b" * 30)]
    rendered = render_context(files, max_chars=40)
    assert "a" * 30 in rendered
    assert "b" * 11 not in rendered


async def test_simulated_reply_mentions_worker_and_specialty():
    reply = await SimulatedBackend(base_delay_sec=0.0, seed=1).send_prompt(QWEN, "fix the parser", [])
    assert reply.succeeded
    assert reply.content.startswith("Qwen (debug specialist) response.")
    assert "def fix_the_parser(items):" in extract_code_artifact(reply.content)


async def test_simulated_reply_reuses_fenced_code():
    prompt = "Review this:\n```\ndef f():\n    return 1\n```"
    reply = await SimulatedBackend(base_delay_sec=0.0).send_prompt(QWEN, prompt, [])
    artifact = extract_code_artifact(reply.content)
    assert artifact.startswith("# Qwen: debug review applied")
    assert "def f():\n    return 1" in artifact


async def test_simulated_reply_lists_context_files():
    files = [ContextFile(path="app.py", content="print(1)")]
    reply = await SimulatedBackend(base_delay_sec=0.0).send_prompt(QWEN, "x", files)
    assert "- app.py (8 chars)" in reply.content


async def test_simulated_content_is_deterministic():
    a = await SimulatedBackend(base_delay_sec=0.0, seed=1).send_prompt(QWEN, "build a cache", [])
    b = await SimulatedBackend(base_delay_sec=0.0, seed=99).send_prompt(QWEN, "build a cache", [])
    assert a.content == b.content


async def test_simulated_failure_rate_one_always_fails():
    backend = SimulatedBackend(base_delay_sec=0.0, failure_rate=1.0)
    with pytest.raises(BackendError, match="Simulated backend failure"):
        await backend.send_prompt(QWEN, "x", [])


def test_openai_backend_requires_key(monkeypatch):
    monkeypatch.delenv("TEST_OPENAI_KEY", raising=False)
    with pytest.raises(BackendError, match="Missing API key"):
        OpenAIBackend(_model_config("openai", "TEST_OPENAI_KEY"))


async def test_openai_backend_sends_worker_persona(monkeypatch):
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
    backend = OpenAIBackend(_model_config("openai", "TEST_OPENAI_KEY"))
    completion = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content="use a guard clause"))])
    create = AsyncMock(return_value=completion)
    backend._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))

    reply = await backend.send_prompt(QWEN, "fix it", [ContextFile(path="a.py", content="x")])

    assert reply.content == "use a guard clause"
    kwargs = create.call_args.kwargs
    assert kwargs["model"] == "openai-model"
    assert "Qwen" in kwargs["messages"][0]["content"]
    assert "debug" in kwargs["messages"][0]["content"]
    assert kwargs["messages"][1]["content"].startswith("fix it")
    assert "--- a.py ---" in kwargs["messages"][1]["content"]


async def test_openai_backend_empty_reply_raises(monkeypatch):
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
    backend = OpenAIBackend(_model_config("openai", "TEST_OPENAI_KEY"))
    create = AsyncMock(return_value=SimpleNamespace(choices=[]))
    backend._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    with pytest.raises(BackendError, match="Empty response"):
        await backend.send_prompt(QWEN, "fix it", [])


async def test_openai_backend_wraps_sdk_errors(monkeypatch):
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
    backend = OpenAIBackend(_model_config("openai", "TEST_OPENAI_KEY"))
    create = AsyncMock(side_effect=RuntimeError("rate limited"))
    backend._client = SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))
    with pytest.raises(BackendError, match="rate limited") as exc_info:
        await backend.send_prompt(QWEN, "fix it", [])
    assert exc_info.value.worker_name == "Qwen"


def test_anthropic_backend_requires_key(monkeypatch):
    monkeypatch.delenv("TEST_ANTHROPIC_KEY", raising=False)
    with pytest.raises(BackendError, match="Missing API key"):
        AnthropicBackend(_model_config("anthropic", "TEST_ANTHROPIC_KEY"))


async def test_anthropic_backend_joins_text_blocks(monkeypatch):
    monkeypatch.setenv("TEST_ANTHROPIC_KEY", "sk-ant-test")
    backend = AnthropicBackend(_model_config("anthropic", "TEST_ANTHROPIC_KEY"))
    message = SimpleNamespace(content=[
        SimpleNamespace(type="text", text="first"),
        SimpleNamespace(type="tool_use", text=None),
        SimpleNamespace(type="text", text="second"),
    ])
    create = AsyncMock(return_value=message)
    backend._client = SimpleNamespace(messages=SimpleNamespace(create=create))

    reply = await backend.send_prompt(QWEN, "fix it", [])

    assert reply.content == "first\nsecond"
    assert "Qwen" in create.call_args.kwargs["system"]
    assert create.call_args.kwargs["max_tokens"] == 256


async def test_anthropic_backend_no_text_blocks_raises(monkeypatch):
    monkeypatch.setenv("TEST_ANTHROPIC_KEY", "sk-ant-test")
    backend = AnthropicBackend(_model_config("anthropic", "TEST_ANTHROPIC_KEY"))
    create = AsyncMock(return_value=SimpleNamespace(content=[SimpleNamespace(type="tool_use", text=None)]))
    backend._client = SimpleNamespace(messages=SimpleNamespace(create=create))
    with pytest.raises(BackendError, match="No text blocks"):
        await backend.send_prompt(QWEN, "fix it", [])
