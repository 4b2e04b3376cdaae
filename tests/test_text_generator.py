"""
Tests for the Anthropic text generator. The SDK client is replaced by a
stub, so no network call is made.
"""
from __future__ import annotations

from types import SimpleNamespace

import anthropic
import httpx
import pytest

from weekly_coach.core.config import settings
from weekly_coach.core.errors import GenerationError, GenerationTimeoutError
from weekly_coach.services.text_generator import (
    AnthropicTextGenerator,
    ModelConfig,
    model_config_from_settings,
)

CONFIG = ModelConfig(model="claude-test", max_tokens=500, temperature=0.5, timeout_s=30.0)
REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


class _Messages:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return self.response


def _generator(response=None, error=None):
    gen = AnthropicTextGenerator(api_key="test-key")
    messages = _Messages(response, error)
    gen._client = SimpleNamespace(messages=messages)
    return gen, messages


def _response(*blocks):
    return SimpleNamespace(
        content=[SimpleNamespace(type=kind, text=text) for kind, text in blocks],
        usage=SimpleNamespace(input_tokens=1200, output_tokens=300),
    )


class TestGenerate:
    def test_returns_joined_text(self):
        gen, messages = _generator(_response(("text", '{"pattern": '), ("text", '"x"}')))
        assert gen.generate("system", "user", CONFIG) == '{"pattern": "x"}'

    def test_request_shape(self):
        gen, messages = _generator(_response(("text", "{}")))
        gen.generate("system prompt", "user message", CONFIG)
        call = messages.calls[0]
        assert call["model"] == "claude-test"
        assert call["max_tokens"] == 500
        assert call["temperature"] == 0.5
        assert call["system"] == "system prompt"
        assert call["messages"] == [{"role": "user", "content": "user message"}]
        assert call["timeout"] == 30.0

    def test_non_text_blocks_are_ignored(self):
        gen, _ = _generator(_response(("tool_use", "ignored"), ("text", "{}")))
        assert gen.generate("s", "u", CONFIG) == "{}"

    def test_empty_response_is_an_error(self):
        gen, _ = _generator(_response(("text", "   ")))
        with pytest.raises(GenerationError, match="No text content"):
            gen.generate("s", "u", CONFIG)


class TestErrors:
    def test_timeout(self):
        gen, _ = _generator(error=anthropic.APITimeoutError(request=REQUEST))
        with pytest.raises(GenerationTimeoutError) as exc_info:
            gen.generate("s", "u", CONFIG)
        assert exc_info.value.code == "GENERATION_TIMEOUT"
        assert exc_info.value.message == "Text generation exceeded 30s timeout."

    def test_api_error(self):
        gen, _ = _generator(error=anthropic.APIConnectionError(request=REQUEST))
        with pytest.raises(GenerationError) as exc_info:
            gen.generate("s", "u", CONFIG)
        assert exc_info.value.code == "GENERATION_FAILED"
        assert exc_info.value.message.startswith("Anthropic API error:")

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", None)
        with pytest.raises(GenerationError, match="ANTHROPIC_API_KEY"):
            AnthropicTextGenerator().generate("s", "u", CONFIG)

    def test_client_is_built_once(self, monkeypatch):
        monkeypatch.setattr(settings, "ANTHROPIC_API_KEY", "from-settings")
        gen = AnthropicTextGenerator()
        assert gen._get_client(10) is gen._get_client(10)


class TestConfig:
    def test_from_settings(self, monkeypatch):
        monkeypatch.setattr(settings, "COACHING_MODEL", "claude-other")
        monkeypatch.setattr(settings, "GENERATION_TIMEOUT_S", 45.0)
        config = model_config_from_settings()
        assert config.model == "claude-other"
        assert config.timeout_s == 45.0
        assert config.max_tokens == settings.COACHING_MAX_TOKENS
