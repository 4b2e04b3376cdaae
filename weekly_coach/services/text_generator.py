"""
Text generator — the external language-model collaborator.

The orchestrator only sees the TextGenerator protocol:

    generate(system_prompt, user_message, config) -> str

AnthropicTextGenerator is the production implementation. Its client is
built on first use, so a missing ANTHROPIC_API_KEY only fails a request
that actually needs generation. The SDK's own retries are disabled
(max_retries=0): the retry budget belongs to the orchestrator.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import anthropic

from weekly_coach.core.config import settings
from weekly_coach.core.errors import GenerationError, GenerationTimeoutError

logger = logging.getLogger(__name__)

MODEL_VERSION = "claude-sonnet-4-20250514"


@dataclass(frozen=True)
class ModelConfig:
    model: str = MODEL_VERSION
    max_tokens: int = 1000
    temperature: float = 0.7
    timeout_s: float = 60.0


def model_config_from_settings() -> ModelConfig:
    return ModelConfig(
        model=settings.COACHING_MODEL,
        max_tokens=settings.COACHING_MAX_TOKENS,
        temperature=settings.COACHING_TEMPERATURE,
        timeout_s=settings.GENERATION_TIMEOUT_S,
    )


class TextGenerator(Protocol):
    def generate(self, system_prompt: str, user_message: str, config: ModelConfig) -> str:
        ...


class AnthropicTextGenerator:
    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key
        self._client: Optional[anthropic.Anthropic] = None

    def _get_client(self, timeout_s: float) -> anthropic.Anthropic:
        if self._client is None:
            api_key = self._api_key or settings.ANTHROPIC_API_KEY
            if not api_key:
                raise GenerationError("ANTHROPIC_API_KEY is not configured")
            self._client = anthropic.Anthropic(api_key=api_key, timeout=timeout_s, max_retries=0)
            logger.info("Anthropic client initialized")
        return self._client

    def generate(self, system_prompt: str, user_message: str, config: ModelConfig) -> str:
        client = self._get_client(config.timeout_s)
        try:
            response = client.messages.create(
                model=config.model,
                max_tokens=config.max_tokens,
                temperature=config.temperature,
                system=system_prompt,
                messages=[{"role": "user", "content": user_message}],
                timeout=config.timeout_s,
            )
        except anthropic.APITimeoutError as exc:
            raise GenerationTimeoutError(config.timeout_s) from exc
        except anthropic.APIError as exc:
            raise GenerationError(f"Anthropic API error: {exc}") from exc

        text = "".join(block.text for block in response.content if block.type == "text")
        if not text.strip():
            raise GenerationError("No text content in generator response")

        usage = getattr(response, "usage", None)
        if usage is not None:
            logger.info(
                "Generation complete: model=%s input_tokens=%s output_tokens=%s",
                config.model, usage.input_tokens, usage.output_tokens,
            )
        return text
