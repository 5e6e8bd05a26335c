"""Model-agnostic oracle client using LiteLLM.

Supports Ollama, Claude, OpenAI, and any LiteLLM-compatible provider.
Swap providers by changing the judge_model setting.

This is the ONLY file that talks to LLM APIs. Mock this for tests.
"""

from __future__ import annotations

import os
from typing import Any

import structlog
from litellm import acompletion

from metaeval.config import settings
from metaeval.engine.types import LLMResponse

logger = structlog.get_logger()


class LLMClient:
    """Unified LLM client wrapping LiteLLM. Implements ``OracleProtocol``."""

    def __init__(self, model: str | None = None) -> None:
        self.model = model or settings.judge_model
        # Set API keys if configured
        if settings.anthropic_api_key:
            os.environ["ANTHROPIC_API_KEY"] = settings.anthropic_api_key
        if settings.openai_api_key:
            os.environ["OPENAI_API_KEY"] = settings.openai_api_key
        # Set Ollama base URL
        if settings.llm_provider == "ollama":
            os.environ["OLLAMA_API_BASE"] = settings.ollama_base_url

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str:
        """Answer one system + user prompt pair and return the text only."""
        response = await self.chat(
            messages=[{"role": "user", "content": user_prompt}],
            system=system_prompt,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return response.content

    async def chat(
        self,
        messages: list[dict[str, Any]],
        system: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """Send a chat completion request to any LLM provider.

        Args:
            messages: Chat messages in OpenAI format
            system: System prompt (prepended as system message)
            temperature: Sampling temperature
            max_tokens: Maximum output tokens

        Returns:
            Normalized LLMResponse regardless of provider
        """
        full_messages: list[dict[str, Any]] = []
        if system:
            full_messages.append({"role": "system", "content": system})
        full_messages.extend(messages)

        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": full_messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }

        if self.model.startswith("ollama/"):
            kwargs["api_base"] = settings.ollama_base_url

        logger.debug(
            "llm_request",
            model=self.model,
            message_count=len(full_messages),
            temperature=temperature,
        )

        response = await acompletion(**kwargs)

        message = response.choices[0].message
        content = message.content or ""

        usage = response.usage
        input_tokens = usage.prompt_tokens if usage else 0
        output_tokens = usage.completion_tokens if usage else 0

        result = LLMResponse(
            content=content,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            model=response.model or self.model,
            stop_reason=response.choices[0].finish_reason or "",
        )

        logger.debug(
            "llm_response",
            model=self.model,
            content_length=len(content),
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )

        return result
