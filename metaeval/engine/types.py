"""Core types and protocols for talking to the oracle.

Evaluators depend on these interfaces, not on concrete implementations.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass
class LLMResponse:
    """Normalized response from any LLM provider."""

    content: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    stop_reason: str = ""


# ============================================================
# Protocols: substitute fakes for these in tests
# ============================================================


class OracleProtocol(Protocol):
    """Any text-generation service that can answer a single prompt."""

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float,
        max_tokens: int,
    ) -> str: ...


class TelemetrySinkProtocol(Protocol):
    """Fire-and-forget numeric metric emission."""

    def track_metric(self, name: str, value: float, **tags: Any) -> None: ...
