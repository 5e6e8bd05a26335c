"""Test fixtures for metaeval."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from metaeval.evaluation.types import EvaluationRequest, EvidenceDocument, PerspectiveAnalysis
from metaeval.telemetry import InMemoryTelemetrySink


@pytest.fixture
def request_factory() -> Callable[..., EvaluationRequest]:
    def _make(**kwargs: Any) -> EvaluationRequest:
        defaults: dict[str, Any] = {
            "query": "What is the capital of France and how many people live there?",
            "candidate_response": "Paris is the capital of France.",
            "evidence": tuple(
                EvidenceDocument(
                    title=f"Doc {i}",
                    source=f"https://example.org/doc{i}",
                    content=f"Fact number {i} about Paris.",
                )
                for i in range(5)
            ),
            "perspectives": (
                PerspectiveAnalysis(label="Geographic", analysis_text="Paris is on the Seine."),
                PerspectiveAnalysis(label="Demographic", analysis_text="About 2.1M residents."),
            ),
            "synthesis": "Both perspectives agree Paris is the capital.",
        }
        defaults.update(kwargs)
        return EvaluationRequest(**defaults)

    return _make


@pytest.fixture
def eval_request(request_factory: Callable[..., EvaluationRequest]) -> EvaluationRequest:
    return request_factory()


@pytest.fixture
def telemetry() -> InMemoryTelemetrySink:
    return InMemoryTelemetrySink()
