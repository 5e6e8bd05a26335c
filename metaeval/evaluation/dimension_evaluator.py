"""LLM-as-judge evaluator for a single quality dimension.

One oracle call per dimension. The judge is asked for a JSON verdict and the
whole reply is kept as the rationale; the score is pulled out by the score
extractor, which also accepts legacy "Score: 0.8" style replies.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

import structlog

from metaeval.config import settings
from metaeval.core.exceptions import OracleInvocationError
from metaeval.engine.types import OracleProtocol, TelemetrySinkProtocol
from metaeval.evaluation.score_extractor import extract_score_detailed
from metaeval.evaluation.types import (
    Dimension,
    DimensionScore,
    EvaluationRequest,
    EvidenceDocument,
    PerspectiveAnalysis,
)
from metaeval.telemetry import emit_metric

logger = structlog.get_logger()

_VERDICT_FORMAT = (
    'Reply with a JSON object of the form {"score": <number between 0.0 and 1.0>, '
    '"rationale": "<your explanation>"}.'
)


@dataclass(frozen=True)
class DimensionPrompt:
    """Fixed judging instructions for one dimension."""

    system: str
    instruction: str
    max_tokens: int


DIMENSION_PROMPTS: dict[Dimension, DimensionPrompt] = {
    Dimension.FACTUAL_ACCURACY: DimensionPrompt(
        system=(
            "You are a factual accuracy evaluation system. "
            "Assess whether the response contains factual claims that are supported "
            "by the provided knowledge. Identify any factual errors or unsupported claims."
        ),
        instruction=(
            "Evaluate the factual accuracy of the response. "
            "Provide a score from 0.0 (completely inaccurate) to 1.0 (completely accurate). "
            "Explain your reasoning and list every unsupported or incorrect claim."
        ),
        max_tokens=1000,
    ),
    Dimension.REASONING_QUALITY: DimensionPrompt(
        system=(
            "You are a reasoning quality evaluation system. "
            "Assess the logical coherence, consideration of multiple perspectives, "
            "and quality of inferences in the response."
        ),
        instruction=(
            "Evaluate the reasoning quality of the response. "
            "Provide a score from 0.0 (poor reasoning) to 1.0 (excellent reasoning). "
            "Consider logical coherence, consideration of multiple perspectives, "
            "and quality of inferences."
        ),
        max_tokens=1000,
    ),
    Dimension.RELEVANCE: DimensionPrompt(
        system=(
            "You are a relevance evaluation system. "
            "Assess how directly the response addresses the query and whether it "
            "contains irrelevant information."
        ),
        instruction=(
            "Evaluate the relevance of the response to the query. "
            "Provide a score from 0.0 (completely irrelevant) to 1.0 (perfectly relevant). "
            "Explain your reasoning and identify any off-topic content."
        ),
        max_tokens=800,
    ),
    Dimension.COMPLETENESS: DimensionPrompt(
        system=(
            "You are a completeness evaluation system. "
            "Assess whether the response fully addresses all aspects of the query "
            "or if important elements are missing."
        ),
        instruction=(
            "Evaluate the completeness of the response. "
            "Provide a score from 0.0 (very incomplete) to 1.0 (fully complete). "
            "Explain your reasoning and identify any missing elements."
        ),
        max_tokens=800,
    ),
}


def format_evidence(documents: tuple[EvidenceDocument, ...] | list[EvidenceDocument]) -> str:
    """Render evidence documents as titled blocks."""
    blocks = [
        f"--- {doc.title} ---\nSource: {doc.source}\n{doc.content}"
        for doc in documents
    ]
    return "\n\n".join(blocks)


def format_perspectives(
    perspectives: tuple[PerspectiveAnalysis, ...] | list[PerspectiveAnalysis],
    synthesis: str = "",
) -> str:
    """Render perspective analyses, followed by the synthesis if there is one."""
    blocks = [f"--- {p.label} Perspective ---\n{p.analysis_text}" for p in perspectives]
    if synthesis:
        blocks.append(f"--- Synthesis ---\n{synthesis}")
    return "\n\n".join(blocks)


class DimensionEvaluator:
    """Scores one dimension of a candidate response with the oracle."""

    def __init__(
        self,
        oracle: OracleProtocol,
        telemetry: TelemetrySinkProtocol | None = None,
        temperature: float | None = None,
    ) -> None:
        self.oracle = oracle
        self.telemetry = telemetry
        self.temperature = settings.judge_temperature if temperature is None else temperature

    async def evaluate(
        self,
        dimension: Dimension,
        request: EvaluationRequest,
    ) -> DimensionScore:
        """Ask the oracle to judge ``dimension`` and return the parsed score."""
        prompt = DIMENSION_PROMPTS[dimension]
        user_prompt = self._build_user_prompt(dimension, request)

        start = time.perf_counter()
        try:
            text = await self.oracle.complete(
                system_prompt=prompt.system,
                user_prompt=user_prompt,
                temperature=self.temperature,
                max_tokens=prompt.max_tokens,
            )
        except Exception as e:
            logger.error(
                "dimension_evaluation_failed",
                dimension=dimension.value,
                request_id=request.request_id,
                query=request.query[:200],
                error=str(e),
            )
            raise OracleInvocationError(dimension.value, str(e)) from e

        duration_ms = int((time.perf_counter() - start) * 1000)
        extraction = extract_score_detailed(text)

        logger.info(
            "dimension_evaluated",
            dimension=dimension.value,
            request_id=request.request_id,
            score=extraction.score,
            score_source=extraction.source.value,
            duration_ms=duration_ms,
        )
        emit_metric(
            self.telemetry,
            f"metacognitive_evaluation.{dimension.value}",
            extraction.score,
            request_id=request.request_id,
        )

        return DimensionScore(
            dimension=dimension,
            score=extraction.score,
            rationale=text,
            source=extraction.source,
            duration_ms=duration_ms,
        )

    def _build_user_prompt(self, dimension: Dimension, request: EvaluationRequest) -> str:
        parts = [
            f"Query: {request.query}",
            f"Response to evaluate: {request.candidate_response}",
        ]

        if dimension == Dimension.FACTUAL_ACCURACY:
            knowledge = format_evidence(request.evidence) or "(no knowledge sources provided)"
            parts.append(f"Knowledge sources:\n{knowledge}")
        elif dimension == Dimension.REASONING_QUALITY:
            analyses = (
                format_perspectives(request.perspectives, request.synthesis)
                or "(no perspective analyses provided)"
            )
            parts.append(f"Perspective analyses:\n{analyses}")

        parts.append(DIMENSION_PROMPTS[dimension].instruction)
        parts.append(_VERDICT_FORMAT)
        return "\n\n".join(parts)
