"""Combine dimension scores into one verdict with improvement suggestions.

The aggregate is the arithmetic mean of whatever dimensions succeeded, or a
weighted mean when weights are configured. Suggestions come from a second
oracle call and are split out of the free-text reply by list markers.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence

import structlog

from metaeval.config import settings
from metaeval.engine.types import OracleProtocol, TelemetrySinkProtocol
from metaeval.evaluation.aggregation import aggregate_scores, classify_band
from metaeval.evaluation.types import (
    CompositeEvaluation,
    DimensionFailure,
    DimensionScore,
    EvaluationRequest,
)
from metaeval.telemetry import emit_metric

logger = structlog.get_logger()

_ITEM_MARKER = re.compile(r"^(\d+\.|-|\*)\s")

_RECOMMENDATION_SYSTEM_PROMPT = (
    "You are an improvement suggestion system. "
    "Based on the evaluations of a response, suggest specific ways to improve it."
)


def parse_suggestions(text: str) -> list[str]:
    """Split a numbered or bulleted list into one string per item.

    A line starting with ``1.``, ``-`` or ``*`` opens a new item; any other
    non-blank line is folded into the item before it. Lead-in text before the
    first marker is dropped, unless the reply has no markers at all, in which
    case the whole reply is a single suggestion.
    """
    suggestions: list[str] = []
    preamble: list[str] = []
    current: list[str] | None = None

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        if _ITEM_MARKER.match(line):
            if current:
                suggestions.append(" ".join(current).strip())
            current = [_ITEM_MARKER.sub("", line, count=1).strip()]
        elif current is None:
            preamble.append(line)
        else:
            current.append(line)

    if current:
        suggestions.append(" ".join(current).strip())
    elif current is None and preamble:
        suggestions.append(" ".join(preamble))

    return [s for s in suggestions if s]


class CompositeAssessor:
    """Aggregates dimension scores and asks the oracle for recommendations."""

    def __init__(
        self,
        oracle: OracleProtocol,
        telemetry: TelemetrySinkProtocol | None = None,
        weights: Mapping[str, float] | None = None,
    ) -> None:
        self.oracle = oracle
        self.telemetry = telemetry
        self.weights = dict(settings.dimension_weights if weights is None else weights)

    async def assess(
        self,
        request: EvaluationRequest,
        dimension_scores: Sequence[DimensionScore],
        failed_dimensions: Sequence[DimensionFailure] = (),
        duration_ms: int = 0,
    ) -> CompositeEvaluation:
        """Build the composite verdict for one evaluation request."""
        aggregate = aggregate_scores(
            {ds.dimension.value: ds.score for ds in dimension_scores},
            self.weights,
        )

        recommendations: list[str] = []
        if dimension_scores:
            recommendations = await self._recommend(request, dimension_scores)

        evaluation = CompositeEvaluation(
            request_id=request.request_id,
            dimension_scores=tuple(dimension_scores),
            aggregate_score=aggregate,
            recommendations=tuple(recommendations),
            evaluation_duration_ms=duration_ms,
            failed_dimensions=tuple(failed_dimensions),
            band=classify_band(aggregate) if aggregate is not None else None,
        )

        if aggregate is not None:
            emit_metric(
                self.telemetry,
                "metacognitive_evaluation.aggregate",
                aggregate,
                request_id=request.request_id,
                partial=evaluation.is_partial,
            )

        logger.info(
            "composite_assessed",
            request_id=request.request_id,
            aggregate_score=round(aggregate, 4) if aggregate is not None else None,
            evaluated=evaluation.evaluated_dimension_count,
            failed=[f.dimension.value for f in failed_dimensions],
            recommendation_count=len(recommendations),
        )
        return evaluation

    async def _recommend(
        self,
        request: EvaluationRequest,
        dimension_scores: Sequence[DimensionScore],
    ) -> list[str]:
        """Ask for 3-5 improvements. An oracle failure yields no suggestions."""
        evaluations_text = "\n\n".join(
            f"{ds.dimension.label} (Score: {ds.score:.2f}):\n{ds.rationale}"
            for ds in dimension_scores
        )
        user_prompt = (
            f"Query: {request.query}\n\n"
            f"Response: {request.candidate_response}\n\n"
            f"Evaluations:\n{evaluations_text}\n\n"
            "Suggest 3-5 specific, distinct improvements that would address the "
            "weaknesses identified in the evaluations. Put each suggestion on its own "
            "numbered line and keep one idea per item."
        )

        try:
            text = await self.oracle.complete(
                system_prompt=_RECOMMENDATION_SYSTEM_PROMPT,
                user_prompt=user_prompt,
                temperature=settings.recommendation_temperature,
                max_tokens=1000,
            )
        except Exception as e:
            logger.warning(
                "recommendations_failed",
                request_id=request.request_id,
                error=str(e),
            )
            return []

        return parse_suggestions(text)
