"""Rewrite a response using the feedback from its composite evaluation."""

from __future__ import annotations

import structlog

from metaeval.config import settings
from metaeval.core.exceptions import EvaluationError, OracleInvocationError
from metaeval.engine.types import OracleProtocol
from metaeval.evaluation.dimension_evaluator import format_evidence, format_perspectives
from metaeval.evaluation.types import CompositeEvaluation, EvaluationRequest, RefinedResponse

logger = structlog.get_logger()

_SYSTEM_PROMPT = (
    "You are a response improvement system. "
    "Your task is to generate an improved version of a response based on evaluation "
    "feedback. Maintain the core information while addressing the identified weaknesses."
)


class ImprovementSynthesizer:
    """Asks the oracle for a revised response that applies the recommendations."""

    def __init__(
        self,
        oracle: OracleProtocol,
        evidence_limit: int | None = None,
    ) -> None:
        self.oracle = oracle
        self.evidence_limit = (
            settings.improvement_evidence_limit if evidence_limit is None else evidence_limit
        )

    async def synthesize(
        self,
        request: EvaluationRequest,
        evaluation: CompositeEvaluation,
    ) -> RefinedResponse:
        """Produce a revision. Only surrounding whitespace is trimmed."""
        user_prompt = self._build_user_prompt(request, evaluation)

        try:
            text = await self.oracle.complete(
                system_prompt=_SYSTEM_PROMPT,
                user_prompt=user_prompt,
                temperature=settings.improvement_temperature,
                max_tokens=settings.improvement_max_tokens,
            )
        except Exception as e:
            logger.error(
                "improvement_synthesis_failed",
                request_id=request.request_id,
                query=request.query[:200],
                error=str(e),
            )
            raise OracleInvocationError("improvement", str(e)) from e

        revised = (text or "").strip()
        if not revised:
            raise EvaluationError(
                f"Oracle returned an empty revision for request {request.request_id}"
            )

        logger.info(
            "improvement_synthesized",
            request_id=request.request_id,
            original_length=len(request.candidate_response),
            revised_length=len(revised),
            recommendation_count=len(evaluation.recommendations),
        )

        return RefinedResponse(
            text=revised,
            request_id=request.request_id,
            recommendations_applied=evaluation.recommendations,
        )

    def _build_user_prompt(
        self,
        request: EvaluationRequest,
        evaluation: CompositeEvaluation,
    ) -> str:
        suggestions = "\n".join(f"- {s}" for s in evaluation.recommendations) or "- (none)"
        knowledge = format_evidence(request.evidence[: self.evidence_limit]) or "(none)"
        # Per-perspective analyses only, no synthesis.
        analyses = format_perspectives(request.perspectives) or "(none)"

        return (
            f"Query: {request.query}\n\n"
            f"Original Response: {request.candidate_response}\n\n"
            f"Improvement Suggestions:\n{suggestions}\n\n"
            f"Relevant Knowledge:\n{knowledge}\n\n"
            f"Perspective Analyses:\n{analyses}\n\n"
            "Generate an improved response that addresses the suggestions while "
            "maintaining the core information."
        )
