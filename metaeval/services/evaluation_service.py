"""Evaluation orchestrator and caller-facing entry point.

Text path: fan out one oracle judgement per dimension, fan in to the
composite assessor, then optionally rewrite the response. Heuristic path:
delegate to the injected self-evaluation strategy.
"""

from __future__ import annotations

import asyncio
import dataclasses
import time
from collections.abc import Mapping, Sequence
from typing import Any

import structlog

from metaeval.config import settings
from metaeval.core.exceptions import (
    ArgumentValidationError,
    EvaluationError,
    OracleInvocationError,
)
from metaeval.engine.types import OracleProtocol, TelemetrySinkProtocol
from metaeval.evaluation.composite_assessor import CompositeAssessor
from metaeval.evaluation.dimension_evaluator import DimensionEvaluator
from metaeval.evaluation.heuristics import HeuristicSelfEvaluator
from metaeval.evaluation.improvement import ImprovementSynthesizer
from metaeval.evaluation.strategies import OracleJudgeStrategy
from metaeval.evaluation.types import (
    ALL_DIMENSIONS,
    CompositeEvaluation,
    Dimension,
    DimensionFailure,
    DimensionScore,
    EvaluationRequest,
    InsightReport,
    LearningAssessment,
    MetricBundle,
    PerformanceAssessment,
    RefinedResponse,
    RefinementOutcome,
    SelfEvaluationStrategy,
)
from metaeval.telemetry import StructlogTelemetrySink, emit_metric

logger = structlog.get_logger()


class MetacognitiveEvaluationService:
    """Judges responses and operational metrics; synthesizes improvements."""

    def __init__(
        self,
        oracle: OracleProtocol | None = None,
        telemetry: TelemetrySinkProtocol | None = None,
        self_evaluator: SelfEvaluationStrategy | None = None,
        weights: Mapping[str, float] | None = None,
        timeout_seconds: float | None = None,
        dimensions: Sequence[Dimension] = ALL_DIMENSIONS,
    ) -> None:
        if oracle is None:
            from metaeval.engine.llm_client import LLMClient

            oracle = LLMClient()
        self.oracle = oracle
        self.telemetry = telemetry if telemetry is not None else StructlogTelemetrySink()
        self.timeout_seconds = (
            settings.oracle_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.dimensions = tuple(dimensions)

        self.dimension_evaluator = DimensionEvaluator(oracle, telemetry=self.telemetry)
        self.assessor = CompositeAssessor(oracle, telemetry=self.telemetry, weights=weights)
        self.synthesizer = ImprovementSynthesizer(oracle)
        self.self_evaluator = self_evaluator or self._default_self_evaluator(oracle)

    @staticmethod
    def _default_self_evaluator(oracle: OracleProtocol) -> SelfEvaluationStrategy:
        if settings.self_evaluation_strategy == "oracle":
            return OracleJudgeStrategy(oracle)
        return HeuristicSelfEvaluator()

    # ------------------------------------------------------------------
    # Text path
    # ------------------------------------------------------------------

    async def evaluate(self, request: EvaluationRequest) -> CompositeEvaluation:
        """Score every dimension concurrently and build the composite verdict.

        A failed or timed-out dimension is recorded and left out of the mean.
        Raises EvaluationError only when every dimension failed.
        """
        self._validate_request(request)
        start = time.perf_counter()

        results = await asyncio.gather(
            *(self._evaluate_dimension(d, request) for d in self.dimensions),
            return_exceptions=True,
        )

        scores: list[DimensionScore] = []
        failures: list[DimensionFailure] = []
        last_error: BaseException | None = None

        for dimension, result in zip(self.dimensions, results):
            if isinstance(result, DimensionScore):
                scores.append(result)
            elif isinstance(result, Exception):
                last_error = result
                failures.append(DimensionFailure(dimension=dimension, error=str(result)))
            else:
                raise result

        if not scores:
            logger.error(
                "evaluation_failed",
                request_id=request.request_id,
                failed=[f.dimension.value for f in failures],
            )
            raise EvaluationError(
                f"All {len(failures)} dimension evaluations failed for request "
                f"{request.request_id}"
            ) from last_error

        if failures:
            logger.warning(
                "evaluation_partial",
                request_id=request.request_id,
                evaluated=len(scores),
                failed=[f.dimension.value for f in failures],
            )

        evaluation = await self.assessor.assess(request, scores, failed_dimensions=failures)
        # Covers the fan-out and the recommendation call.
        return dataclasses.replace(
            evaluation,
            evaluation_duration_ms=int((time.perf_counter() - start) * 1000),
        )

    async def improve(
        self,
        request: EvaluationRequest,
        evaluation: CompositeEvaluation,
    ) -> RefinedResponse:
        """One-shot rewrite of the candidate using the evaluation feedback."""
        self._validate_request(request)
        return await self.synthesizer.synthesize(request, evaluation)

    async def refine(
        self,
        request: EvaluationRequest,
        max_iterations: int | None = None,
        min_delta: float | None = None,
    ) -> RefinementOutcome:
        """Evaluate, rewrite and re-score until the score stops improving.

        A revision is accepted only when its aggregate beats the current best
        by more than ``min_delta``. Stops at the first rejected revision or
        after ``max_iterations`` rewrites.
        """
        limit = settings.refinement_max_iterations if max_iterations is None else max_iterations
        threshold = settings.refinement_min_delta if min_delta is None else min_delta
        if limit < 0:
            raise ArgumentValidationError("max_iterations", "max_iterations must be >= 0")

        initial = await self.evaluate(request)
        best_request, best_eval = request, initial
        history = [initial]
        iterations = 0

        while iterations < limit:
            iterations += 1
            revision = await self.improve(best_request, best_eval)
            candidate = best_request.with_response(revision.text)
            candidate_eval = await self.evaluate(candidate)
            history.append(candidate_eval)

            before = best_eval.aggregate_score or 0.0
            after = candidate_eval.aggregate_score or 0.0
            logger.info(
                "refinement_iteration",
                request_id=request.request_id,
                iteration=iterations,
                before=round(before, 4),
                after=round(after, 4),
            )

            if after - before <= threshold:
                break
            best_request, best_eval = candidate, candidate_eval

        return RefinementOutcome(
            final_response=best_request.candidate_response,
            initial_evaluation=initial,
            final_evaluation=best_eval,
            iterations=iterations,
            history=tuple(history),
        )

    async def _evaluate_dimension(
        self,
        dimension: Dimension,
        request: EvaluationRequest,
    ) -> DimensionScore:
        try:
            return await asyncio.wait_for(
                self.dimension_evaluator.evaluate(dimension, request),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            logger.error(
                "dimension_evaluation_timeout",
                dimension=dimension.value,
                request_id=request.request_id,
                timeout_seconds=self.timeout_seconds,
            )
            raise OracleInvocationError(
                dimension.value, f"timed out after {self.timeout_seconds}s",
            ) from e

    @staticmethod
    def _validate_request(request: EvaluationRequest) -> None:
        if request is None:
            raise ArgumentValidationError("request", "Argument 'request' must not be None")
        if not request.query or not request.query.strip():
            raise ArgumentValidationError("query")
        if not request.candidate_response or not request.candidate_response.strip():
            raise ArgumentValidationError("candidate_response")

    # ------------------------------------------------------------------
    # Heuristic path
    # ------------------------------------------------------------------

    async def evaluate_performance(
        self,
        component_name: str,
        metrics: MetricBundle,
        cancel_event: Any = None,
    ) -> PerformanceAssessment:
        assessment = await self.self_evaluator.evaluate_performance(
            component_name, metrics, cancel_event,
        )
        emit_metric(self.telemetry, f"{component_name}.score", assessment.composite_score)
        return assessment

    async def assess_learning_progress(
        self,
        task_id: str,
        metrics: MetricBundle,
        cancel_event: Any = None,
    ) -> LearningAssessment:
        return await self.self_evaluator.assess_learning_progress(task_id, metrics, cancel_event)

    async def generate_insights(
        self,
        context: str,
        data: Mapping[str, Any],
        cancel_event: Any = None,
    ) -> InsightReport:
        return await self.self_evaluator.generate_insights(context, data, cancel_event)

    async def validate_behavior(
        self,
        behavior_name: str,
        parameters: Mapping[str, Any],
        cancel_event: Any = None,
    ) -> bool:
        return await self.self_evaluator.validate_behavior(behavior_name, parameters, cancel_event)
