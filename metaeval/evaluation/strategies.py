"""Swappable self-evaluation strategies.

Both implement ``SelfEvaluationStrategy`` and are chosen by constructor
injection. ``HeuristicStrategy`` is the deterministic evaluator;
``OracleJudgeStrategy`` asks the oracle to judge operational metrics and
falls back to heuristics for everything that has no judgement component.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from metaeval.core.exceptions import OracleInvocationError
from metaeval.engine.types import OracleProtocol
from metaeval.evaluation.aggregation import classify_band
from metaeval.evaluation.composite_assessor import parse_suggestions
from metaeval.evaluation.heuristics import (
    PERFORMANCE_RULES,
    HeuristicSelfEvaluator,
    check_cancelled,
    require_collection,
    require_identifier,
    to_number,
)
from metaeval.evaluation.score_extractor import extract_score_detailed
from metaeval.evaluation.types import (
    InsightReport,
    LearningAssessment,
    MetricBundle,
    PerformanceAssessment,
    SelfEvaluationStrategy,
)

logger = structlog.get_logger()

HeuristicStrategy = HeuristicSelfEvaluator

_PERFORMANCE_SYSTEM_PROMPT = (
    "You are a system performance evaluator. Analyze the provided metrics to "
    "evaluate the performance of the specified system component."
)
_REPORT_SYSTEM_PROMPT = (
    "You are a self-evaluation report generator. Generate a detailed "
    "self-evaluation report based on the provided performance evaluation."
)


def format_metrics(metrics: MetricBundle) -> str:
    return "\n".join(f"- {key}: {value}" for key, value in metrics.items())


class OracleJudgeStrategy:
    """Oracle-judged performance; heuristics for the remaining operations."""

    def __init__(
        self,
        oracle: OracleProtocol,
        fallback: SelfEvaluationStrategy | None = None,
        temperature: float = 0.3,
        max_tokens: int = 800,
    ) -> None:
        self.oracle = oracle
        self.fallback = fallback or HeuristicSelfEvaluator()
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def evaluate_performance(
        self,
        component_name: str,
        metrics: MetricBundle,
        cancel_event: Any = None,
    ) -> PerformanceAssessment:
        """Ask the oracle for a score and recommendations on the metrics."""
        require_identifier("component_name", component_name)
        require_collection("metrics", metrics)
        check_cancelled(cancel_event, "evaluate_performance")

        recognized = [k for k in PERFORMANCE_RULES if to_number(metrics.get(k)) is not None]
        if not recognized:
            return await self.fallback.evaluate_performance(component_name, metrics)

        text = await self._judge(component_name, metrics)
        extraction = extract_score_detailed(text)
        band = classify_band(extraction.score)

        logger.info(
            "oracle_performance_evaluated",
            component=component_name,
            score=extraction.score,
            score_source=extraction.source.value,
            band=band.value,
        )

        return PerformanceAssessment(
            component_name=component_name,
            composite_score=extraction.score,
            band=band,
            recommendations=tuple(parse_suggestions(_after_score_line(text))),
            evaluated_metric_count=len(recognized),
        )

    async def generate_report(self, component_name: str, metrics: MetricBundle) -> str:
        """Two-step report: judge the metrics, then write up the judgement."""
        require_identifier("component_name", component_name)
        require_collection("metrics", metrics)

        evaluation = await self._judge(component_name, metrics)
        user_prompt = (
            f"Component: {component_name}\n"
            f"Metrics:\n{format_metrics(metrics)}\n\n"
            f"Evaluation: {evaluation}"
        )
        try:
            report = await self.oracle.complete(
                system_prompt=_REPORT_SYSTEM_PROMPT,
                user_prompt=user_prompt,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.error("self_evaluation_report_failed", component=component_name, error=str(e))
            raise OracleInvocationError("self_evaluation_report", str(e)) from e

        logger.info("self_evaluation_report_generated", component=component_name, length=len(report))
        return report

    async def assess_learning_progress(
        self,
        task_id: str,
        metrics: MetricBundle,
        cancel_event: Any = None,
    ) -> LearningAssessment:
        return await self.fallback.assess_learning_progress(task_id, metrics, cancel_event)

    async def generate_insights(
        self,
        context: str,
        data: Mapping[str, Any],
        cancel_event: Any = None,
    ) -> InsightReport:
        return await self.fallback.generate_insights(context, data, cancel_event)

    async def validate_behavior(
        self,
        behavior_name: str,
        parameters: Mapping[str, Any],
        cancel_event: Any = None,
    ) -> bool:
        return await self.fallback.validate_behavior(behavior_name, parameters, cancel_event)

    async def _judge(self, component_name: str, metrics: MetricBundle) -> str:
        user_prompt = (
            f"Component: {component_name}\n"
            f"Metrics:\n{format_metrics(metrics)}\n\n"
            "Give an overall performance score from 0.0 (failing) to 1.0 (optimal) "
            'on the first line as "Score: <number>", then list concrete '
            "recommendations, one per numbered line."
        )
        try:
            return await self.oracle.complete(
                system_prompt=_PERFORMANCE_SYSTEM_PROMPT,
                user_prompt=user_prompt,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except Exception as e:
            logger.error("oracle_performance_failed", component=component_name, error=str(e))
            raise OracleInvocationError("evaluate_performance", str(e)) from e


def _after_score_line(text: str) -> str:
    """Drop a leading "Score: ..." line so it is not read as a recommendation."""
    lines = (text or "").splitlines()
    if lines and "score" in lines[0].lower():
        return "\n".join(lines[1:])
    return text or ""
