"""Heuristic self-evaluation, no oracle needed.

Scores operational metrics with fixed normalization functions, tracks
learning-task progress, mines simple statistical patterns from arbitrary
numeric telemetry, and validates behavior parameter sets. Results are
deterministic.

Missing or empty input never raises; it degrades to documented baselines.
Blank identifiers and ``None`` collections raise ``ArgumentValidationError``.
"""

from __future__ import annotations

import math
import numbers
import statistics
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from metaeval.core.exceptions import ArgumentValidationError, OperationCancelledError
from metaeval.evaluation.aggregation import (
    clamp,
    classify_band,
    sigma_outliers,
    summarize_values,
)
from metaeval.evaluation.types import (
    Band,
    InsightPattern,
    InsightReport,
    LearningAssessment,
    MetricBundle,
    PerformanceAssessment,
)

logger = structlog.get_logger()

NO_DATA_SCORE = 0.5


@dataclass(frozen=True)
class MetricRule:
    """How one recognized performance metric is normalized and judged."""

    score: Callable[[float], float]
    is_weak: Callable[[float, float], bool]  # (raw value, sub-score) -> weak?
    advice: Callable[[float], str]


def _latency_score(ms: float) -> float:
    if ms <= 0:
        return 1.0
    return max(0.0, 1.0 - ms / 1000.0)


PERFORMANCE_RULES: dict[str, MetricRule] = {
    "latency": MetricRule(
        score=_latency_score,
        is_weak=lambda raw, sub: sub < 0.5,
        advice=lambda v: (
            f"High latency ({v:.0f} ms): profile slow code paths and add caching "
            "or timeouts where possible."
        ),
    ),
    "errorRate": MetricRule(
        score=lambda v: 1.0 - clamp(v),
        is_weak=lambda raw, sub: raw > 0.05,
        advice=lambda v: (
            f"Elevated error rate ({v:.1%}): investigate failing requests and add "
            "retries or input validation."
        ),
    ),
    "successRate": MetricRule(
        score=clamp,
        is_weak=lambda raw, sub: raw < 0.95,
        advice=lambda v: (
            f"Low success rate ({v:.1%}): review failure modes and add fallbacks."
        ),
    ),
    "throughput": MetricRule(
        score=lambda v: clamp(v / 100.0),
        is_weak=lambda raw, sub: sub < 0.5,
        advice=lambda v: (
            f"Low throughput ({v:g} ops/s): consider batching work or scaling out."
        ),
    ),
    "memoryUsage": MetricRule(
        score=lambda v: 1.0 - clamp(v),
        is_weak=lambda raw, sub: raw > 0.8,
        advice=lambda v: (
            f"High memory usage ({v:.0%}): check for leaks or oversized caches."
        ),
    ),
    "cpuUsage": MetricRule(
        score=lambda v: 1.0 - clamp(v),
        is_weak=lambda raw, sub: raw > 0.85,
        advice=lambda v: (
            f"High CPU usage ({v:.0%}): optimize hot paths or add capacity."
        ),
    ),
    "accuracy": MetricRule(
        score=clamp,
        is_weak=lambda raw, sub: raw < 0.9,
        advice=lambda v: (
            f"Low accuracy ({v:.1%}): refine the model or its training examples."
        ),
    ),
}

# (upper bound, next step) checked in order; progress of 1.0 falls through.
_PROGRESS_STEPS: tuple[tuple[float, str], ...] = (
    (0.25, "Early stage: diversify training examples to broaden coverage."),
    (0.5, "Begin validation against a held-out dataset."),
    (0.75, "Focus on edge cases and failure modes."),
    (1.0, "Run a comprehensive evaluation before release."),
)
_COMPLETE_STEP = "Monitor deployed performance and watch for drift."

_CONFIDENCE_SOURCES = ("accuracy", "successRate", "confidenceScore")
LOW_CONFIDENCE = 0.5
HIGH_LEARNING_ERROR_RATE = 0.1


def to_number(value: Any) -> float | None:
    """Coerce ints, floats and numeric strings to a finite float.

    Booleans, None, non-numeric strings, NaN and infinities give None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    return result if math.isfinite(result) else None


def require_identifier(name: str, value: str | None) -> None:
    if value is None or not str(value).strip():
        raise ArgumentValidationError(name)


def require_collection(name: str, value: Mapping[str, Any] | None) -> None:
    if value is None:
        raise ArgumentValidationError(name, f"Argument '{name}' must not be None")


def check_cancelled(cancel_event: Any, operation: str) -> None:
    if cancel_event is not None and cancel_event.is_set():
        logger.info("operation_cancelled", operation=operation)
        raise OperationCancelledError(operation)


class HeuristicSelfEvaluator:
    """Deterministic, oracle-free self-evaluation of a running component.

    Every operation accepts an optional ``cancel_event`` (anything with
    ``is_set()``, e.g. ``asyncio.Event`` or ``threading.Event``) that is
    checked once before any work starts.
    """

    async def evaluate_performance(
        self,
        component_name: str,
        metrics: MetricBundle,
        cancel_event: Any = None,
    ) -> PerformanceAssessment:
        """Score recognized operational metrics and band the mean."""
        require_identifier("component_name", component_name)
        require_collection("metrics", metrics)
        check_cancelled(cancel_event, "evaluate_performance")

        sub_scores: dict[str, float] = {}
        weak_advice: list[str] = []

        for key, rule in PERFORMANCE_RULES.items():
            raw = to_number(metrics.get(key))
            if raw is None:
                continue
            sub = rule.score(raw)
            sub_scores[key] = sub
            if rule.is_weak(raw, sub):
                weak_advice.append(rule.advice(raw))

        if not sub_scores:
            logger.info("performance_no_data", component=component_name)
            return PerformanceAssessment(
                component_name=component_name,
                composite_score=NO_DATA_SCORE,
                band=classify_band(NO_DATA_SCORE),
                recommendations=(
                    "No recognized metrics supplied; report latency, errorRate, "
                    "successRate, throughput, memoryUsage, cpuUsage or accuracy.",
                ),
                evaluated_metric_count=0,
                status="no_data",
            )

        composite = statistics.mean(sub_scores.values())
        band = classify_band(composite)

        if band == Band.OPTIMAL and not weak_advice:
            recommendations = [
                f"{component_name} is performing optimally; keep monitoring current metrics."
            ]
        else:
            recommendations = weak_advice

        logger.info(
            "performance_evaluated",
            component=component_name,
            score=round(composite, 4),
            band=band.value,
            metric_count=len(sub_scores),
            weak_count=len(weak_advice),
        )

        return PerformanceAssessment(
            component_name=component_name,
            composite_score=composite,
            band=band,
            recommendations=tuple(recommendations),
            evaluated_metric_count=len(sub_scores),
            sub_scores=sub_scores,
        )

    async def assess_learning_progress(
        self,
        task_id: str,
        metrics: MetricBundle,
        cancel_event: Any = None,
    ) -> LearningAssessment:
        """Estimate progress and confidence of a learning task."""
        require_identifier("task_id", task_id)
        require_collection("metrics", metrics)
        check_cancelled(cancel_event, "assess_learning_progress")

        completion = to_number(metrics.get("completionRate"))
        iterations = to_number(metrics.get("iterationCount"))
        total = to_number(metrics.get("totalIterations"))

        if completion is not None:
            progress = clamp(completion)
        elif total is not None and total > 0 and iterations is not None:
            progress = clamp(iterations / total)
        else:
            progress = 0.0

        signals = [
            clamp(v)
            for v in (to_number(metrics.get(k)) for k in _CONFIDENCE_SOURCES)
            if v is not None
        ]
        confidence = statistics.mean(signals) if signals else progress * 0.5

        next_steps = [self._step_for_progress(progress)]
        if confidence < LOW_CONFIDENCE:
            next_steps.append(
                f"Confidence is low ({confidence:.2f}): gather more labelled data and "
                "re-check accuracy before relying on results."
            )
        error_rate = to_number(metrics.get("errorRate"))
        if error_rate is not None and error_rate > HIGH_LEARNING_ERROR_RATE:
            next_steps.append(
                f"Error rate is high ({error_rate:.1%}): analyse failure cases before "
                "continuing training."
            )

        logger.info(
            "learning_progress_assessed",
            task_id=task_id,
            progress=round(progress, 4),
            confidence=round(confidence, 4),
        )

        return LearningAssessment(
            task_id=task_id,
            progress=progress,
            confidence=confidence,
            next_steps=tuple(next_steps),
        )

    async def generate_insights(
        self,
        context: str,
        data: Mapping[str, Any],
        cancel_event: Any = None,
    ) -> InsightReport:
        """Summarize numeric entries and flag spread and outlier patterns."""
        require_identifier("context", context)
        require_collection("data", data)
        check_cancelled(cancel_event, "generate_insights")

        if not data:
            logger.info("insights_insufficient_data", context=context)
            return InsightReport(
                context=context,
                key_insights=(f"Insufficient data to generate insights for {context}.",),
                patterns=(),
                recommendations=(f"Collect metric data for {context} before requesting insights.",),
                insufficient_data=True,
            )

        numeric: dict[str, float] = {}
        non_numeric: list[str] = []
        for key, value in data.items():
            number = to_number(value)
            if number is None:
                non_numeric.append(key)
            else:
                numeric[key] = number

        insights: list[str] = []
        patterns: list[InsightPattern] = []

        summary = summarize_values(numeric)
        if summary is not None:
            insights.append(
                f"Analyzed {summary.sample_count} numeric metric(s) for {context}: "
                f"mean {summary.mean:.4g}, lowest '{summary.min_key}' ({summary.min_val:.4g}), "
                f"highest '{summary.max_key}' ({summary.max_val:.4g})."
            )

            if summary.sample_count >= 2:
                spread = summary.max_val - summary.min_val
                insights.append(
                    f"Spread between '{summary.max_key}' and '{summary.min_key}' is {spread:.4g}."
                )
                if summary.mean > 0 and spread > 0.5 * summary.mean:
                    patterns.append(InsightPattern(
                        type="high_variance",
                        description=(
                            f"Range {spread:.4g} exceeds half the mean ({summary.mean:.4g})."
                        ),
                        affected_metrics=frozenset({summary.min_key, summary.max_key}),
                    ))

            if summary.sample_count >= 3:
                insights.append(f"Population standard deviation is {summary.std_dev:.4g}.")
                for key in sigma_outliers(numeric):
                    patterns.append(InsightPattern(
                        type="outlier",
                        description=(
                            f"'{key}' ({numeric[key]:.4g}) is more than two standard "
                            f"deviations from the mean ({summary.mean:.4g})."
                        ),
                        affected_metrics=frozenset({key}),
                    ))

        if non_numeric:
            insights.append(
                f"{len(non_numeric)} non-numeric entr{'y was' if len(non_numeric) == 1 else 'ies were'} "
                f"not analyzed: {', '.join(non_numeric)}."
            )

        report = InsightReport(
            context=context,
            key_insights=tuple(insights),
            patterns=tuple(patterns),
            recommendations=tuple(self._recommend_for_patterns(context, patterns, numeric)),
            numeric_count=len(numeric),
            non_numeric_count=len(non_numeric),
            insufficient_data=not numeric,
        )

        logger.info(
            "insights_generated",
            context=context,
            numeric_count=report.numeric_count,
            non_numeric_count=report.non_numeric_count,
            pattern_count=len(patterns),
        )
        return report

    async def validate_behavior(
        self,
        behavior_name: str,
        parameters: Mapping[str, Any],
        cancel_event: Any = None,
    ) -> bool:
        """True iff the parameter set is non-empty and every value is usable."""
        require_identifier("behavior_name", behavior_name)
        require_collection("parameters", parameters)
        check_cancelled(cancel_event, "validate_behavior")

        reason = self._invalid_reason(parameters)
        is_valid = reason is None

        logger.info(
            "behavior_validated",
            behavior=behavior_name,
            valid=is_valid,
            reason=reason,
        )
        return is_valid

    @staticmethod
    def _invalid_reason(parameters: Mapping[str, Any]) -> str | None:
        if not parameters:
            return "no parameters"
        for key, value in parameters.items():
            if value is None:
                return f"'{key}' is null"
            if isinstance(value, str) and not value.strip():
                return f"'{key}' is blank"
            if (
                isinstance(value, numbers.Real)
                and not isinstance(value, bool)
                and not math.isfinite(value)
            ):
                return f"'{key}' is not finite"
        return None

    @staticmethod
    def _step_for_progress(progress: float) -> str:
        for upper, step in _PROGRESS_STEPS:
            if progress < upper:
                return step
        return _COMPLETE_STEP

    @staticmethod
    def _recommend_for_patterns(
        context: str,
        patterns: list[InsightPattern],
        numeric: dict[str, float],
    ) -> list[str]:
        if not numeric:
            return [f"Supply numeric metrics for {context} to enable statistical analysis."]
        if not patterns:
            return [f"No anomalous patterns detected; continue monitoring {context}."]

        recommendations: list[str] = []
        for pattern in patterns:
            keys = ", ".join(f"'{k}'" for k in sorted(pattern.affected_metrics))
            if pattern.type == "high_variance":
                recommendations.append(
                    f"Investigate the wide spread across {keys}; consider normalizing "
                    "or segmenting these metrics."
                )
            else:
                recommendations.append(
                    f"Verify {keys}: check for measurement errors or a genuine anomaly."
                )
        return recommendations
