"""Evaluation protocols and data types.

All evaluators depend on these interfaces, not on concrete implementations.
Records are frozen value objects created fresh per call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Protocol

from uuid_extensions import uuid7

# Free-form metric key -> numeric (or numeric string) value.
MetricBundle = Mapping[str, Any]


class Dimension(str, Enum):
    """One independent axis of quality judgment for a text response."""

    FACTUAL_ACCURACY = "factual_accuracy"
    REASONING_QUALITY = "reasoning_quality"
    RELEVANCE = "relevance"
    COMPLETENESS = "completeness"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


ALL_DIMENSIONS: tuple[Dimension, ...] = tuple(Dimension)


class ScoreSource(str, Enum):
    """How a score was pulled out of oracle text."""

    STRUCTURED = "structured"  # JSON verdict
    LABELLED = "labelled"  # "Score: 0.8"
    FALLBACK = "fallback"  # first bare decimal in [0, 1]
    DEFAULT = "default"  # neutral prior, nothing measured


class Band(str, Enum):
    OPTIMAL = "optimal"
    GOOD = "good"
    ACCEPTABLE = "acceptable"
    DEGRADED = "degraded"
    CRITICAL = "critical"


# ============================================================
# Text path
# ============================================================


@dataclass(frozen=True)
class EvidenceDocument:
    title: str
    source: str
    content: str


@dataclass(frozen=True)
class PerspectiveAnalysis:
    label: str
    analysis_text: str


@dataclass(frozen=True)
class EvaluationRequest:
    """A candidate response plus everything needed to judge it."""

    query: str
    candidate_response: str
    evidence: tuple[EvidenceDocument, ...] = ()
    perspectives: tuple[PerspectiveAnalysis, ...] = ()
    synthesis: str = ""
    request_id: str = field(default_factory=lambda: str(uuid7()))

    def with_response(self, candidate_response: str) -> EvaluationRequest:
        """Same context, new candidate. Used to re-score a revision."""
        return EvaluationRequest(
            query=self.query,
            candidate_response=candidate_response,
            evidence=self.evidence,
            perspectives=self.perspectives,
            synthesis=self.synthesis,
        )


@dataclass(frozen=True)
class DimensionScore:
    dimension: Dimension
    score: float  # 0.0 to 1.0
    rationale: str
    source: ScoreSource = ScoreSource.LABELLED
    duration_ms: int = 0


@dataclass(frozen=True)
class DimensionFailure:
    dimension: Dimension
    error: str


@dataclass(frozen=True)
class CompositeEvaluation:
    """Aggregate verdict over every dimension that was scored."""

    request_id: str
    dimension_scores: tuple[DimensionScore, ...]
    aggregate_score: float | None
    recommendations: tuple[str, ...] = ()
    evaluation_duration_ms: int = 0
    failed_dimensions: tuple[DimensionFailure, ...] = ()
    band: Band | None = None

    @property
    def evaluated_dimension_count(self) -> int:
        return len(self.dimension_scores)

    @property
    def is_partial(self) -> bool:
        return bool(self.failed_dimensions) or self.evaluated_dimension_count < len(ALL_DIMENSIONS)

    def score_for(self, dimension: Dimension) -> DimensionScore | None:
        for ds in self.dimension_scores:
            if ds.dimension == dimension:
                return ds
        return None


@dataclass(frozen=True)
class RefinedResponse:
    text: str
    request_id: str
    recommendations_applied: tuple[str, ...] = ()


@dataclass(frozen=True)
class RefinementOutcome:
    """Result of the evaluate, rewrite, re-score loop."""

    final_response: str
    initial_evaluation: CompositeEvaluation
    final_evaluation: CompositeEvaluation
    iterations: int
    history: tuple[CompositeEvaluation, ...] = ()

    @property
    def score_delta(self) -> float:
        before = self.initial_evaluation.aggregate_score or 0.0
        after = self.final_evaluation.aggregate_score or 0.0
        return round(after - before, 4)

    @property
    def improved(self) -> bool:
        return self.score_delta > 0


# ============================================================
# Heuristic path
# ============================================================


@dataclass(frozen=True)
class PerformanceAssessment:
    component_name: str
    composite_score: float
    band: Band
    recommendations: tuple[str, ...]
    evaluated_metric_count: int
    sub_scores: dict[str, float] = field(default_factory=dict)
    status: str = "evaluated"  # "evaluated" | "no_data"


@dataclass(frozen=True)
class LearningAssessment:
    task_id: str
    progress: float
    confidence: float
    next_steps: tuple[str, ...]


@dataclass(frozen=True)
class InsightPattern:
    type: str  # "high_variance" | "outlier"
    description: str
    affected_metrics: frozenset[str]


@dataclass(frozen=True)
class InsightReport:
    context: str
    key_insights: tuple[str, ...]
    patterns: tuple[InsightPattern, ...]
    recommendations: tuple[str, ...]
    numeric_count: int = 0
    non_numeric_count: int = 0
    insufficient_data: bool = False


class SelfEvaluationStrategy(Protocol):
    """Interface for any self-evaluator (heuristic, oracle judge, etc.)."""

    async def evaluate_performance(
        self,
        component_name: str,
        metrics: MetricBundle,
        cancel_event: Any = None,
    ) -> PerformanceAssessment: ...

    async def assess_learning_progress(
        self,
        task_id: str,
        metrics: MetricBundle,
        cancel_event: Any = None,
    ) -> LearningAssessment: ...

    async def generate_insights(
        self,
        context: str,
        data: Mapping[str, Any],
        cancel_event: Any = None,
    ) -> InsightReport: ...

    async def validate_behavior(
        self,
        behavior_name: str,
        parameters: Mapping[str, Any],
        cancel_event: Any = None,
    ) -> bool: ...
