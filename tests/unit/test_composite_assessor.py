"""Unit tests for composite assessment and suggestion parsing."""

from __future__ import annotations

import statistics

import pytest

from metaeval.evaluation.composite_assessor import CompositeAssessor, parse_suggestions
from metaeval.evaluation.types import (
    Band,
    Dimension,
    DimensionFailure,
    DimensionScore,
)
from tests.fakes import SUGGESTIONS, ScriptedOracle, judge_replies


def _scores(**values: float) -> list[DimensionScore]:
    return [
        DimensionScore(dimension=Dimension(name), score=value, rationale=f"{name} rationale")
        for name, value in values.items()
    ]


ALL_FOUR = dict(
    factual_accuracy=0.9,
    reasoning_quality=0.8,
    relevance=0.7,
    completeness=0.6,
)


class TestParseSuggestions:

    def test_numbered_list_with_preamble_and_wrapping(self) -> None:
        text = judge_replies()[SUGGESTIONS]
        assert parse_suggestions(text) == [
            "Cite the knowledge sources explicitly.",
            "Answer the population question with the latest census figure.",
            "Remove the tangent about history.",
        ]

    def test_bullets(self) -> None:
        text = "- Add sources\n* Shorten the intro\n- Fix the date"
        assert parse_suggestions(text) == ["Add sources", "Shorten the intro", "Fix the date"]

    def test_no_markers_is_one_suggestion(self) -> None:
        text = "Add a citation for the\npopulation figure."
        assert parse_suggestions(text) == ["Add a citation for the population figure."]

    def test_blank_lines_ignored(self) -> None:
        text = "1. First\n\n\n2. Second\n"
        assert parse_suggestions(text) == ["First", "Second"]

    @pytest.mark.parametrize("text", ["", "   \n  ", None])
    def test_empty(self, text: str | None) -> None:
        assert parse_suggestions(text) == []

    def test_decimal_inside_item_is_not_a_marker(self) -> None:
        text = "1. Raise the score above 0.8\n2. Keep it short"
        assert parse_suggestions(text) == ["Raise the score above 0.8", "Keep it short"]

    def test_empty_marker_items_dropped(self) -> None:
        assert parse_suggestions("1. \n2. Real item") == ["Real item"]


class TestCompositeAssessor:

    @pytest.mark.asyncio
    async def test_full_assessment(self, eval_request, telemetry) -> None:
        oracle = ScriptedOracle(judge_replies())
        assessor = CompositeAssessor(oracle, telemetry=telemetry, weights={})

        result = await assessor.assess(eval_request, _scores(**ALL_FOUR), duration_ms=42)

        assert result.request_id == eval_request.request_id
        assert result.aggregate_score == pytest.approx(0.75)
        assert result.band == Band.GOOD
        assert result.evaluated_dimension_count == 4
        assert not result.is_partial
        assert result.evaluation_duration_ms == 42
        assert len(result.recommendations) == 3
        assert telemetry.values("metacognitive_evaluation.aggregate") == [pytest.approx(0.75)]

    @pytest.mark.asyncio
    async def test_recommendation_call(self, eval_request) -> None:
        oracle = ScriptedOracle(judge_replies())
        await CompositeAssessor(oracle, weights={}).assess(eval_request, _scores(**ALL_FOUR))

        call = oracle.calls_for(SUGGESTIONS)[0]
        assert call.max_tokens == 1000
        assert call.temperature == pytest.approx(0.3)
        assert "Factual Accuracy (Score: 0.90)" in call.user_prompt
        assert "Completeness (Score: 0.60)" in call.user_prompt
        assert "reasoning_quality rationale" in call.user_prompt

    @pytest.mark.asyncio
    async def test_partial_assessment(self, eval_request, telemetry) -> None:
        oracle = ScriptedOracle(judge_replies())
        failure = DimensionFailure(dimension=Dimension.RELEVANCE, error="timed out")
        scores = _scores(factual_accuracy=0.9, reasoning_quality=0.8, completeness=0.6)

        result = await CompositeAssessor(oracle, telemetry=telemetry, weights={}).assess(
            eval_request, scores, failed_dimensions=[failure],
        )

        assert result.aggregate_score == pytest.approx(0.7667, abs=1e-4)
        assert result.aggregate_score == statistics.mean([0.9, 0.8, 0.6])
        assert result.is_partial
        assert result.failed_dimensions == (failure,)
        assert result.score_for(Dimension.RELEVANCE) is None
        assert result.score_for(Dimension.FACTUAL_ACCURACY).score == 0.9
        assert telemetry.metrics[-1].tags["partial"] is True

    @pytest.mark.asyncio
    async def test_no_scores_means_no_aggregate_and_no_oracle_call(self, eval_request) -> None:
        oracle = ScriptedOracle(judge_replies())
        result = await CompositeAssessor(oracle, weights={}).assess(eval_request, [])

        assert result.aggregate_score is None
        assert result.band is None
        assert result.recommendations == ()
        assert oracle.calls == []

    @pytest.mark.asyncio
    async def test_recommendation_failure_yields_empty_list(self, eval_request) -> None:
        oracle = ScriptedOracle(judge_replies({SUGGESTIONS: TimeoutError("slow")}))
        result = await CompositeAssessor(oracle, weights={}).assess(
            eval_request, _scores(**ALL_FOUR),
        )

        assert result.aggregate_score == pytest.approx(0.75)
        assert result.recommendations == ()

    @pytest.mark.asyncio
    async def test_weighted_aggregate(self, eval_request) -> None:
        oracle = ScriptedOracle(judge_replies())
        weights = {
            "factual_accuracy": 3.0,
            "reasoning_quality": 1.0,
            "relevance": 1.0,
            "completeness": 1.0,
        }
        result = await CompositeAssessor(oracle, weights=weights).assess(
            eval_request, _scores(**ALL_FOUR),
        )
        # (0.9 * 3 + 0.8 + 0.7 + 0.6) / 6 = 0.8
        assert result.aggregate_score == pytest.approx(0.8)
