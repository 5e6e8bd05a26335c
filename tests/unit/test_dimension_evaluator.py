"""Unit tests for the per-dimension oracle judge."""

from __future__ import annotations

import pytest

from metaeval.core.exceptions import OracleInvocationError
from metaeval.evaluation.dimension_evaluator import (
    DIMENSION_PROMPTS,
    DimensionEvaluator,
    format_evidence,
    format_perspectives,
)
from metaeval.evaluation.types import (
    Dimension,
    EvidenceDocument,
    PerspectiveAnalysis,
    ScoreSource,
)
from tests.fakes import FACTUAL, REASONING, RELEVANCE, ScriptedOracle, judge_replies


class TestDimensionEvaluator:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("dimension", "expected", "source"),
        [
            (Dimension.FACTUAL_ACCURACY, 0.9, ScoreSource.LABELLED),
            (Dimension.REASONING_QUALITY, 0.8, ScoreSource.STRUCTURED),
            (Dimension.RELEVANCE, 0.7, ScoreSource.LABELLED),
            (Dimension.COMPLETENESS, 0.6, ScoreSource.LABELLED),
        ],
    )
    async def test_scores_each_dimension(
        self, eval_request, dimension: Dimension, expected: float, source: ScoreSource,
    ) -> None:
        oracle = ScriptedOracle(judge_replies())
        evaluator = DimensionEvaluator(oracle)

        result = await evaluator.evaluate(dimension, eval_request)

        assert result.dimension == dimension
        assert result.score == pytest.approx(expected)
        assert result.source == source
        assert result.rationale
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_whole_reply_kept_as_rationale(self, eval_request) -> None:
        reply = "Score: 0.9\nAll claims are supported by the knowledge sources."
        oracle = ScriptedOracle({FACTUAL: reply})

        result = await DimensionEvaluator(oracle).evaluate(
            Dimension.FACTUAL_ACCURACY, eval_request,
        )
        assert result.rationale == reply

    @pytest.mark.asyncio
    async def test_unparseable_reply_is_neutral_default(self, eval_request) -> None:
        oracle = ScriptedOracle({RELEVANCE: "It seems fine to me."})
        result = await DimensionEvaluator(oracle).evaluate(Dimension.RELEVANCE, eval_request)
        assert result.score == 0.5
        assert result.source == ScoreSource.DEFAULT

    @pytest.mark.asyncio
    async def test_decoding_parameters(self, eval_request) -> None:
        oracle = ScriptedOracle(judge_replies())
        evaluator = DimensionEvaluator(oracle)

        for dimension in Dimension:
            await evaluator.evaluate(dimension, eval_request)

        assert [c.max_tokens for c in oracle.calls] == [1000, 1000, 800, 800]
        assert all(c.temperature == pytest.approx(0.1) for c in oracle.calls)

    @pytest.mark.asyncio
    async def test_temperature_override(self, eval_request) -> None:
        oracle = ScriptedOracle(judge_replies())
        await DimensionEvaluator(oracle, temperature=0.0).evaluate(
            Dimension.RELEVANCE, eval_request,
        )
        assert oracle.calls[0].temperature == 0.0

    @pytest.mark.asyncio
    async def test_factual_prompt_carries_evidence_only(self, eval_request) -> None:
        oracle = ScriptedOracle(judge_replies())
        await DimensionEvaluator(oracle).evaluate(Dimension.FACTUAL_ACCURACY, eval_request)

        prompt = oracle.calls_for(FACTUAL)[0].user_prompt
        assert eval_request.query in prompt
        assert eval_request.candidate_response in prompt
        assert "--- Doc 0 ---" in prompt
        assert "--- Doc 4 ---" in prompt
        assert "Geographic Perspective" not in prompt
        assert '"score"' in prompt

    @pytest.mark.asyncio
    async def test_reasoning_prompt_carries_perspectives_and_synthesis(
        self, eval_request,
    ) -> None:
        oracle = ScriptedOracle(judge_replies())
        await DimensionEvaluator(oracle).evaluate(Dimension.REASONING_QUALITY, eval_request)

        prompt = oracle.calls_for(REASONING)[0].user_prompt
        assert "--- Geographic Perspective ---" in prompt
        assert "--- Demographic Perspective ---" in prompt
        assert "--- Synthesis ---" in prompt
        assert "Doc 0" not in prompt

    @pytest.mark.asyncio
    async def test_relevance_prompt_has_no_context_blocks(self, eval_request) -> None:
        oracle = ScriptedOracle(judge_replies())
        await DimensionEvaluator(oracle).evaluate(Dimension.RELEVANCE, eval_request)

        prompt = oracle.calls_for(RELEVANCE)[0].user_prompt
        assert "Doc 0" not in prompt
        assert "Perspective" not in prompt

    @pytest.mark.asyncio
    async def test_missing_evidence_placeholder(self, request_factory) -> None:
        oracle = ScriptedOracle(judge_replies())
        request = request_factory(evidence=())
        await DimensionEvaluator(oracle).evaluate(Dimension.FACTUAL_ACCURACY, request)
        assert "(no knowledge sources provided)" in oracle.calls[0].user_prompt

    @pytest.mark.asyncio
    async def test_oracle_error_is_wrapped(self, eval_request) -> None:
        oracle = ScriptedOracle({FACTUAL: ConnectionError("provider unreachable")})

        with pytest.raises(OracleInvocationError) as exc_info:
            await DimensionEvaluator(oracle).evaluate(Dimension.FACTUAL_ACCURACY, eval_request)

        assert exc_info.value.stage == "factual_accuracy"
        assert "provider unreachable" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, ConnectionError)

    @pytest.mark.asyncio
    async def test_emits_score_metric(self, eval_request, telemetry) -> None:
        oracle = ScriptedOracle(judge_replies())
        await DimensionEvaluator(oracle, telemetry=telemetry).evaluate(
            Dimension.COMPLETENESS, eval_request,
        )

        assert telemetry.values("metacognitive_evaluation.completeness") == [
            pytest.approx(0.6)
        ]
        assert telemetry.metrics[0].tags["request_id"] == eval_request.request_id

    @pytest.mark.asyncio
    async def test_failing_telemetry_does_not_fail_evaluation(self, eval_request) -> None:
        class BrokenSink:
            def track_metric(self, name, value, **tags):
                raise RuntimeError("sink down")

        oracle = ScriptedOracle(judge_replies())
        result = await DimensionEvaluator(oracle, telemetry=BrokenSink()).evaluate(
            Dimension.RELEVANCE, eval_request,
        )
        assert result.score == pytest.approx(0.7)


class TestPrompts:

    def test_every_dimension_has_a_prompt(self) -> None:
        assert set(DIMENSION_PROMPTS) == set(Dimension)

    def test_format_evidence(self) -> None:
        docs = [
            EvidenceDocument(title="A", source="s1", content="alpha"),
            EvidenceDocument(title="B", source="s2", content="beta"),
        ]
        assert format_evidence(docs) == (
            "--- A ---\nSource: s1\nalpha\n\n--- B ---\nSource: s2\nbeta"
        )
        assert format_evidence([]) == ""

    def test_format_perspectives(self) -> None:
        perspectives = [PerspectiveAnalysis(label="Legal", analysis_text="ok")]
        assert format_perspectives(perspectives) == "--- Legal Perspective ---\nok"
        assert format_perspectives(perspectives, "both agree") == (
            "--- Legal Perspective ---\nok\n\n--- Synthesis ---\nboth agree"
        )
        assert format_perspectives([]) == ""
