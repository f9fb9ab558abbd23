# tests/unit/pipeline/test_decision.py — v1
"""Tests for pipeline/decision.py — threshold gate and clarification."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from deepthink.core.models import DecisionKind, VerificationResult
from deepthink.llm.errors import UpstreamRateLimited
from deepthink.pipeline.decision import DecisionGate, fallback_question, parse_questions
from deepthink.pipeline.scoring import aggregate_confidence


def _verification(confidence: float) -> VerificationResult:
    return VerificationResult(
        confidence=confidence, provenance_coverage=0.0, semantic_entropy=0.5, coherence=0.4
    )


class TestShouldAnswer:
    def test_exactly_at_threshold_answers(self):
        assert DecisionGate(threshold=0.75).should_answer(_verification(0.75))

    def test_strictly_below_clarifies(self):
        assert not DecisionGate(threshold=0.75).should_answer(_verification(0.7499999))

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            DecisionGate(threshold=1.5)


class TestDecide:
    @pytest.mark.asyncio
    async def test_high_confidence_answers_without_call(self, llm_factory, sample_steps):
        llm = llm_factory()
        verification = _verification(aggregate_confidence([0.9] * 8))
        decision = await DecisionGate().decide(verification, "q", sample_steps, llm)
        assert decision.kind is DecisionKind.ANSWER
        assert decision.is_answer
        assert decision.questions == ()
        assert llm.calls == []

    @pytest.mark.asyncio
    async def test_low_confidence_asks_questions(self, llm_factory, sample_steps):
        llm = llm_factory(
            lambda i, s, u: "1. Which protocol do you mean?\n2. What failure model?\n3. Extra?"
        )
        verification = _verification(aggregate_confidence([0.3] * 8))
        gate = DecisionGate(max_questions=2, clarify_max_tokens=128)
        decision = await gate.decide(verification, "q", sample_steps, llm)

        assert decision.kind is DecisionKind.CLARIFY
        assert decision.questions == ("Which protocol do you mean?", "What failure model?")
        assert decision.tokens_used == 100
        assert len(llm.calls) == 1
        assert llm.calls[0]["max_tokens"] == 128

    @pytest.mark.asyncio
    async def test_empty_clarification_uses_fallback(self, llm_factory, sample_steps):
        llm = llm_factory(lambda i, s, u: "   ")
        decision = await DecisionGate().decide(_verification(0.1), "Tell me", sample_steps, llm)
        assert len(decision.questions) == 1
        assert decision.questions[0].endswith("?")

    @pytest.mark.asyncio
    async def test_upstream_error_propagates(self, sample_steps):
        llm = AsyncMock()
        llm.complete.side_effect = UpstreamRateLimited("slow down")
        with pytest.raises(UpstreamRateLimited):
            await DecisionGate().decide(_verification(0.2), "q", sample_steps, llm)


class TestParseQuestions:
    def test_strips_markers_and_prefers_questions(self):
        text = "Here are some questions:\n- Is it A?\n* Is it B?\n"
        assert parse_questions(text, 2) == ["Is it A?", "Is it B?"]

    def test_falls_back_to_lines(self):
        assert parse_questions("Please specify the scope", 2) == ["Please specify the scope"]

    def test_limit_and_dedup(self):
        assert parse_questions("Why?\nWhy?\nHow?\nWhat?", 2) == ["Why?", "How?"]

    def test_fallback_question_truncates(self):
        question = fallback_question("z" * 200)
        assert question.endswith('..."?')
        assert len(question) <= 150
