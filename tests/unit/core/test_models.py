# tests/unit/core/test_models.py — v1
"""Tests for core/models.py — run lifecycle and value objects."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from deepthink.config.stages import STAGE_IDS
from deepthink.core.models import (
    Decision,
    DecisionKind,
    Evidence,
    PipelineRun,
    RunStatus,
    VerificationResult,
)


class TestPipelineRun:
    def test_empty_query_rejected(self):
        with pytest.raises(ValidationError):
            PipelineRun(query="   ", session_id="s", stage_order=STAGE_IDS, total_budget=10)

    def test_budget_must_be_positive(self):
        with pytest.raises(ValidationError):
            PipelineRun(query="q", session_id="s", stage_order=STAGE_IDS, total_budget=0)

    def test_append_in_order(self, sample_run, sample_steps):
        for step in sample_steps:
            sample_run.append_step(step)
        assert [s.stage_id for s in sample_run.steps] == list(STAGE_IDS)
        assert sample_run.tokens_used == 800
        assert sample_run.next_stage is None

    def test_out_of_order_rejected(self, sample_run, step_factory):
        with pytest.raises(ValueError, match="Out-of-order"):
            sample_run.append_step(step_factory(stage_id="hypothesize"))
        assert sample_run.steps == []

    def test_no_append_after_terminal(self, sample_run, step_factory):
        sample_run.transition(RunStatus.ERRORED)
        with pytest.raises(ValueError, match="already"):
            sample_run.append_step(step_factory())

    def test_terminal_is_final(self, sample_run):
        sample_run.transition(RunStatus.ANSWERED)
        with pytest.raises(ValueError):
            sample_run.transition(RunStatus.ERRORED)

    def test_current_agent(self, sample_run, step_factory):
        assert sample_run.current_agent is None
        sample_run.append_step(step_factory())
        assert sample_run.current_agent == "Test Agent"

    def test_chain_record(self, sample_run, sample_evidence, step_factory):
        sample_run.append_step(step_factory(citations=("raft.md",)))
        sample_run.evidence = sample_evidence
        sample_run.verification = VerificationResult(
            confidence=0.9, provenance_coverage=0.5, semantic_entropy=0.1, coherence=0.3
        )
        sample_run.decision = Decision(kind=DecisionKind.ANSWER)
        sample_run.answer = "Done."

        record = sample_run.to_chain_record()
        assert record["trace_id"] == sample_run.trace_id
        assert record["user_query"] == sample_run.query
        assert record["decision"] == "answer"
        assert record["agents"] == ["Test Agent"]
        assert record["support"] == {
            "citations": ["raft.md"],
            "documentation": ["raft.md", "paxos.md"],
        }
        assert record["confidence"] == 0.9
        assert record["tokens_used"] == 100


class TestValueObjects:
    def test_steps_are_frozen(self, step_factory):
        step = step_factory()
        with pytest.raises(ValidationError):
            step.output = "changed"  # type: ignore[misc]

    def test_evidence_relevance_bounds(self):
        with pytest.raises(ValidationError):
            Evidence(source="a.md", excerpt="x", relevance=1.5)

    def test_terminal_statuses(self):
        assert {s for s in RunStatus if s.is_terminal} == {
            RunStatus.ANSWERED,
            RunStatus.CLARIFICATION_REQUESTED,
            RunStatus.ERRORED,
        }

    def test_decision_kind(self):
        assert Decision(kind=DecisionKind.ANSWER).is_answer
        assert not Decision(kind=DecisionKind.CLARIFY, questions=("Which?",)).is_answer
