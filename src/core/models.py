# src/core/models.py — v2
"""Shared Pydantic domain models used across modules.

Every package imports these types from here; none redefines them.
Steps, evidence and verification results are frozen value objects; the
PipelineRun is the only mutable record and owns its steps exclusively.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# === STAGES ===


class StageSpec(BaseModel):
    """Static description of one stage in the canonical order."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    agent: str
    weight: float = Field(gt=0.0, le=1.0)
    description: str = ""
    temperature: float | None = None


# === EVIDENCE ===


class Evidence(BaseModel):
    """A ranked excerpt from documentation or memory made available to prompts."""

    model_config = ConfigDict(frozen=True)

    source: str = Field(min_length=1)
    excerpt: str
    relevance: float = Field(ge=0.0, le=1.0)
    kind: Literal["documentation", "memory"] = "documentation"


class SourceConsulted(BaseModel):
    """Descriptor of what a stage had access to."""

    model_config = ConfigDict(frozen=True)

    type: Literal["memory", "documentation", "llm"]
    count: int = 0
    files: list[str] = Field(default_factory=list)
    model: str | None = None
    tokens: int | None = None


# === REASONING STEPS ===


class StepMetrics(BaseModel):
    """Per-step scores, all bounded to [0, 1]."""

    model_config = ConfigDict(frozen=True)

    confidence: float = Field(ge=0.0, le=1.0)
    coherence: float = Field(ge=0.0, le=1.0)
    information_density: float = Field(ge=0.0, le=1.0)


class ReasoningStep(BaseModel):
    """Immutable record of one stage execution."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    index: int = Field(ge=0)
    agent: str
    budget: int = Field(ge=0)
    tokens_used: int = Field(ge=0)
    duration_ms: int = Field(ge=0)
    output: str
    confidence: float = Field(ge=0.0, le=1.0)
    coherence: float = Field(ge=0.0, le=1.0)
    information_density: float = Field(ge=0.0, le=1.0)
    citations: tuple[str, ...] = ()
    sources_consulted: tuple[SourceConsulted, ...] = ()
    completed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# === VERIFICATION / DECISION ===


class VerificationResult(BaseModel):
    """Terminal aggregate of a run."""

    model_config = ConfigDict(frozen=True)

    confidence: float = Field(ge=0.0, le=1.0)
    provenance_coverage: float = Field(ge=0.0, le=1.0)
    semantic_entropy: float = Field(ge=0.0, le=1.0)
    coherence: float = Field(ge=0.0, le=1.0)


class DecisionKind(str, Enum):
    ANSWER = "answer"
    CLARIFY = "clarify"


class Decision(BaseModel):
    """Outcome of the decision gate."""

    model_config = ConfigDict(frozen=True)

    kind: DecisionKind
    questions: tuple[str, ...] = ()
    tokens_used: int = 0

    @property
    def is_answer(self) -> bool:
        return self.kind is DecisionKind.ANSWER


# === RUN ===


class RunStatus(str, Enum):
    CREATED = "created"
    RETRIEVING = "retrieving"
    RUNNING = "running"
    VERIFYING = "verifying"
    DECIDING = "deciding"
    SYNTHESIZING = "synthesizing"
    ANSWERED = "answered"
    CLARIFICATION_REQUESTED = "clarification_requested"
    ERRORED = "errored"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset(
    {RunStatus.ANSWERED, RunStatus.CLARIFICATION_REQUESTED, RunStatus.ERRORED}
)


class PipelineRun(BaseModel):
    """One execution of the orchestrator for a single query.

    Steps are appended through append_step() only, which enforces the
    canonical order; nothing else mutates them.
    """

    trace_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    query: str
    session_id: str
    user_id: str | None = None
    stage_order: tuple[str, ...]
    total_budget: int = Field(gt=0)
    tokens_used: int = 0
    status: RunStatus = RunStatus.CREATED
    steps: list[ReasoningStep] = Field(default_factory=list)
    evidence: list[Evidence] = Field(default_factory=list)
    memory_hits: int = 0
    context: str = ""
    verification: VerificationResult | None = None
    decision: Decision | None = None
    answer: str | None = None
    error: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("query")
    @classmethod
    def validate_query(cls, v: str) -> str:  # noqa: N805
        if not v.strip():
            raise ValueError("query must not be empty")
        return v

    @property
    def next_stage(self) -> str | None:
        """Identifier of the next pending stage, None once all have run."""
        if len(self.steps) >= len(self.stage_order):
            return None
        return self.stage_order[len(self.steps)]

    @property
    def current_agent(self) -> str | None:
        """Agent of the most recent step (projection, never stored)."""
        return self.steps[-1].agent if self.steps else None

    def append_step(self, step: ReasoningStep) -> None:
        """Append a completed step, enforcing canonical order.

        Raises:
            ValueError: If the step is out of order or the run is terminal.
        """
        if self.status.is_terminal:
            raise ValueError(f"Run {self.trace_id} is already {self.status.value}")
        expected = self.next_stage
        if step.stage_id != expected:
            raise ValueError(
                f"Out-of-order step: expected {expected!r}, got {step.stage_id!r}"
            )
        self.steps.append(step)
        self.tokens_used += step.tokens_used

    def transition(self, status: RunStatus) -> None:
        """Move to a new state; terminal states are final."""
        if self.status.is_terminal:
            raise ValueError(
                f"Run {self.trace_id} already terminal ({self.status.value})"
            )
        self.status = status

    def to_chain_record(self) -> dict[str, Any]:
        """Serialize into the reasoning_chains record shape."""
        verification = self.verification
        return {
            "trace_id": self.trace_id,
            "user_query": self.query,
            "final_answer": self.answer,
            "decision": self.decision.kind.value if self.decision else None,
            "questions": list(self.decision.questions) if self.decision else [],
            "steps": [s.model_dump(mode="json") for s in self.steps],
            "agents": [s.agent for s in self.steps],
            "support": {
                "citations": sorted({c for s in self.steps for c in s.citations}),
                "documentation": [
                    e.source for e in self.evidence if e.kind == "documentation"
                ],
            },
            "confidence": verification.confidence if verification else None,
            "provenance_coverage": (
                verification.provenance_coverage if verification else None
            ),
            "semantic_entropy": verification.semantic_entropy if verification else None,
            "token_budget": self.total_budget,
            "tokens_used": self.tokens_used,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "created_at": self.created_at.isoformat(),
        }


# === MEMORY RECORDS ===


class MemoryRecord(BaseModel):
    """Row of the memories table; keyed by content hash."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    content: str
    content_hash: str
    tier: Literal["working", "episodic", "semantic"] = "working"
    source: str
    importance: float = Field(default=0.5, ge=0.0, le=1.0)
    retrieval_score: float | None = None
    token_count: int = 0
    tags: list[str] = Field(default_factory=list)
    user_id: str | None = None
    session_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
