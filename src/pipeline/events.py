# src/pipeline/events.py — v2
"""Pipeline progress events and the per-run event channel.

Order on every channel: one plan event, a step_start/step_complete pair per
stage, then exactly one terminal event (final or error). The channel
closes itself right after the terminal event and rejects anything later.
Payload keys follow the public wire format (camelCase where the clients
expect it).
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Literal

from pydantic import BaseModel, ConfigDict

from deepthink.core.models import Decision, PipelineRun, ReasoningStep, StageSpec
from deepthink.llm.errors import UpstreamError

logger = logging.getLogger(__name__)

EventName = Literal["plan", "step", "complete", "error"]


class PipelineEvent(BaseModel):
    """One frame on the channel: SSE event name plus JSON payload."""

    model_config = ConfigDict(frozen=True)

    name: EventName
    data: dict[str, Any]

    @property
    def type(self) -> str:
        return str(self.data.get("type", self.name))

    @property
    def is_terminal(self) -> bool:
        return self.name in ("complete", "error")


class ChannelClosedError(RuntimeError):
    """Raised when publishing to a channel that already closed."""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# === EVENT BUILDERS ===

# step_start carries the step_complete metrics shape, zeroed.
_ZERO_METRICS: dict[str, Any] = {
    "tokensUsed": 0,
    "confidence": 0.0,
    "coherenceScore": 0.0,
    "informationDensity": 0.0,
    "citationCount": 0,
}


def plan_event(run: PipelineRun, stages: tuple[StageSpec, ...]) -> PipelineEvent:
    return PipelineEvent(
        name="plan",
        data={
            "type": "orchestration_plan",
            "totalSteps": len(stages),
            "trace_id": run.trace_id,
            "tokenBudget": run.total_budget,
            "stages": [{"id": s.id, "name": s.name, "agent": s.agent} for s in stages],
            "timestamp": _now(),
        },
    )


def step_start_event(
    run: PipelineRun, stage: StageSpec, index: int, budget: int, has_documentation: bool
) -> PipelineEvent:
    return PipelineEvent(
        name="step",
        data={
            "type": "step_start",
            "step": index + 1,
            "node": stage.id,
            "name": stage.name,
            "agent": stage.agent,
            "budget": budget,
            "detail": stage.description,
            "metrics": dict(_ZERO_METRICS),
            "tokensTotal": run.tokens_used,
            "documentationAvailable": has_documentation,
            "timestamp": _now(),
        },
    )


def step_complete_event(run: PipelineRun, stage: StageSpec, step: ReasoningStep) -> PipelineEvent:
    return PipelineEvent(
        name="step",
        data={
            "type": "step_complete",
            "step": step.index + 1,
            "node": step.stage_id,
            "name": stage.name,
            "agent": step.agent,
            "budget": step.budget,
            "detail": step.output,
            "duration": step.duration_ms,
            "metrics": {
                "tokensUsed": step.tokens_used,
                "confidence": step.confidence,
                "coherenceScore": step.coherence,
                "informationDensity": step.information_density,
                "citationCount": len(step.citations),
            },
            "citations": list(step.citations),
            "sources_consulted": [
                s.model_dump(exclude_none=True) for s in step.sources_consulted
            ],
            "tokensTotal": run.tokens_used,
            "timestamp": _now(),
        },
    )


def final_event(run: PipelineRun, keywords_count: int = 0) -> PipelineEvent:
    """Terminal success event for both Answer and Clarify outcomes.

    On Clarify the answer field carries the questions, one per line.
    """
    verification = run.verification
    decision: Decision | None = run.decision
    if verification is None or decision is None:
        raise ValueError("final_event requires a verified and decided run")

    documentation = [e for e in run.evidence if e.kind == "documentation"]
    questions = list(decision.questions)
    answer = run.answer if decision.is_answer else "\n".join(questions)
    return PipelineEvent(
        name="complete",
        data={
            "type": "final",
            "answer": answer or "",
            "decision": decision.kind.value,
            "questions": questions,
            "verification": {
                "confidence": verification.confidence,
                "provenance_coverage": verification.provenance_coverage,
                "semantic_entropy": verification.semantic_entropy,
                "coherence_score": verification.coherence,
                "documentation_used": bool(documentation),
                "sources_count": len(documentation) + run.memory_hits,
            },
            "agents": [s.agent for s in run.steps],
            "trace_id": run.trace_id,
            "tokensUsed": run.tokens_used,
            "timestamp": _now(),
            "metadata": {
                "documentation_sections_used": len(documentation),
                "keywords_identified": keywords_count,
            },
        },
    )


def error_event(error: Exception, trace_id: str | None = None) -> PipelineEvent:
    data: dict[str, Any] = {"type": "error", "message": str(error) or type(error).__name__}
    if isinstance(error, UpstreamError):
        data.update(status=error.status_code, code=error.code, stage=error.stage)
    else:
        data.update(status=500, code="internal_error")
    if trace_id:
        data["trace_id"] = trace_id
    return PipelineEvent(name="error", data=data)


# === CHANNEL ===


class EventChannel:
    """Append-only, ordered, single-consumer event channel for one run."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[PipelineEvent | None] = asyncio.Queue()
        self._history: list[PipelineEvent] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def history(self) -> tuple[PipelineEvent, ...]:
        """Every event published so far, in order."""
        return tuple(self._history)

    def publish(self, event: PipelineEvent) -> None:
        """Append an event; a terminal event closes the channel.

        Only a plan or an error may open the channel.

        Raises:
            ChannelClosedError: If the channel already closed.
        """
        if self._closed:
            raise ChannelClosedError(f"Channel closed, cannot publish {event.type!r}")
        if not self._history and event.name not in ("plan", "error"):
            raise ValueError(f"First event must be the plan, got {event.type!r}")
        self._history.append(event)
        self._queue.put_nowait(event)
        if event.is_terminal:
            self.close()

    def close(self) -> None:
        """Close without a terminal event (cancellation)."""
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(None)

    async def __aiter__(self) -> AsyncIterator[PipelineEvent]:
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event
