# src/logging/context.py — v2
"""Contextual logging support — attach trace_id, session_id, stage, agent.

Context variables are task-local under asyncio, so concurrent runs never
see each other's values.
"""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

_trace_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "trace_id", default=None
)
_session_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "session_id", default=None
)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "stage", default=None
)
_agent: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "agent", default=None
)


@dataclass(frozen=True)
class LogContext:
    """Immutable snapshot of current logging context."""

    trace_id: str | None = None
    session_id: str | None = None
    stage: str | None = None
    agent: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        trace_id=_trace_id.get(),
        session_id=_session_id.get(),
        stage=_stage.get(),
        agent=_agent.get(),
    )


def set_run_context(trace_id: str, session_id: str | None = None) -> None:
    """Set run-level context (called once per pipeline run)."""
    _trace_id.set(trace_id)
    _session_id.set(session_id)


def set_stage_context(stage: str | None, agent: str | None = None) -> None:
    """Set stage-level context (called per stage execution)."""
    _stage.set(stage)
    _agent.set(agent)


def clear_context() -> None:
    """Reset all context variables."""
    _trace_id.set(None)
    _session_id.set(None)
    _stage.set(None)
    _agent.set(None)
