# src/api/models.py — v2
"""API-level request and response models.

Field aliases follow the public wire format (message, sessionId, userId).
"""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ReasoningRequest(BaseModel):
    """Body of POST /api/reasoning/stream and /api/reasoning/chat."""

    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(min_length=1)
    session_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex, alias="sessionId"
    )
    user_id: str | None = Field(default=None, alias="userId")
    budget: int | None = Field(default=None, gt=0)


class ChatResponse(BaseModel):
    """Non-streaming result: the final event payload plus the steps."""

    trace_id: str
    decision: str
    answer: str
    questions: list[str] = Field(default_factory=list)
    verification: dict[str, Any]
    tokens_used: int
    steps: list[dict[str, Any]] = Field(default_factory=list)
