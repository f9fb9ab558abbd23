# src/api/sse.py — v1
"""Server-sent events wire codec."""

from __future__ import annotations

import json

from deepthink.pipeline.events import PipelineEvent

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def encode_sse(event: PipelineEvent) -> str:
    """Serialize one event as an `event:` / `data:` frame."""
    payload = json.dumps(event.data, ensure_ascii=False, default=str)
    return f"event: {event.name}\ndata: {payload}\n\n"
