# src/llm/errors.py — v1
"""Upstream failure taxonomy for the completion service.

Nothing is retried automatically: rate-limit and quota failures are
surfaced to the caller verbatim, and any stage failure aborts the run.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class UpstreamError(Exception):
    """Completion service call failed."""

    kind = "generic"
    default_status = 502

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        stage: str | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code or self.default_status
        self.stage = stage
        super().__init__(message)

    @property
    def code(self) -> str:
        return f"upstream_{self.kind}"

    def with_stage(self, stage: str) -> UpstreamError:
        """Attach the failing stage (first one wins)."""
        if self.stage is None:
            self.stage = stage
        return self


class UpstreamRateLimited(UpstreamError):
    """HTTP 429 from the completion service."""

    kind = "rate_limited"
    default_status = 429


class UpstreamQuotaExceeded(UpstreamError):
    """HTTP 402, or a 429 that reports exhausted quota/credits."""

    kind = "quota_exceeded"
    default_status = 402


class UpstreamGenericFailure(UpstreamError):
    """Any other non-2xx response, transport failure or stage timeout."""

    kind = "generic"


_QUOTA_MARKERS = ("quota", "credit", "payment required", "billing")


def classify_upstream_error(error: Exception) -> UpstreamError:
    """Map a provider SDK exception onto the upstream taxonomy.

    Uses the HTTP status code when the SDK exposes one, the message otherwise.
    """
    if isinstance(error, UpstreamError):
        return error

    status = getattr(error, "status_code", None)
    if status is None:
        response = getattr(error, "response", None)
        status = getattr(response, "status_code", None)
    msg = str(error)
    lowered = msg.lower()

    if status == 402 or (status == 429 and any(m in lowered for m in _QUOTA_MARKERS)):
        return UpstreamQuotaExceeded(msg, status_code=status)
    if status == 429:
        return UpstreamRateLimited(msg, status_code=status)
    if status is None:
        if "429" in lowered or "rate limit" in lowered:
            return UpstreamRateLimited(msg)
        if any(m in lowered for m in _QUOTA_MARKERS):
            return UpstreamQuotaExceeded(msg)
    return UpstreamGenericFailure(msg, status_code=status)
