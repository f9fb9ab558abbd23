# tests/unit/api/test_sse.py — v1
"""Tests for api/sse.py and api/models.py."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from deepthink.api.models import ReasoningRequest
from deepthink.api.sse import encode_sse
from deepthink.pipeline.events import PipelineEvent


def test_frame_format():
    frame = encode_sse(PipelineEvent(name="step", data={"type": "step_start", "agent": "Intégrateur"}))
    assert frame.startswith("event: step\ndata: ")
    assert frame.endswith("\n\n")
    assert json.loads(frame.split("data: ", 1)[1]) == {"type": "step_start", "agent": "Intégrateur"}
    assert "Intégrateur" in frame


class TestReasoningRequest:
    def test_aliases(self):
        req = ReasoningRequest.model_validate({"message": "q", "sessionId": "s", "userId": "u"})
        assert (req.session_id, req.user_id) == ("s", "u")

    def test_field_names_accepted(self):
        assert ReasoningRequest(message="q", session_id="s").session_id == "s"

    def test_generated_session(self):
        assert ReasoningRequest(message="q").session_id != ReasoningRequest(message="q").session_id

    @pytest.mark.parametrize("body", [{"message": ""}, {"message": "q", "budget": 0}, {}])
    def test_invalid(self, body):
        with pytest.raises(ValidationError):
            ReasoningRequest.model_validate(body)
