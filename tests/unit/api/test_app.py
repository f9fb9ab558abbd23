# tests/unit/api/test_app.py — v2
"""Tests for api/app.py — HTTP surface with an injected service."""

from __future__ import annotations

import json

import pytest
from fastapi.testclient import TestClient

from deepthink.api.app import create_app
from deepthink.api.facade import ReasoningService
from deepthink.config.settings import ConfigurationError, Settings
from deepthink.llm.errors import UpstreamRateLimited


def _client(settings, llm, store, **overrides) -> TestClient:
    for key, value in overrides.items():
        setattr(settings, key, value)
    service = ReasoningService(settings=settings, llm=llm, store=store)
    return TestClient(create_app(settings, service=service))


def _frames(body: str) -> list[tuple[str, dict]]:
    frames = []
    for block in body.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        frames.append((lines["event"], json.loads(lines["data"])))
    return frames


class TestStream:
    def test_event_sequence(self, settings, fake_llm, memory_store):
        with _client(settings, fake_llm, memory_store, confidence_threshold=0.0) as client:
            with client.stream(
                "POST",
                "/api/reasoning/stream",
                json={"message": "What is Raft?", "sessionId": "s1", "userId": "u1"},
            ) as response:
                assert response.status_code == 200
                assert response.headers["content-type"].startswith("text/event-stream")
                assert response.headers["cache-control"] == "no-cache"
                assert response.headers["x-accel-buffering"] == "no"
                body = "".join(response.iter_text())

        frames = _frames(body)
        names = [name for name, _ in frames]
        assert names == ["plan"] + ["step"] * 16 + ["complete"]
        assert frames[0][1]["totalSteps"] == 8
        assert frames[-1][1]["decision"] == "answer"
        assert frames[-1][1]["trace_id"] == frames[0][1]["trace_id"]
        assert len(fake_llm.calls) == 8

    def test_upstream_failure_streams_error(self, settings, llm_factory, memory_store):
        def responder(index, system, user):
            if index == 1:
                raise UpstreamRateLimited("Too many requests")
            return "Fine. Really fine."

        with _client(settings, llm_factory(responder), memory_store) as client:
            with client.stream(
                "POST", "/api/reasoning/stream", json={"message": "q"}
            ) as response:
                body = "".join(response.iter_text())

        frames = _frames(body)
        assert [name for name, _ in frames] == ["plan", "step", "step", "step", "error"]
        error = frames[-1][1]
        assert error["status"] == 429
        assert error["code"] == "upstream_rate_limited"
        assert error["stage"] == "context_retrieve"

    def test_empty_message_rejected(self, settings, fake_llm, memory_store):
        with _client(settings, fake_llm, memory_store) as client:
            response = client.post("/api/reasoning/stream", json={"message": ""})
        assert response.status_code == 422
        assert fake_llm.calls == []


class TestChat:
    def test_answer(self, settings, fake_llm, memory_store):
        with _client(settings, fake_llm, memory_store, confidence_threshold=0.0) as client:
            response = client.post("/api/reasoning/chat", json={"message": "What is Raft?"})
            assert response.status_code == 200
            body = response.json()
            assert body["decision"] == "answer"
            assert body["answer"].startswith("Stage output number 6.")
            assert len(body["steps"]) == 8
            assert body["tokens_used"] == 800

            chain = client.get(f"/api/reasoning/chains/{body['trace_id']}")
            assert chain.status_code == 200
            assert chain.json()["final_answer"] == body["answer"]

    def test_clarify(self, settings, fake_llm, memory_store):
        with _client(settings, fake_llm, memory_store, confidence_threshold=1.0) as client:
            body = client.post("/api/reasoning/chat", json={"message": "Raft?"}).json()
        assert body["decision"] == "clarify"
        assert 1 <= len(body["questions"]) <= 2
        assert body["answer"] == "\n".join(body["questions"])
        # Six reasoning stages plus the clarification call.
        assert len(fake_llm.calls) == 7

    def test_rate_limit_maps_to_429(self, settings, llm_factory, memory_store):
        def responder(index, system, user):
            raise UpstreamRateLimited("Too many requests", status_code=429)

        with _client(settings, llm_factory(responder), memory_store) as client:
            response = client.post("/api/reasoning/chat", json={"message": "q"})
        assert response.status_code == 429
        assert response.json()["detail"] == {
            "code": "upstream_rate_limited",
            "message": "Too many requests",
            "stage": "decompose",
        }

    def test_blank_query_maps_to_400(self, settings, fake_llm, memory_store):
        with _client(settings, fake_llm, memory_store) as client:
            response = client.post("/api/reasoning/chat", json={"message": "   "})
        assert response.status_code == 400
        assert fake_llm.calls == []


class TestMisc:
    def test_unknown_chain(self, settings, fake_llm, memory_store):
        with _client(settings, fake_llm, memory_store) as client:
            assert client.get("/api/reasoning/chains/nope").status_code == 404

    def test_health(self, settings, fake_llm, memory_store):
        with _client(settings, fake_llm, memory_store) as client:
            body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["version"]

    def test_startup_fails_without_credentials(self):
        app = create_app(Settings(_env_file=None))
        with pytest.raises(ConfigurationError, match="LLM_API_KEY"):
            with TestClient(app):
                pass
