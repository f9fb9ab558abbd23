# tests/conftest.py — v2
"""Shared test fixtures for all unit and integration tests.

Provides a scripted fake completion client, sample steps and runs, and a
temporary SQLite memory store. No network access: all LLM I/O is faked.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from deepthink.config.settings import Settings
from deepthink.config.stages import STAGE_IDS, STAGES
from deepthink.core.models import Evidence, PipelineRun, ReasoningStep
from deepthink.llm.base_client import BaseLLMClient
from deepthink.llm.models import LLMResponse, Message
from deepthink.memory.bridge import MemoryBridge
from deepthink.memory.sqlite_store import SqliteMemoryStore


# === FAKE COMPLETION CLIENT ===


class FakeLLMClient(BaseLLMClient):
    """Scripted completion client recording every call.

    Args:
        responder: Maps (call_index, system, user) to output text, or raises.
        tokens: Reported total tokens per call (split input/output).
    """

    def __init__(
        self,
        responder: Callable[[int, str, str], str] | None = None,
        tokens: int = 100,
    ) -> None:
        self._responder = responder or _default_responder
        self._tokens = tokens
        self.calls: list[dict] = []

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.4,
    ) -> LLMResponse:
        index = len(self.calls)
        user = messages[-1].content
        self.calls.append(
            {
                "system": system or "",
                "user": user,
                "max_tokens": max_tokens,
                "temperature": temperature,
            }
        )
        content = self._responder(index, system or "", user)
        return LLMResponse(
            content=content,
            input_tokens=self._tokens // 2,
            output_tokens=self._tokens - self._tokens // 2,
            model="fake-model",
            provider="fake",
            latency_ms=1,
        )

    @property
    def provider_name(self) -> str:
        return "fake"

    @property
    def model_name(self) -> str:
        return "fake-model"


def _default_responder(index: int, system: str, user: str) -> str:
    return (
        f"Stage output number {index}. It considers the question carefully. "
        "Several factors matter here. Each one is weighed in turn."
    )


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


# === FIXTURES: Sample data ===


def make_step(
    stage_id: str = "decompose",
    index: int = 0,
    output: str = "A first observation. A second one.",
    confidence: float = 0.8,
    coherence: float = 0.2,
    citations: tuple[str, ...] = (),
    tokens_used: int = 100,
) -> ReasoningStep:
    return ReasoningStep(
        stage_id=stage_id,
        index=index,
        agent="Test Agent",
        budget=1000,
        tokens_used=tokens_used,
        duration_ms=5,
        output=output,
        confidence=confidence,
        coherence=coherence,
        information_density=0.9,
        citations=citations,
    )


@pytest.fixture
def sample_steps() -> list[ReasoningStep]:
    """One step per canonical stage, in order."""
    return [
        make_step(stage_id=s.id, index=i, output=f"Output of {s.name}. It is complete.")
        for i, s in enumerate(STAGES)
    ]


@pytest.fixture
def sample_run() -> PipelineRun:
    return PipelineRun(
        query="How does the consensus protocol handle leader failure?",
        session_id="session-1",
        user_id="user-1",
        stage_order=STAGE_IDS,
        total_budget=8000,
    )


@pytest.fixture
def sample_evidence() -> list[Evidence]:
    return [
        Evidence(
            source="raft.md",
            excerpt="Leader election starts when a follower times out.",
            relevance=1.0,
        ),
        Evidence(
            source="paxos.md",
            excerpt="Proposers choose ballot numbers.",
            relevance=0.5,
        ),
    ]


# === FIXTURES: Stores and settings ===


@pytest.fixture
def memory_store(tmp_path: Path) -> SqliteMemoryStore:
    return SqliteMemoryStore(db_path=tmp_path / "memory.db")


@pytest.fixture
def bridge(memory_store: SqliteMemoryStore) -> MemoryBridge:
    return MemoryBridge(memory_store)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Fully configured settings pointing at temp locations."""
    return Settings(
        _env_file=None,
        llm_provider="openai",
        llm_base_url="https://gateway.invalid/v1",
        llm_api_key="test-key",
        memory_backend="sqlite",
        memory_db_path=tmp_path / "memory.db",
    )


@pytest.fixture
def step_factory() -> Callable[..., ReasoningStep]:
    return make_step


@pytest.fixture
def llm_factory() -> type[FakeLLMClient]:
    return FakeLLMClient
