# src/memory/bridge.py — v2
"""Memory bridge between the pipeline and the durable memory store.

Reads: prior context for a user, rendered as "[tier] content" lines.
Writes: the query at run start, then on a decided run the reasoning chain,
the answer memory and the significant stage artifacts. A stage output equal
to the answer is not stored again. Nothing is written for errored or
cancelled runs.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, ConfigDict, Field

from deepthink.config.stages import ARTIFACT_STAGES
from deepthink.core.models import MemoryRecord, PipelineRun, RunStatus
from deepthink.memory.base_memory_store import BaseMemoryStore
from deepthink.memory.fingerprint import content_hash, estimate_tokens

logger = logging.getLogger(__name__)

QUERY_IMPORTANCE = 0.8
ARTIFACT_IMPORTANCE = 0.6


class MemoryContext(BaseModel):
    """Context retrieved before a run starts."""

    model_config = ConfigDict(frozen=True)

    text: str = ""
    records: list[MemoryRecord] = Field(default_factory=list)

    @property
    def hits(self) -> int:
        return len(self.records)


class MemoryBridge:
    """Persist and retrieve pipeline memories.

    Args:
        store: Durable memory store.
        context_limit: Max memories pulled into a run's context.
        excerpt_chars: Max characters per memory in the rendered context.
    """

    def __init__(
        self,
        store: BaseMemoryStore,
        context_limit: int = 8,
        excerpt_chars: int = 200,
    ) -> None:
        self.store = store
        self._context_limit = context_limit
        self._excerpt_chars = excerpt_chars

    async def retrieve_context(self, user_id: str | None) -> MemoryContext:
        records = await self.store.query_memories(user_id, limit=self._context_limit)
        text = "\n".join(
            f"[{r.tier}] {r.content[: self._excerpt_chars]}" for r in records
        )
        logger.debug("Retrieved %d memories for context", len(records))
        return MemoryContext(text=text, records=records)

    async def remember_query(
        self, query: str, user_id: str | None, session_id: str | None
    ) -> MemoryRecord:
        record = self._record(
            query,
            tier="working",
            source="user_query",
            importance=QUERY_IMPORTANCE,
            tags=["query", "user_input"],
            user_id=user_id,
            session_id=session_id,
        )
        await self.store.insert_memory(record)
        return record

    async def persist_run(self, run: PipelineRun) -> None:
        """Write the reasoning chain and the memories of a decided run.

        Raises:
            ValueError: If the run has no decision or already errored.
        """
        if run.decision is None or run.status is RunStatus.ERRORED:
            raise ValueError(
                f"Only decided runs are persisted (run {run.trace_id} is {run.status.value})"
            )

        await self.store.insert_reasoning_chain(run.to_chain_record())
        written = 0

        if run.decision.is_answer and run.answer and run.verification is not None:
            confidence = run.verification.confidence
            written += await self.store.insert_memory(
                self._record(
                    run.answer,
                    tier="working",
                    source="reasoning_chain",
                    importance=confidence,
                    tags=["answer", "reasoning_chain", f"confidence_{round(confidence * 100)}"],
                    user_id=run.user_id,
                    session_id=run.session_id,
                )
            )

        for step in run.steps:
            if step.stage_id not in ARTIFACT_STAGES or not step.output.strip():
                continue
            if step.output == run.answer:
                continue
            written += await self.store.insert_memory(
                self._record(
                    step.output,
                    tier="episodic",
                    source=f"stage:{step.stage_id}",
                    importance=ARTIFACT_IMPORTANCE,
                    tags=["artifact", step.stage_id],
                    user_id=run.user_id,
                    session_id=run.session_id,
                )
            )

        logger.info(
            "Persisted reasoning chain %s with %d memories", run.trace_id, written
        )

    @staticmethod
    def _record(content: str, **fields) -> MemoryRecord:
        return MemoryRecord(
            content=content,
            content_hash=content_hash(content),
            token_count=estimate_tokens(content),
            **fields,
        )
