# src/memory/redis_store.py — v2
"""Redis-based memory store (MEMORY_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for multi-instance deployments. Uses the asyncio client, so no
call blocks the event loop.

Layout:
  deepthink:memory:item:{owner}:{hash}   record JSON, written with SET NX
  deepthink:memory:rank:{owner}          sorted set over the owner's items
  deepthink:memory:hash:{hash}           set of item keys sharing a hash
  deepthink:chain:{trace_id}             reasoning chain JSON (SET NX)
  deepthink:chain:__index__              set of persisted trace ids

Rank members all score 0 and start with a fixed-width sort key, so
ZREVRANGE returns them in retrieval order and a query reads only the top
`limit` items of each owner with one MGET.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from deepthink.core.models import MemoryRecord
from deepthink.memory.base_memory_store import BaseMemoryStore, sort_memories

logger = logging.getLogger(__name__)

_ITEM_PREFIX = "deepthink:memory:item:"
_RANK_PREFIX = "deepthink:memory:rank:"
_HASH_PREFIX = "deepthink:memory:hash:"
_CHAIN_PREFIX = "deepthink:chain:"
_CHAIN_INDEX = "deepthink:chain:__index__"

# Owner slot of memories without a user.
_SHARED_OWNER = "__shared__"


class RedisMemoryStore(BaseMemoryStore):
    """Redis-backed memory store."""

    def __init__(self, redis_url: str, password: str | None = None) -> None:
        try:
            import redis.asyncio as aioredis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = aioredis.Redis.from_url(
            redis_url, password=password or None, decode_responses=True
        )

    async def insert_memory(self, record: MemoryRecord) -> bool:
        owner = _owner(record.user_id)
        item_key = f"{_ITEM_PREFIX}{owner}:{record.content_hash}"
        created = await self._client.set(item_key, record.model_dump_json(), nx=True)
        if not created:
            return False
        await self._client.zadd(f"{_RANK_PREFIX}{owner}", {rank_member(record, item_key): 0})
        await self._client.sadd(f"{_HASH_PREFIX}{record.content_hash}", item_key)
        return True

    async def query_memories(
        self, user_id: str | None = None, limit: int = 8
    ) -> list[MemoryRecord]:
        """Top `limit` items of the user and of the shared slot, best first."""
        if limit <= 0:
            return []
        owners = [_SHARED_OWNER] if user_id is None else [_owner(user_id), _SHARED_OWNER]
        keys: list[str] = []
        for owner in owners:
            members = await self._client.zrevrange(f"{_RANK_PREFIX}{owner}", 0, limit - 1)
            keys.extend(m.partition("|")[2] for m in members)
        return sort_memories(await self._load(keys))[:limit]

    async def get_memories_by_hash(self, content_hash: str) -> list[MemoryRecord]:
        keys = await self._client.smembers(f"{_HASH_PREFIX}{content_hash}")
        return sorted(await self._load(sorted(keys)), key=lambda r: r.created_at)

    async def insert_reasoning_chain(self, record: dict[str, Any]) -> None:
        trace_id = record["trace_id"]
        created = await self._client.set(
            f"{_CHAIN_PREFIX}{trace_id}", json.dumps(record, default=str), nx=True
        )
        if not created:
            raise ValueError(f"Reasoning chain {trace_id} already persisted")
        await self._client.sadd(_CHAIN_INDEX, trace_id)

    async def get_reasoning_chain(self, trace_id: str) -> dict[str, Any] | None:
        data = await self._client.get(f"{_CHAIN_PREFIX}{trace_id}")
        if data is None:
            return None
        return json.loads(data)

    async def count_reasoning_chains(self) -> int:
        return int(await self._client.scard(_CHAIN_INDEX))

    async def close(self) -> None:
        """Close the Redis connection."""
        await self._client.aclose()

    async def _load(self, keys: list[str]) -> list[MemoryRecord]:
        if not keys:
            return []
        records: list[MemoryRecord] = []
        for key, data in zip(keys, await self._client.mget(keys)):
            if data is None:
                continue
            try:
                records.append(MemoryRecord.model_validate_json(data))
            except ValueError as e:
                logger.warning("Failed to deserialize memory %s: %s", key, e)
        return records


def _owner(user_id: str | None) -> str:
    return user_id or _SHARED_OWNER


def rank_member(record: MemoryRecord, item_key: str) -> str:
    """Sorted-set member whose lexical order is the retrieval order.

    Retrieval scores are clamped to [0, 1] in the key; the final order of
    the fetched items comes from sort_memories().
    """
    scored = record.retrieval_score is not None
    score = min(max(record.retrieval_score or 0.0, 0.0), 1.0)
    return (
        f"{int(scored)}:{score:.6f}:{record.importance:.6f}:"
        f"{record.created_at.timestamp():017.6f}|{item_key}"
    )
