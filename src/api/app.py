# src/api/app.py — v1
"""FastAPI application: streaming and non-streaming reasoning endpoints.

Routes:
  POST /api/reasoning/stream            SSE stream of pipeline events
  POST /api/reasoning/chat              whole result as JSON
  GET  /api/reasoning/chains/{trace_id} persisted reasoning chain
  GET  /health
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import StreamingResponse

from deepthink.api.facade import ReasoningService
from deepthink.api.models import ChatResponse, ReasoningRequest
from deepthink.api.sse import SSE_HEADERS, encode_sse
from deepthink.config.settings import Settings, load_settings
from deepthink.llm.errors import UpstreamError
from deepthink.pipeline.executor import RunCancelled
from deepthink.version import __version__

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reasoning")


def create_app(
    settings: Settings | None = None,
    service: ReasoningService | None = None,
) -> FastAPI:
    """Build the app. Without an injected service, credentials are checked
    and collaborators are built at startup (ConfigurationError is fatal)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        svc = service or ReasoningService.from_settings(settings or load_settings())
        app.state.service = svc
        try:
            yield
        finally:
            await svc.close()

    app = FastAPI(title="deepthink", version=__version__, lifespan=lifespan)
    app.include_router(router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    return app


def _service(request: Request) -> ReasoningService:
    return request.app.state.service


@router.post("/stream")
async def stream(request: Request, payload: ReasoningRequest) -> StreamingResponse:
    executor = _service(request).new_executor(cancel_check=request.is_disconnected)

    async def generate() -> AsyncIterator[str]:
        task = asyncio.create_task(
            executor.run(
                payload.message,
                payload.session_id,
                budget=payload.budget,
                user_id=payload.user_id,
            )
        )
        try:
            async for event in executor.channel:
                yield encode_sse(event)
        finally:
            # Client gone or stream done: stop any in-flight completion call.
            if not task.done():
                task.cancel()
            with contextlib.suppress(asyncio.CancelledError, RunCancelled):
                await task

    return StreamingResponse(
        generate(), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.post("/chat", response_model=ChatResponse)
async def chat(request: Request, payload: ReasoningRequest) -> ChatResponse:
    executor = _service(request).new_executor()
    run = await executor.run(
        payload.message, payload.session_id, budget=payload.budget, user_id=payload.user_id
    )

    failure = executor.failure
    if failure is not None:
        if isinstance(failure, UpstreamError):
            raise HTTPException(
                status_code=failure.default_status,
                detail={"code": failure.code, "message": str(failure), "stage": failure.stage},
            )
        if isinstance(failure, ValueError):
            raise HTTPException(status_code=400, detail=str(failure))
        raise HTTPException(status_code=500, detail="Reasoning pipeline failed")

    final = executor.channel.history[-1].data
    return ChatResponse(
        trace_id=final["trace_id"],
        decision=final["decision"],
        answer=final["answer"],
        questions=final["questions"],
        verification=final["verification"],
        tokens_used=final["tokensUsed"],
        steps=[s.model_dump(mode="json") for s in run.steps] if run else [],
    )


@router.get("/chains/{trace_id}")
async def get_chain(request: Request, trace_id: str) -> dict:
    record = await _service(request).store.get_reasoning_chain(trace_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Unknown trace_id: {trace_id}")
    return record
