# src/pipeline/executor.py — v2
"""Pipeline executor: the state machine that drives one reasoning run.

created -> retrieving -> running(stages before the gate) -> verifying
        -> deciding -> synthesizing(gated stages) -> answered
                    -> clarification_requested
any stage failure -> errored (no retry: later stages depend on every
earlier output)

The gate judges the reasoning stages only; the gated tail (synthesis and
its check) costs completion calls only once the gate chose Answer.

One executor instance owns one run. Stages run strictly in sequence, one
completion call each, under a per-stage deadline. Progress goes to the
EventChannel; the cancellation check is awaited before every stage and
before the run is persisted.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import AbstractSet, Awaitable, Callable, Sequence

from deepthink.config.settings import Settings
from deepthink.config.stages import ANSWER_STAGE, GATED_STAGES, STAGES
from deepthink.core.models import (
    Evidence,
    PipelineRun,
    ReasoningStep,
    RunStatus,
    SourceConsulted,
    StageSpec,
)
from deepthink.evidence.base_evidence_source import DocumentationUnavailable, EvidenceSource
from deepthink.evidence.keywords import extract_keywords
from deepthink.evidence.memory_source import MemoryEvidenceSource
from deepthink.llm.base_client import BaseLLMClient
from deepthink.llm.errors import UpstreamError, UpstreamGenericFailure
from deepthink.llm.models import LLMResponse, Message
from deepthink.llm.token_budget import allocate_stage_budgets
from deepthink.logging.context import clear_context, set_run_context, set_stage_context
from deepthink.memory.bridge import MemoryBridge
from deepthink.pipeline.decision import DecisionGate
from deepthink.pipeline.events import (
    EventChannel,
    error_event,
    final_event,
    plan_event,
    step_complete_event,
    step_start_event,
)
from deepthink.pipeline.prompt_builder import StagePromptBuilder, format_evidence
from deepthink.pipeline.scoring import Scorer, create_scorer, extract_citations

logger = logging.getLogger(__name__)

CancelCheck = Callable[[], Awaitable[bool]]

DEFAULT_TEMPERATURE = 0.4


class RunCancelled(Exception):
    """The consumer went away; the run is discarded without persistence."""


class PipelineExecutor:
    """Drive a single PipelineRun through every stage.

    Args:
        llm: Completion service client.
        bridge: Memory bridge (context retrieval and persistence).
        channel: Event channel receiving progress events.
        scorer: Scoring strategy (heuristic by default).
        prompt_builder: Stage prompt builder.
        gate: Decision gate.
        documentation: Optional documentation evidence source.
        stages: Canonical stage table.
        gated_stages: Trailing stages that run only on the Answer branch.
        token_budget: Default total budget when start() gets none.
        stage_timeout_s: Deadline of each completion call.
        docs_top_k: Max documentation excerpts per run.
        temperature: Default sampling temperature (stages may override).
        cancel_check: Awaitable predicate, True once the consumer is gone.
    """

    def __init__(
        self,
        llm: BaseLLMClient,
        bridge: MemoryBridge,
        channel: EventChannel | None = None,
        scorer: Scorer | None = None,
        prompt_builder: StagePromptBuilder | None = None,
        gate: DecisionGate | None = None,
        documentation: EvidenceSource | None = None,
        stages: Sequence[StageSpec] = STAGES,
        gated_stages: AbstractSet[str] = GATED_STAGES,
        token_budget: int = 8000,
        stage_timeout_s: float = 60.0,
        docs_top_k: int = 5,
        temperature: float = DEFAULT_TEMPERATURE,
        cancel_check: CancelCheck | None = None,
    ) -> None:
        self._llm = llm
        self._bridge = bridge
        self.channel = channel or EventChannel()
        self._scorer = scorer or create_scorer()
        self._prompts = prompt_builder or StagePromptBuilder()
        self._gate = gate or DecisionGate(prompt_builder=self._prompts)
        self._documentation = documentation
        self._stages = tuple(stages)
        self._gate_index = gate_position(self._stages, gated_stages)
        self._token_budget = token_budget
        self._stage_timeout_s = stage_timeout_s
        self._docs_top_k = docs_top_k
        self._temperature = temperature
        self._cancel_check = cancel_check

        self.run_state: PipelineRun | None = None
        self.failure: Exception | None = None
        self._caps: dict[str, int] = {}
        self._context = ""
        self._keywords: list[str] = []

    @property
    def awaiting_decision(self) -> bool:
        """True once every stage before the gate has run."""
        run = self._require_run()
        return run.status is RunStatus.RUNNING and len(run.steps) >= self._gate_index

    # === LIFECYCLE ===

    async def run(
        self,
        query: str,
        session_id: str,
        budget: int | None = None,
        user_id: str | None = None,
    ) -> PipelineRun | None:
        """Execute start -> advance* -> finalize, publishing every event.

        Upstream and internal failures end in an error event and an errored
        run (kept in self.failure); they are not raised. Returns None if the
        run could not even be created.

        Raises:
            RunCancelled: If the cancellation check fired.
            asyncio.CancelledError: If the surrounding task was cancelled.
        """
        try:
            await self.start(query, session_id, budget=budget, user_id=user_id)
            while not self.awaiting_decision:
                await self.advance()
            return await self.finalize()
        except (RunCancelled, asyncio.CancelledError):
            trace = self.run_state.trace_id if self.run_state else "-"
            logger.info("Run %s cancelled, discarding partial state", trace)
            self.channel.close()
            raise
        except Exception as e:
            self._fail(e)
            return self.run_state
        finally:
            clear_context()

    async def start(
        self,
        query: str,
        session_id: str,
        budget: int | None = None,
        user_id: str | None = None,
    ) -> PipelineRun:
        """Create the run, retrieve context and evidence, allocate budgets."""
        total = budget if budget is not None else self._token_budget
        run = PipelineRun(
            query=query,
            session_id=session_id,
            user_id=user_id,
            stage_order=tuple(s.id for s in self._stages),
            total_budget=total,
        )
        self.run_state = run
        set_run_context(run.trace_id, session_id)
        self._caps = allocate_stage_budgets(total, self._stages)
        self.channel.publish(plan_event(run, self._stages))

        run.transition(RunStatus.RETRIEVING)
        # Context is read before the query is stored so it cannot match itself.
        memory = await self._bridge.retrieve_context(user_id)
        self._keywords = extract_keywords(query)
        run.evidence = await self._gather_evidence(user_id)
        run.memory_hits = memory.hits
        await self._bridge.remember_query(query, user_id, session_id)

        parts = [p for p in (memory.text, format_evidence(run.evidence)) if p]
        self._context = "\n\n".join(parts)
        run.context = self._context

        run.transition(RunStatus.RUNNING)
        logger.info(
            "Run started: %d stages, budget %d, %d memories, %d evidence items",
            len(self._stages), total, memory.hits, len(run.evidence),
        )
        return run

    async def advance(self) -> ReasoningStep:
        """Execute the next pending stage.

        Gated stages only run once finalize() has chosen Answer.

        Raises:
            RunCancelled: If the consumer disconnected.
            UpstreamError: If the completion call failed or timed out.
            RuntimeError: If no stage may run in the current state.
        """
        run = self._require_run()
        await self._raise_if_cancelled()

        stage_id = run.next_stage
        if stage_id is None or run.status not in (RunStatus.RUNNING, RunStatus.SYNTHESIZING):
            raise RuntimeError(f"No stage to advance (status {run.status.value})")
        index = len(run.steps)
        if run.status is RunStatus.RUNNING and index >= self._gate_index:
            raise RuntimeError(f"Stage {stage_id!r} waits for an Answer decision")
        stage = self._stages[index]
        budget = self._caps[stage.id]
        set_stage_context(stage.id, stage.agent)

        documentation = [e for e in run.evidence if e.kind == "documentation"]
        self.channel.publish(
            step_start_event(run, stage, index, budget, bool(documentation))
        )

        system, user = self._prompts.build(stage.id, run.query, self._context, run.steps)
        started = time.monotonic()
        response = await self._complete(
            stage,
            system,
            user,
            max_tokens=budget,
            temperature=stage.temperature if stage.temperature is not None else self._temperature,
        )
        duration_ms = int((time.monotonic() - started) * 1000)

        output = response.content
        # Some gateways omit usage: count the whole cap then.
        tokens = response.total_tokens or budget
        metrics = self._scorer.score_step(output, index, len(self._stages))
        step = ReasoningStep(
            stage_id=stage.id,
            index=index,
            agent=stage.agent,
            budget=budget,
            tokens_used=tokens,
            duration_ms=duration_ms,
            output=output,
            confidence=metrics.confidence,
            coherence=metrics.coherence,
            information_density=metrics.information_density,
            citations=tuple(extract_citations(output)),
            sources_consulted=(
                SourceConsulted(type="memory", count=run.memory_hits),
                SourceConsulted(
                    type="documentation",
                    count=len(documentation),
                    files=sorted({e.source for e in documentation}),
                ),
                SourceConsulted(type="llm", model=self._llm.model_name, tokens=tokens),
            ),
        )
        run.append_step(step)
        self.channel.publish(step_complete_event(run, stage, step))
        logger.info(
            "Stage %d/%d %s done: %d tokens, %dms, confidence %.2f",
            index + 1, len(self._stages), stage.id, tokens, duration_ms, step.confidence,
        )
        return step

    async def finalize(self) -> PipelineRun:
        """Verify and decide; on Answer run the gated stages; persist and
        publish the terminal event.

        The verification the gate judged is the one reported and persisted.
        """
        run = self._require_run()
        if run.status is not RunStatus.RUNNING:
            raise RuntimeError(f"Cannot finalize a run in status {run.status.value}")
        if not self.awaiting_decision:
            raise RuntimeError(f"Cannot finalize with pending stage {run.next_stage!r}")
        set_stage_context(None)

        run.transition(RunStatus.VERIFYING)
        run.verification = self._scorer.verify(run.steps, run.evidence)

        run.transition(RunStatus.DECIDING)
        await self._raise_if_cancelled()
        try:
            decision = await asyncio.wait_for(
                self._gate.decide(run.verification, run.query, run.steps, self._llm),
                timeout=self._stage_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamGenericFailure(
                f"Clarification timed out after {self._stage_timeout_s:g}s"
            ) from e
        run.decision = decision
        run.tokens_used += decision.tokens_used

        if decision.is_answer:
            run.transition(RunStatus.SYNTHESIZING)
            while run.next_stage is not None:
                await self.advance()
            set_stage_context(None)
            run.answer = assemble_answer(run)

        await self._raise_if_cancelled()
        await self._bridge.persist_run(run)
        run.transition(
            RunStatus.ANSWERED if decision.is_answer else RunStatus.CLARIFICATION_REQUESTED
        )
        self.channel.publish(final_event(run, keywords_count=len(self._keywords)))
        logger.info(
            "Run %s: %s, confidence %.3f, %d stages, %d tokens",
            run.status.value, run.trace_id, run.verification.confidence,
            len(run.steps), run.tokens_used,
        )
        return run

    # === INTERNALS ===

    async def _complete(
        self, stage: StageSpec, system: str, user: str, max_tokens: int, temperature: float
    ) -> LLMResponse:
        try:
            return await asyncio.wait_for(
                self._llm.complete(
                    messages=[Message(role="user", content=user)],
                    system=system,
                    max_tokens=max_tokens,
                    temperature=temperature,
                ),
                timeout=self._stage_timeout_s,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamGenericFailure(
                f"Stage {stage.id} timed out after {self._stage_timeout_s:g}s",
                stage=stage.id,
            ) from e
        except UpstreamError as e:
            raise e.with_stage(stage.id)

    async def _gather_evidence(self, user_id: str | None) -> list[Evidence]:
        evidence: list[Evidence] = []
        if self._documentation is not None:
            try:
                evidence.extend(
                    await self._documentation.search(self._keywords, top_k=self._docs_top_k)
                )
            except DocumentationUnavailable as e:
                logger.warning("Documentation unavailable, continuing without it: %s", e)

        memory_source = MemoryEvidenceSource(self._bridge.store, user_id=user_id)
        evidence.extend(await memory_source.search(self._keywords))
        return evidence

    async def _raise_if_cancelled(self) -> None:
        if self._cancel_check is not None and await self._cancel_check():
            raise RunCancelled("Consumer disconnected")

    def _fail(self, error: Exception) -> None:
        self.failure = error
        run = self.run_state
        if isinstance(error, UpstreamError):
            logger.warning("Run aborted by upstream failure (%s): %s", error.code, error)
        else:
            logger.exception("Run aborted by unexpected error")
        if run is not None:
            run.error = str(error)
            if not run.status.is_terminal:
                run.transition(RunStatus.ERRORED)
        if not self.channel.closed:
            self.channel.publish(error_event(error, run.trace_id if run else None))

    def _require_run(self) -> PipelineRun:
        if self.run_state is None:
            raise RuntimeError("Executor not started")
        return self.run_state


def gate_position(stages: Sequence[StageSpec], gated: AbstractSet[str]) -> int:
    """Index of the first gated stage (len(stages) when none is gated).

    Raises:
        ValueError: If a gated stage is followed by an ungated one.
    """
    position = next((i for i, s in enumerate(stages) if s.id in gated), len(stages))
    trailing = [s.id for s in stages[position:] if s.id not in gated]
    if trailing:
        raise ValueError(f"Gated stages must close the stage list, found {trailing}")
    if position == 0 and stages:
        raise ValueError("At least one stage must run before the decision gate")
    return position


def assemble_answer(run: PipelineRun) -> str:
    """Final answer from existing outputs: the synthesis step, else the last one."""
    for step in run.steps:
        if step.stage_id == ANSWER_STAGE and step.output.strip():
            return step.output
    return run.steps[-1].output if run.steps else ""


def create_executor(
    settings: Settings,
    llm: BaseLLMClient,
    bridge: MemoryBridge,
    documentation: EvidenceSource | None = None,
    cancel_check: CancelCheck | None = None,
) -> PipelineExecutor:
    """Wire an executor from settings."""
    prompts = StagePromptBuilder(
        max_prior_steps=settings.prompt_max_prior_steps,
        max_chars_per_step=settings.prompt_max_chars_per_step,
        max_prior_chars=settings.prompt_max_prior_chars,
    )
    return PipelineExecutor(
        llm=llm,
        bridge=bridge,
        scorer=create_scorer(settings.scorer),
        prompt_builder=prompts,
        gate=DecisionGate(
            threshold=settings.confidence_threshold,
            max_questions=settings.max_clarifying_questions,
            clarify_max_tokens=settings.clarify_max_tokens,
            prompt_builder=prompts,
        ),
        documentation=documentation,
        token_budget=settings.pipeline_token_budget,
        stage_timeout_s=settings.stage_timeout_s,
        docs_top_k=settings.docs_top_k,
        temperature=settings.llm_temperature,
        cancel_check=cancel_check,
    )
