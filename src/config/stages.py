# src/config/stages.py — v2
"""Declarative stage table for the reasoning pipeline.

The tuple order IS the canonical execution order: stages are never
reordered, and only the gated tail is skipped (on Clarify). Weights sum
to 1.0 and feed llm/token_budget.allocate_stage_budgets().
"""

from __future__ import annotations

from deepthink.core.models import StageSpec

STAGES: tuple[StageSpec, ...] = (
    StageSpec(
        id="decompose",
        name="Problem Decomposition",
        agent="Problem Decomposer",
        weight=0.15,
        description="Breaking down the query into analyzable components",
    ),
    StageSpec(
        id="context_retrieve",
        name="Context Retrieval",
        agent="Context Retriever",
        weight=0.10,
        description="Relating memories and documentation to the query",
    ),
    StageSpec(
        id="hypothesize",
        name="Hypothesis Generation",
        agent="Hypothesis Generator",
        weight=0.15,
        description="Generating potential solution paths",
    ),
    StageSpec(
        id="evidence_gather",
        name="Evidence Gathering",
        agent="Evidence Collector",
        weight=0.15,
        description="Collecting supporting evidence and citations",
    ),
    StageSpec(
        id="integrate",
        name="Multi-Source Integration",
        agent="Integrator",
        weight=0.15,
        description="Synthesizing information from multiple sources",
    ),
    StageSpec(
        id="critique",
        name="Critical Analysis",
        agent="Critical Analyst",
        weight=0.10,
        description="Evaluating solution quality and coherence",
        temperature=0.7,
    ),
    StageSpec(
        id="synthesize",
        name="Solution Synthesis",
        agent="Response Synthesizer",
        weight=0.15,
        description="Constructing the final coherent answer",
    ),
    StageSpec(
        id="verify",
        name="Verification & Calibration",
        agent="Truth Verifier",
        weight=0.05,
        description="Validating confidence and provenance",
    ),
)

STAGE_IDS: tuple[str, ...] = tuple(s.id for s in STAGES)

# Stage whose output becomes the final answer on the Answer branch.
ANSWER_STAGE = "synthesize"

# Stages whose outputs are persisted as standalone memories.
ARTIFACT_STAGES: frozenset[str] = frozenset({"critique", "synthesize"})

# Trailing stages that run only after the gate chose Answer; a Clarify run
# stops before them.
GATED_STAGES: frozenset[str] = frozenset({"synthesize", "verify"})


def get_stage(stage_id: str) -> StageSpec:
    """Look up a stage by identifier.

    Raises:
        KeyError: If the stage is not part of the canonical table.
    """
    for stage in STAGES:
        if stage.id == stage_id:
            return stage
    raise KeyError(f"Unknown stage: {stage_id!r}")
