# src/api/facade.py — v2
"""Public facade — single entry point for running reasoning pipelines.

Usage:
    service = ReasoningService.from_settings(settings)
    executor = service.new_executor()
    run = await executor.run("Why ...?", session_id="s1")

Shared by the HTTP app and the CLI. Holds the process-wide collaborators
(completion client, memory store, documentation corpus); every run gets
its own executor and event channel.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from deepthink.config.settings import Settings
from deepthink.evidence.documentation_source import DocumentationSource
from deepthink.llm.client_factory import create_default_client
from deepthink.memory.bridge import MemoryBridge
from deepthink.memory.memory_factory import create_memory_store
from deepthink.pipeline.executor import CancelCheck, PipelineExecutor, create_executor

if TYPE_CHECKING:
    from deepthink.evidence.base_evidence_source import EvidenceSource
    from deepthink.llm.base_client import BaseLLMClient
    from deepthink.memory.base_memory_store import BaseMemoryStore

logger = logging.getLogger(__name__)


@dataclass
class ReasoningService:
    """Process-wide collaborators of the pipeline."""

    settings: Settings
    llm: BaseLLMClient
    store: BaseMemoryStore
    documentation: EvidenceSource | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> ReasoningService:
        """Validate credentials and build every collaborator.

        Raises:
            ConfigurationError: If the completion service or memory store
                is not configured.
        """
        settings.require_credentials()
        documentation = None
        if settings.docs_root is not None:
            documentation = DocumentationSource(
                settings.docs_root, excerpt_chars=settings.docs_excerpt_chars
            )
        service = cls(
            settings=settings,
            llm=create_default_client(settings),
            store=create_memory_store(settings),
            documentation=documentation,
        )
        logger.info(
            "Reasoning service ready: provider=%s, model=%s, memory=%s, docs=%s",
            settings.llm_provider,
            settings.llm_model,
            settings.memory_backend,
            settings.docs_root or "-",
        )
        return service

    @property
    def bridge(self) -> MemoryBridge:
        return MemoryBridge(
            self.store,
            context_limit=self.settings.context_memory_limit,
            excerpt_chars=self.settings.context_excerpt_chars,
        )

    def new_executor(self, cancel_check: CancelCheck | None = None) -> PipelineExecutor:
        """Fresh executor (and event channel) for one run."""
        return create_executor(
            self.settings,
            llm=self.llm,
            bridge=self.bridge,
            documentation=self.documentation,
            cancel_check=cancel_check,
        )

    async def close(self) -> None:
        await self.store.close()
