# src/evidence/documentation_source.py — v1
"""Keyword-indexed documentation corpus (DOCS_ROOT).

Markdown files are split on level 1-3 headers, plain-text files on
40-underscore rules. Each section scores 2 points per keyword occurrence;
sections of 100 characters or fewer are ignored. Relevance is the raw
score normalised by the best score of the query, so it stays in [0, 1].
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from deepthink.core.models import Evidence
from deepthink.evidence.base_evidence_source import (
    DocumentationUnavailable,
    EvidenceSource,
)

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 5
DEFAULT_EXCERPT_CHARS = 800
MIN_SECTION_CHARS = 100
MATCH_WEIGHT = 2

_MD_SPLIT = re.compile(r"\n#{1,3} ")
_TXT_SPLIT = re.compile(r"\n_{40}")
_SUFFIXES = (".md", ".txt")


@dataclass(frozen=True)
class _Section:
    source: str
    text: str
    lowered: str


class DocumentationSource(EvidenceSource):
    """Evidence from a directory of .md / .txt files.

    Args:
        root: Corpus directory (searched recursively).
        excerpt_chars: Max characters kept per excerpt.
    """

    def __init__(
        self, root: Path | str, excerpt_chars: int = DEFAULT_EXCERPT_CHARS
    ) -> None:
        self._root = Path(root).expanduser()
        self._excerpt_chars = excerpt_chars
        self._sections: list[_Section] | None = None

    @property
    def name(self) -> str:
        return "documentation"

    async def search(self, keywords: list[str], top_k: int = DEFAULT_TOP_K) -> list[Evidence]:
        sections = self._load_sections()
        terms = [k.lower() for k in keywords if k.strip()]
        if not terms:
            return []

        scored: list[tuple[int, _Section]] = []
        for section in sections:
            score = sum(
                len(re.findall(re.escape(term), section.lowered)) * MATCH_WEIGHT
                for term in terms
            )
            if score > 0:
                scored.append((score, section))

        if not scored:
            return []

        scored.sort(key=lambda pair: pair[0], reverse=True)
        best = scored[0][0]
        results = [
            Evidence(
                source=section.source,
                excerpt=section.text[: self._excerpt_chars],
                relevance=score / best,
                kind="documentation",
            )
            for score, section in scored[:top_k]
        ]
        logger.debug(
            "Documentation search: %d keywords, %d matching sections, %d returned",
            len(terms), len(scored), len(results),
        )
        return results

    def reload(self) -> None:
        """Drop the cached corpus so the next search re-reads the files."""
        self._sections = None

    def _load_sections(self) -> list[_Section]:
        if self._sections is not None:
            return self._sections

        if not self._root.is_dir():
            raise DocumentationUnavailable(
                f"Documentation root not found: {self._root}"
            )

        sections: list[_Section] = []
        for path in sorted(self._root.rglob("*")):
            if path.suffix.lower() not in _SUFFIXES or not path.is_file():
                continue
            try:
                text = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise DocumentationUnavailable(f"Cannot read {path}: {e}") from e

            splitter = _MD_SPLIT if path.suffix.lower() == ".md" else _TXT_SPLIT
            source = path.relative_to(self._root).as_posix()
            for chunk in splitter.split(text):
                if len(chunk) > MIN_SECTION_CHARS:
                    sections.append(_Section(source, chunk, chunk.lower()))

        logger.info(
            "Loaded documentation corpus: %d sections from %s", len(sections), self._root
        )
        self._sections = sections
        return sections
