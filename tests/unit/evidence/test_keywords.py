# tests/unit/evidence/test_keywords.py — v1
"""Tests for evidence/keywords.py."""

from __future__ import annotations

from deepthink.evidence.keywords import extract_keywords


def test_known_concepts_found():
    assert extract_keywords("how does memory retrieval work") == ["memory", "retrieval"]


def test_capitalised_terms_lowercased():
    assert extract_keywords("compare Raft and Paxos") == ["raft", "paxos"]


def test_deduplicated_first_seen_order():
    keywords = extract_keywords("Pipeline budget for the pipeline")
    assert keywords == ["budget", "pipeline"]


def test_nothing_found():
    assert extract_keywords("why is the sky blue") == []
