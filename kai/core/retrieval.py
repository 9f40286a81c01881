"""Retrieval pipeline: narrow a user's journal down to entries relevant to a question.

Stages run strictly in order:

1. extract query keywords with the generation model
2. lexical pre-filter on keyword overlap (exact or substring, either direction)
3. bounded candidate set (matches, or the first N entries when matches are
   empty or too many)
4. semantic matching of the candidates by the generation model, falling back
   to a few pre-filtered entries if that call fails

Entries with no overlap that sit outside the first N are unreachable; the cap
keeps the semantic call's prompt size independent of journal size.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Sequence

from kai.chains.generate_keywords import extract_query_keywords
from kai.core.llm import GenerationClient
from kai.core.logging import get_logger, log_with_context
from kai.core.reranker import select_relevant_entries
from kai.core.schemas_journal import JournalEntry

logger = get_logger(__name__)

DEFAULT_MAX_CANDIDATES = 50
DEFAULT_FALLBACK_LIMIT = 5

QUERY_NOT_UNDERSTOOD = "Sorry, I had trouble understanding your question."
QUERY_WITHOUT_TOPICS = (
    "I couldn't determine the key topics of your question. Please try rephrasing it."
)


@dataclass
class RetrievalResult:
    """Outcome of one pipeline run."""

    entries: list[JournalEntry] = field(default_factory=list)
    query_keywords: list[str] = field(default_factory=list)
    prefiltered: list[JournalEntry] = field(default_factory=list)
    candidates: list[JournalEntry] = field(default_factory=list)
    degraded: bool = False
    # User-facing apology when the pipeline stopped before retrieval
    message: str | None = None


def analyzed_entries(entries: Sequence[JournalEntry]) -> list[JournalEntry]:
    """Entries carrying real tags, in their original order."""
    return [e for e in entries if e.is_analyzed]


def keywords_overlap(entry_keywords: Sequence[str], query_keywords: Sequence[str]) -> bool:
    """True if any entry keyword equals, contains, or is contained in a query keyword."""
    for ek in entry_keywords:
        for qk in query_keywords:
            if ek == qk or qk in ek or ek in qk:
                return True
    return False


def prefilter_by_keywords(
    entries: Sequence[JournalEntry],
    query_keywords: Sequence[str],
) -> list[JournalEntry]:
    """
    Keep analyzed entries sharing at least one keyword with the query.

    Args:
        entries: Journal entries in store order
        query_keywords: Lowercase query tags

    Returns:
        Matching entries in store order
    """
    return [
        e
        for e in analyzed_entries(entries)
        if keywords_overlap(e.keywords or [], query_keywords)
    ]


def select_candidates(
    prefiltered: Sequence[JournalEntry],
    entries: Sequence[JournalEntry],
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
) -> list[JournalEntry]:
    """
    Choose the bounded candidate set for semantic matching.

    Args:
        prefiltered: Keyword pre-filter matches
        entries: All analyzed entries in store order
        max_candidates: Candidate cap

    Returns:
        The matches when there are 1..max_candidates of them, otherwise the
        first max_candidates entries
    """
    if 0 < len(prefiltered) <= max_candidates:
        return list(prefiltered)
    return list(entries[:max_candidates])


async def retrieve_relevant_entries(
    query: str,
    entries: Sequence[JournalEntry],
    client: GenerationClient,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
    fallback_limit: int = DEFAULT_FALLBACK_LIMIT,
    max_entry_chars: int = 400,
) -> RetrievalResult:
    """
    Run the full retrieval pipeline for one question.

    Args:
        query: User question
        entries: The user's entries, newest first
        client: Generation client for keyword extraction and semantic matching
        max_candidates: Cap on entries sent to semantic matching
        fallback_limit: Pre-filtered entries kept when semantic matching fails
        max_entry_chars: Per-entry text truncation in the semantic prompt

    Returns:
        RetrievalResult; ``message`` is set when the query could not be
        interpreted, ``degraded`` when semantic matching failed
    """
    start = time.monotonic()
    tagged = analyzed_entries(entries)

    # Stage 1: query keywords
    try:
        query_keywords = await extract_query_keywords(query, client)
    except Exception as e:
        logger.error(f"Error generating query keywords: {e}")
        return RetrievalResult(message=QUERY_NOT_UNDERSTOOD)

    if not query_keywords:
        return RetrievalResult(message=QUERY_WITHOUT_TOPICS)

    # Stage 2 + 3: lexical pre-filter, bounded candidate set
    prefiltered = prefilter_by_keywords(tagged, query_keywords)
    candidates = select_candidates(prefiltered, tagged, max_candidates=max_candidates)

    result = RetrievalResult(
        query_keywords=query_keywords,
        prefiltered=prefiltered,
        candidates=candidates,
    )

    # Stage 4: semantic matching
    try:
        result.entries = await select_relevant_entries(
            query, candidates, client, max_chars=max_entry_chars
        )
    except Exception as e:
        logger.warning(f"Semantic matching failed, using keyword matches: {e}")
        result.entries = prefiltered[:fallback_limit]
        result.degraded = True

    log_with_context(
        logger,
        logging.INFO,
        "Retrieval pipeline finished",
        total_entries=len(entries),
        analyzed=len(tagged),
        query_keywords=query_keywords,
        prefiltered=len(prefiltered),
        candidates=len(candidates),
        selected=len(result.entries),
        degraded=result.degraded,
        duration_ms=int((time.monotonic() - start) * 1000),
    )
    return result
