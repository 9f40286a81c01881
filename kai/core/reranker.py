"""Semantic matching of candidate entries against a question.

The generation model sees the question plus a numbered list of candidates and
answers with the 0-based indices of the entries that are genuinely relevant,
or ``none``.
"""

from __future__ import annotations

import re
from typing import Sequence

from kai.core.llm import GenerationClient
from kai.core.logging import get_logger
from kai.core.schemas_journal import JournalEntry

logger = get_logger(__name__)

# A bare or bracketed comma-separated list, e.g. "3, 0, 7" or "[3, 0, 7]"
_INDEX_LIST_RE = re.compile(r"\s*\[?\s*(\d+(?:\s*,\s*\d+)*)\s*,?\s*\]?\s*\.?\s*")

RELEVANCE_PROMPT = """You are helping someone search their personal journal. Decide which of the journal entries below are genuinely relevant to their question.

QUESTION:
---
{query}
---

JOURNAL ENTRIES:
{entries}

Return ONLY the numbers (0-based indices) of the relevant entries as a comma-separated list, most relevant first, e.g. "3, 0, 7".
If none of the entries are relevant, return "none".

RELEVANT ENTRY NUMBERS:"""


def format_candidates(entries: Sequence[JournalEntry], max_chars: int = 400) -> str:
    """Render candidates as numbered blocks with date, keywords and truncated text."""
    blocks = []
    for i, entry in enumerate(entries):
        keywords = ", ".join(entry.keywords or [])
        blocks.append(
            f"[{i}] Date: {entry.date}\nKeywords: {keywords}\nEntry: {entry.text[:max_chars]}"
        )
    return "\n\n".join(blocks)


def parse_relevant_indices(raw: str, candidate_count: int) -> list[int]:
    """
    Parse the model's index list.

    Args:
        raw: Model output, e.g. "2, 0" or "none"
        candidate_count: Number of candidates shown to the model

    Returns:
        Unique in-range indices in the order the model returned them; [] for
        "none" or any reply that is not a plain index list
    """
    if not raw:
        return []
    match = _INDEX_LIST_RE.fullmatch(raw)
    if not match:
        if raw.strip().strip(".\"'").lower() != "none":
            logger.warning(f"Unparseable semantic matching reply, treating as none: {raw[:100]!r}")
        return []

    indices: list[int] = []
    seen: set[int] = set()
    for token in match.group(1).split(","):
        idx = int(token)
        if 0 <= idx < candidate_count and idx not in seen:
            indices.append(idx)
            seen.add(idx)
    return indices


async def select_relevant_entries(
    query: str,
    candidates: Sequence[JournalEntry],
    client: GenerationClient,
    max_chars: int = 400,
) -> list[JournalEntry]:
    """
    Ask the generation model which candidates answer the question.

    Args:
        query: User question
        candidates: Bounded candidate set
        client: Generation client
        max_chars: Per-entry text truncation in the prompt

    Returns:
        Relevant entries in the order the model ranked them

    Raises:
        GenerationError: If the generation call fails
    """
    if not candidates:
        return []

    prompt = RELEVANCE_PROMPT.format(
        query=query,
        entries=format_candidates(candidates, max_chars=max_chars),
    )
    raw = await client.generate(prompt, temperature=0.1)
    indices = parse_relevant_indices(raw, len(candidates))

    logger.info(f"Semantic matching kept {len(indices)} of {len(candidates)} candidates")
    return [candidates[i] for i in indices]
