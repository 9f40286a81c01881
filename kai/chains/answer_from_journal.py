"""Answer a chat question from the user's journal.

Runs the retrieval pipeline, composes the chat prompt and generates the
answer. Every outcome is a user-facing string; nothing here raises for a
model or retrieval failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from kai.chains.compose_answer import DEFAULT_HISTORY_WINDOW, build_chat_prompt
from kai.core.llm import GenerationClient
from kai.core.logging import get_logger
from kai.core.retrieval import (
    DEFAULT_FALLBACK_LIMIT,
    DEFAULT_MAX_CANDIDATES,
    analyzed_entries,
    retrieve_relevant_entries,
)
from kai.core.schemas_chat import ConversationTurn
from kai.core.schemas_journal import JournalEntry

logger = get_logger(__name__)

EMPTY_QUESTION = "Please ask a question."
NO_ANALYZED_ENTRIES = (
    "You don't have any journal entries that have been analyzed yet. "
    "Please wait a moment for the keywords to be generated."
)
NO_RELATED_ENTRIES = (
    "I couldn't find any entries in your journal that seem related to your question."
)
ANSWER_TEMPERATURE = 0.7


@dataclass
class JournalAnswer:
    summary: str
    sources: list[str] = field(default_factory=list)
    degraded: bool = False


async def answer_from_journal(
    query: str,
    entries: Sequence[JournalEntry],
    client: GenerationClient,
    conversation_history: Sequence[ConversationTurn | dict] = (),
    custom_prompt: str | None = None,
    max_candidates: int = DEFAULT_MAX_CANDIDATES,
    fallback_limit: int = DEFAULT_FALLBACK_LIMIT,
    max_entry_chars: int = 400,
    history_window: int = DEFAULT_HISTORY_WINDOW,
) -> JournalAnswer:
    """
    Produce Kai's answer to a question about the journal.

    Args:
        query: User question
        entries: All of the user's entries, newest first
        client: Generation client
        conversation_history: Prior exchanges, oldest first
        custom_prompt: Optional user template
        max_candidates: Candidate cap for semantic matching
        fallback_limit: Entries kept when semantic matching fails
        max_entry_chars: Entry truncation in the semantic matching prompt
        history_window: Trailing exchanges kept in the prompt

    Returns:
        JournalAnswer with the summary text and the ids of entries used
    """
    if not query or not query.strip():
        return JournalAnswer(summary=EMPTY_QUESTION)

    if not analyzed_entries(entries):
        return JournalAnswer(summary=NO_ANALYZED_ENTRIES)

    retrieval = await retrieve_relevant_entries(
        query,
        entries,
        client,
        max_candidates=max_candidates,
        fallback_limit=fallback_limit,
        max_entry_chars=max_entry_chars,
    )
    if retrieval.message:
        return JournalAnswer(summary=retrieval.message)

    if not retrieval.entries:
        return JournalAnswer(summary=NO_RELATED_ENTRIES, degraded=retrieval.degraded)

    prompt = build_chat_prompt(
        query,
        conversation_history,
        retrieval.entries,
        custom_prompt=custom_prompt,
        history_window=history_window,
    )
    sources = [e.id for e in retrieval.entries]
    logger.info(f"Sending {len(sources)} relevant entries to final prompt (of {len(entries)} total)")

    try:
        summary = await client.generate(prompt, temperature=ANSWER_TEMPERATURE)
    except Exception as e:
        logger.error(f"Error generating chat answer: {e}")
        return JournalAnswer(
            summary=f"Sorry, I encountered an error: {e}",
            degraded=retrieval.degraded,
        )

    return JournalAnswer(summary=summary, sources=sources, degraded=retrieval.degraded)
