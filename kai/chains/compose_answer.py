"""Chat prompt assembly.

Renders the question, recent conversation and retrieved entries into either
the user's custom template or the built-in Kai template. Placeholders are
replaced literally and globally; nothing else in a custom template is touched.
"""

from __future__ import annotations

from typing import Sequence

from kai.core.schemas_chat import ConversationTurn
from kai.core.schemas_journal import JournalEntry

QUERY_PLACEHOLDER = "{query}"
HISTORY_PLACEHOLDER = "{conversation_history}"
ENTRIES_PLACEHOLDER = "{journal_entries}"

NEW_CONVERSATION = "This is a new conversation."
DEFAULT_HISTORY_WINDOW = 4

DEFAULT_CHAT_PROMPT = """You are Kai, an AI assistant who is a close friend to the user. The user has written journal entries, and you know everything about them from reading their journal. You are warm, casual, and speak naturally - like you're chatting over coffee, not reading from a database.

**IMPORTANT - Identity:**
- YOU are "Kai" (the AI assistant)
- The USER is the person who wrote the journal entries
- When you say "I", you mean yourself (Kai)
- When you say "you", you mean the user (the person asking questions)
- NEVER refer to the user as "Kai" - that's YOUR name, not theirs
- If the journal mentions someone named "Kai", that's a different person - clarify if needed

**Your Voice:**
- Talk like a close friend who already knows them well
- Don't say things like "Based on what you've written" or "According to your journal" - just state things naturally
- Use "I remember you mentioned..." or "You told me..." casually, like recalling a past conversation
- Be warm, encouraging, and genuinely interested
- Use casual language and natural flow

**Current Question:**
{query}

**What We've Talked About Before:**
{conversation_history}

**Things I Know About You (from your journal):**
Each entry shows when it was written. Use these dates naturally when relevant.
{journal_entries}

**How I Answer:**
- Answer factual questions from what you know from their journal entries
- When asked about timing, use the dates naturally: "You wrote about that on [date]"
- If you don't know something specific from these entries, say so naturally: "Hmm, I don't remember you mentioning that specifically, but..."
- For opinions, ideas or advice, share your own thoughts and use the journal to personalize them
- Keep it flowing like a real conversation between friends

ANSWER:"""


def _turn_parts(turn: ConversationTurn | dict) -> tuple[str, str]:
    if isinstance(turn, dict):
        return str(turn.get("question", "")), str(turn.get("answer", ""))
    return turn.question, turn.answer


def trim_history(
    history: Sequence[ConversationTurn | dict],
    window: int = DEFAULT_HISTORY_WINDOW,
) -> list[ConversationTurn | dict]:
    """Keep only the last ``window`` exchanges."""
    if window <= 0:
        return []
    return list(history)[-window:]


def format_conversation_history(history: Sequence[ConversationTurn | dict]) -> str:
    if not history:
        return NEW_CONVERSATION
    blocks = []
    for turn in history:
        question, answer = _turn_parts(turn)
        blocks.append(f"Q: {question}\nA: {answer}")
    return "\n\n".join(blocks)


def format_journal_entries(entries: Sequence[JournalEntry]) -> str:
    return "\n\n---\n\n".join(f"Date: {e.date}\nEntry:\n{e.text}" for e in entries)


def render_template(
    template: str,
    query: str,
    conversation_history: str,
    journal_entries: str,
) -> str:
    """Replace every occurrence of each placeholder with its content."""
    return (
        template.replace(QUERY_PLACEHOLDER, query)
        .replace(HISTORY_PLACEHOLDER, conversation_history)
        .replace(ENTRIES_PLACEHOLDER, journal_entries)
    )


def build_chat_prompt(
    query: str,
    conversation_history: Sequence[ConversationTurn | dict],
    entries: Sequence[JournalEntry],
    custom_prompt: str | None = None,
    history_window: int = DEFAULT_HISTORY_WINDOW,
) -> str:
    """
    Build the literal text sent to the generation API for a chat answer.

    Args:
        query: User question
        conversation_history: Prior exchanges, oldest first
        entries: Retrieved journal entries
        custom_prompt: User template; blank or None selects the default
        history_window: Number of trailing exchanges kept

    Returns:
        Final prompt text
    """
    template = custom_prompt if custom_prompt and custom_prompt.strip() else DEFAULT_CHAT_PROMPT
    return render_template(
        template,
        query=query,
        conversation_history=format_conversation_history(
            trim_history(conversation_history, history_window)
        ),
        journal_entries=format_journal_entries(entries),
    )
