"""Keyword and concept extraction for journal entries and chat queries.

Entries get up to 7 tags that are stored alongside the text; queries get up
to 5 tags that drive the keyword pre-filter of the retrieval pipeline.
"""

from __future__ import annotations

from kai.core.errors import GenerationRateLimitError
from kai.core.llm import GenerationClient
from kai.core.logging import get_logger
from kai.core.schemas_journal import KEYWORD_ERROR

logger = get_logger(__name__)

MAX_ENTRY_KEYWORDS = 7
MAX_QUERY_KEYWORDS = 5

ENTRY_KEYWORDS_PROMPT = """You are a text analysis expert. Your task is to extract relevant keywords AND abstract concepts from a journal entry.
- **Keywords:** Focus on specific nouns, entities (people, places), and key activities.
- **Concepts:** Identify underlying feelings, themes, or ideas (e.g., "accomplishment", "anxiety", "new experiences", "personal connection", "attraction").
Provide up to 7 keywords and concepts in total. Return them as a comma-separated list.

JOURNAL ENTRY:
---
{text}
---

KEYWORDS & CONCEPTS:"""

QUERY_KEYWORDS_PROMPT = """You are a search expert. Extract the most important keywords AND abstract concepts from the user's question to find relevant journal entries.
- **Keywords:** Identify specific nouns, entities, or activities.
- **Concepts:** Identify the underlying theme or intent (e.g., "feelings of accomplishment", "anxiety", "social interaction", "romantic feelings").
Provide up to 5 keywords and concepts. Return them as a comma-separated list.

QUESTION:
---
{query}
---

KEYWORDS & CONCEPTS:"""


def parse_keyword_list(raw: str, limit: int | None = None) -> list[str]:
    """
    Parse a comma-separated model response into lowercase tags.

    Args:
        raw: Model output, e.g. "Hiking, Outdoors, accomplishment"
        limit: Optional cap on the number of tags kept

    Returns:
        Trimmed, lowercased, non-empty tags in response order
    """
    if not raw:
        return []
    keywords = [kw.strip().lower() for kw in raw.split(",")]
    keywords = [kw for kw in keywords if kw]
    return keywords[:limit] if limit is not None else keywords


async def generate_keywords_for_entry(text: str, client: GenerationClient) -> list[str]:
    """
    Generate tags for a journal entry.

    A persistent rate limit propagates so the caller can pause and retry;
    every other failure degrades to the ``["error"]`` sentinel, which keeps the
    entry eligible for re-processing.

    Args:
        text: Raw entry text
        client: Generation client

    Returns:
        Up to 7 lowercase tags, [] for an empty model answer, or ["error"]

    Raises:
        GenerationRateLimitError: If the generation API stayed rate limited
    """
    prompt = ENTRY_KEYWORDS_PROMPT.format(text=text)
    try:
        keywords_text = await client.generate(prompt, temperature=0.2)
    except GenerationRateLimitError:
        raise
    except Exception as e:
        logger.error(f"Error generating keywords: {e}")
        return [KEYWORD_ERROR]

    return parse_keyword_list(keywords_text, limit=MAX_ENTRY_KEYWORDS)


async def extract_query_keywords(query: str, client: GenerationClient) -> list[str]:
    """Extract up to 5 search tags from a chat question. Errors propagate."""
    prompt = QUERY_KEYWORDS_PROMPT.format(query=query)
    keywords_text = await client.generate(prompt, temperature=0.1)
    return parse_keyword_list(keywords_text, limit=MAX_QUERY_KEYWORDS)
