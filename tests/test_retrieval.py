"""Tests for kai.core.retrieval: keyword pre-filter, candidates, semantic matching."""

import pytest

from kai.core.errors import GenerationError
from kai.core.retrieval import (
    QUERY_NOT_UNDERSTOOD,
    QUERY_WITHOUT_TOPICS,
    keywords_overlap,
    prefilter_by_keywords,
    retrieve_relevant_entries,
    select_candidates,
)
from kai.core.schemas_journal import JournalEntry
from tests.fakes.fake_db import FakeGenerationClient


def _entry(entry_id: str, keywords, text: str = "text") -> JournalEntry:
    return JournalEntry(id=entry_id, text=text, date="2024-05-01", keywords=keywords)


def routed_client(query_keywords, rerank):
    """Fake client answering the query-keyword and semantic-matching prompts."""

    def respond(prompt: str):
        if "RELEVANT ENTRY NUMBERS" in prompt:
            return rerank
        if "QUESTION:" in prompt:
            return query_keywords
        raise AssertionError("unexpected prompt")

    return FakeGenerationClient(responder=respond)


class TestKeywordsOverlap:
    def test_exact(self):
        assert keywords_overlap(["hiking"], ["hiking"])

    def test_substring_either_direction(self):
        assert keywords_overlap(["mountain hiking"], ["hiking"])
        assert keywords_overlap(["hike"], ["hikes"])

    def test_no_overlap(self):
        assert not keywords_overlap(["cooking"], ["hiking"])


def test_prefilter_skips_pending_and_sentinel_entries():
    entries = [
        _entry("a", ["hiking"]),
        _entry("b", ["error"]),
        _entry("c", ["rate-limited"]),
        _entry("d", None),
        _entry("e", []),
        _entry("f", ["cooking"]),
    ]

    assert [e.id for e in prefilter_by_keywords(entries, ["hiking", "error"])] == ["a"]


class TestSelectCandidates:
    def test_uses_matches_when_within_cap(self):
        entries = [_entry(str(i), ["x"]) for i in range(10)]
        assert select_candidates(entries[3:5], entries, max_candidates=50) == entries[3:5]

    def test_falls_back_to_first_n_when_no_matches(self):
        entries = [_entry(str(i), ["x"]) for i in range(60)]
        assert select_candidates([], entries, max_candidates=50) == entries[:50]

    def test_falls_back_to_first_n_when_too_many_matches(self):
        entries = [_entry(str(i), ["x"]) for i in range(80)]
        matches = entries[10:71]
        assert select_candidates(matches, entries, max_candidates=50) == entries[:50]

    def test_exactly_cap_matches_are_kept(self):
        entries = [_entry(str(i), ["x"]) for i in range(80)]
        matches = entries[30:80]
        assert select_candidates(matches, entries, max_candidates=50) == matches


@pytest.mark.asyncio
async def test_hiking_scenario():
    entries = [_entry("h1", ["hiking", "outdoors"], text="Went hiking today")]
    client = routed_client("hiking", "0")

    result = await retrieve_relevant_entries("Tell me about my hikes", entries, client)

    assert result.message is None
    assert result.query_keywords == ["hiking"]
    assert [e.id for e in result.prefiltered] == ["h1"]
    assert [e.id for e in result.candidates] == ["h1"]
    assert [e.id for e in result.entries] == ["h1"]
    assert not result.degraded


@pytest.mark.asyncio
async def test_query_keyword_failure_returns_apology():
    client = FakeGenerationClient([GenerationError("down")])

    result = await retrieve_relevant_entries("anything", [_entry("a", ["x"])], client)

    assert result.message == QUERY_NOT_UNDERSTOOD
    assert result.entries == []


@pytest.mark.asyncio
async def test_query_without_keywords_returns_apology():
    client = FakeGenerationClient([" , ,"])

    result = await retrieve_relevant_entries("hmm", [_entry("a", ["x"])], client)

    assert result.message == QUERY_WITHOUT_TOPICS


@pytest.mark.asyncio
async def test_semantic_failure_falls_back_to_five_prefiltered():
    entries = [_entry(f"m{i}", ["work"]) for i in range(8)] + [_entry("other", ["cooking"])]
    client = routed_client("work", GenerationError("Gemini API error: 500"))

    result = await retrieve_relevant_entries("How is work?", entries, client)

    assert result.degraded
    assert [e.id for e in result.entries] == ["m0", "m1", "m2", "m3", "m4"]


@pytest.mark.asyncio
async def test_no_overlap_and_semantic_failure_yields_no_entries():
    entries = [_entry("a", ["cooking"]), _entry("b", ["music"])]
    client = routed_client("hiking", GenerationError("down"))

    result = await retrieve_relevant_entries("Tell me about hikes", entries, client)

    assert result.message is None
    assert result.prefiltered == []
    assert [e.id for e in result.candidates] == ["a", "b"]
    assert result.entries == []
    assert result.degraded


@pytest.mark.asyncio
async def test_semantic_step_sees_at_most_cap_candidates():
    entries = [_entry(f"e{i}", ["misc"]) for i in range(70)]
    client = routed_client("unrelated", "none")

    result = await retrieve_relevant_entries("q", entries, client, max_candidates=50)

    rerank_prompt = client.calls[1]["prompt"]
    assert "[49] Date" in rerank_prompt
    assert "[50] Date" not in rerank_prompt
    assert result.entries == []
