"""Tests for kai.db.journal_entries with a mocked Supabase client."""

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from postgrest.exceptions import APIError

from kai.core.errors import EntryNotFoundError, OwnershipError, PersistenceError
from kai.db.journal_entries import JournalEntryStore, row_to_entry, safe_parse_date


def _mock_supabase(*results):
    """Chained MagicMock; each ``execute()`` returns the next result."""
    sb = MagicMock()
    chain = MagicMock()
    for method in ("select", "insert", "update", "delete", "eq", "order", "range", "limit"):
        getattr(chain, method).return_value = chain
    chain.execute.side_effect = list(results)
    sb.table.return_value = chain
    return sb, chain


def _row(entry_id, timestamp, user_id="user-1", keywords=None):
    return {
        "id": entry_id,
        "user_id": user_id,
        "text": f"text {entry_id}",
        "timestamp": timestamp,
        "date": timestamp[:10],
        "keywords": keywords,
    }


class TestSafeParseDate:
    def test_utc_date(self):
        assert safe_parse_date("2024-05-01T10:00:00.000Z") == "2024-05-01"

    def test_offset_normalized_to_utc(self):
        assert safe_parse_date("2024-05-01T23:30:00-02:00") == "2024-05-02"

    def test_unparseable_is_today(self):
        today = datetime.now(timezone.utc).date().isoformat()
        assert safe_parse_date("not a date") == today
        assert safe_parse_date(None) == today


def test_row_to_entry_derives_missing_date():
    entry = row_to_entry({"id": "a", "text": "t", "timestamp": "2024-03-04T01:02:03Z"})
    assert entry.date == "2024-03-04"
    assert entry.keywords is None


def test_prefixed_table_name():
    sb, _ = _mock_supabase()
    store = JournalEntryStore(sb, table_prefix="test_")
    assert store.table == "test_journal_entries"


def test_add_entry_inserts_trimmed_row():
    row = _row("e1", "2024-05-01T10:00:00.000Z")
    sb, chain = _mock_supabase(MagicMock(data=[row]))
    store = JournalEntryStore(sb)

    entry = store.add_entry("e1", "  text e1  ", "2024-05-01T10:00:00.000Z", "user-1")

    inserted = chain.insert.call_args.args[0]
    assert inserted["text"] == "text e1"
    assert inserted["date"] == "2024-05-01"
    assert inserted["keywords"] is None
    assert entry.id == "e1"
    sb.table.assert_called_with("my_kb_journal_entries")


def test_add_entry_failure_is_persistence_error():
    sb, chain = _mock_supabase(RuntimeError("connection reset"))
    store = JournalEntryStore(sb)

    with pytest.raises(PersistenceError, match="Failed to save journal entry"):
        store.add_entry("e1", "text", "2024-05-01T10:00:00.000Z", "user-1")


class TestOwnership:
    def test_missing_entry(self):
        sb, _ = _mock_supabase(MagicMock(data=[]))
        with pytest.raises(EntryNotFoundError, match="Entry nope not found"):
            JournalEntryStore(sb).get_entry("nope", "user-1")

    def test_foreign_entry_not_deleted(self):
        sb, chain = _mock_supabase(MagicMock(data=[_row("e1", "2024-05-01T10:00:00Z", user_id="other")]))
        store = JournalEntryStore(sb)

        with pytest.raises(OwnershipError, match="Unauthorized"):
            store.delete_entry("e1", "user-1")

        chain.delete.assert_not_called()

    def test_owned_entry_keywords_updated(self):
        sb, chain = _mock_supabase(
            MagicMock(data=[_row("e1", "2024-05-01T10:00:00Z")]),
            MagicMock(data=[{}]),
        )

        JournalEntryStore(sb).update_entry_keywords("e1", ["hiking"], "user-1")

        chain.update.assert_called_once_with({"keywords": ["hiking"]})
        chain.eq.assert_any_call("user_id", "user-1")


def test_get_entries_ordered_query():
    rows = [_row("b", "2024-05-02T00:00:00Z"), _row("a", "2024-05-01T00:00:00Z")]
    sb, chain = _mock_supabase(MagicMock(data=rows))

    entries = JournalEntryStore(sb).get_entries("user-1", limit=10, offset=20)

    assert [e.id for e in entries] == ["b", "a"]
    chain.order.assert_called_once_with("timestamp", desc=True)
    chain.range.assert_called_once_with(20, 29)


def test_ordered_query_failure_falls_back_to_in_memory_sort():
    rows = [
        _row("old", "2024-01-01T00:00:00Z"),
        _row("new", "2024-06-01T00:00:00Z"),
        _row("mid", "2024-03-01T00:00:00Z"),
    ]
    sb, _ = _mock_supabase(
        APIError({"message": "column does not exist", "code": "42703"}),
        MagicMock(data=rows),
    )
    store = JournalEntryStore(sb)

    assert [e.id for e in store.get_entries("user-1", limit=2, offset=0)] == ["new", "mid"]


def test_fallback_without_limit_returns_everything_sorted():
    rows = [_row("old", "2024-01-01T00:00:00Z"), _row("new", "2024-06-01T00:00:00Z")]
    sb, _ = _mock_supabase(APIError({"message": "missing index", "code": "42P01"}), MagicMock(data=rows))

    entries = JournalEntryStore(sb).get_all_entries_with_keywords("user-1")

    assert [e.id for e in entries] == ["new", "old"]


def test_all_entries_read_past_the_row_cap():
    first_page = [_row(f"n{i}", "2024-05-02T00:00:00Z") for i in range(1000)]
    second_page = [_row(f"o{i}", "2024-05-01T00:00:00Z") for i in range(200)]
    sb, chain = _mock_supabase(MagicMock(data=first_page), MagicMock(data=second_page))

    entries = JournalEntryStore(sb).get_all_entries_with_keywords("user-1")

    assert len(entries) == 1200
    assert entries[-1].id == "o199"
    assert [c.args for c in chain.range.call_args_list] == [(0, 999), (1000, 1999)]


def test_full_page_followed_by_empty_page():
    rows = [_row(f"n{i}", "2024-05-02T00:00:00Z") for i in range(1000)]
    sb, chain = _mock_supabase(MagicMock(data=rows), MagicMock(data=[]))

    assert len(JournalEntryStore(sb).get_all_entries_with_keywords("user-1")) == 1000
    assert chain.execute.call_count == 2


def test_fallback_reads_every_page_before_sorting():
    first_page = [_row(f"a{i}", "2024-01-01T00:00:00Z") for i in range(1000)]
    second_page = [_row("newest", "2024-06-01T00:00:00Z")]
    sb, chain = _mock_supabase(
        APIError({"message": "missing index", "code": "42P01"}),
        MagicMock(data=first_page),
        MagicMock(data=second_page),
    )

    entries = JournalEntryStore(sb).get_entries("user-1", limit=5, offset=0)

    assert entries[0].id == "newest"
    assert len(entries) == 5
    chain.order.assert_any_call("id")


def test_non_api_failure_is_not_masked():
    sb, _ = _mock_supabase(RuntimeError("network down"))

    with pytest.raises(PersistenceError, match="Failed to list journal entries"):
        JournalEntryStore(sb).get_entries("user-1")


def test_entries_needing_keywords():
    rows = [
        _row("pending", "2024-05-05T00:00:00Z"),
        _row("tagged", "2024-05-04T00:00:00Z", keywords=["hiking"]),
        _row("failed", "2024-05-03T00:00:00Z", keywords=["error"]),
        _row("limited", "2024-05-02T00:00:00Z", keywords=["rate-limited"]),
        _row("empty", "2024-05-01T00:00:00Z", keywords=[]),
    ]
    sb, _ = _mock_supabase(MagicMock(data=rows))

    pending = JournalEntryStore(sb).list_entries_needing_keywords("user-1")

    assert [e.id for e in pending] == ["pending", "failed", "limited", "empty"]


def test_count_entries():
    sb, chain = _mock_supabase(MagicMock(data=[], count=12))

    assert JournalEntryStore(sb).count_entries("user-1") == 12
    chain.select.assert_called_once_with("id", count="exact")
