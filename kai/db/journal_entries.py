"""Database operations for the journal entries table."""

from datetime import datetime, timezone
from typing import Any

from postgrest.exceptions import APIError
from supabase import Client

from kai.core.errors import EntryNotFoundError, OwnershipError, PersistenceError
from kai.core.logging import get_logger
from kai.core.schemas_journal import JournalEntry
from kai.db.supabase_client import execute, fetch_all_rows, table_name

logger = get_logger(__name__)


def safe_parse_date(timestamp: str | None) -> str:
    """
    Derive a YYYY-MM-DD date from an ISO timestamp.

    Args:
        timestamp: ISO-8601 timestamp (a trailing "Z" is accepted)

    Returns:
        The timestamp's UTC date, or today's UTC date if it cannot be parsed
    """
    today = datetime.now(timezone.utc).date().isoformat()
    if not timestamp:
        return today
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return today
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date().isoformat()


def row_to_entry(row: dict[str, Any]) -> JournalEntry:
    timestamp = row.get("timestamp") or ""
    return JournalEntry(
        id=row.get("id") or row.get("entry_id") or "",
        text=row.get("text") or "",
        timestamp=timestamp,
        date=row.get("date") or safe_parse_date(timestamp),
        keywords=row.get("keywords"),
        user_id=row.get("user_id"),
        created_at=row.get("created_at"),
    )


class JournalEntryStore:
    """Per-user journal entries; every query is scoped by ``user_id``."""

    def __init__(self, client: Client, table_prefix: str = "my_kb_"):
        self.client = client
        self.table = table_name(table_prefix, "journal_entries")

    def _query(self):
        return self.client.table(self.table)

    def add_entry(
        self,
        entry_id: str,
        text: str,
        timestamp: str,
        user_id: str,
        keywords: list[str] | None = None,
    ) -> JournalEntry:
        """
        Insert a new entry.

        Args:
            entry_id: Unique entry id
            text: Entry text (stored trimmed)
            timestamp: ISO-8601 creation timestamp
            user_id: Owning user
            keywords: Optional tags; None means analysis is pending

        Returns:
            The stored entry
        """
        row = {
            "id": entry_id,
            "user_id": user_id,
            "text": text.strip(),
            "timestamp": timestamp,
            "date": safe_parse_date(timestamp),
            "keywords": keywords,
        }
        result = execute(self._query().insert(row), "save journal entry")
        if not result.data:
            raise PersistenceError("No data returned from journal entry insert")
        return row_to_entry(result.data[0])

    def get_entry(self, entry_id: str, user_id: str) -> JournalEntry:
        """
        Load one entry and verify its owner.

        Raises:
            EntryNotFoundError: If no entry has this id
            OwnershipError: If the entry belongs to another user
        """
        result = execute(
            self._query().select("*").eq("id", entry_id).limit(1),
            "load journal entry",
        )
        if not result.data:
            raise EntryNotFoundError(f"Entry {entry_id} not found")
        entry = row_to_entry(result.data[0])
        if entry.user_id != user_id:
            raise OwnershipError("Unauthorized: Entry does not belong to user")
        return entry

    def update_entry_keywords(self, entry_id: str, keywords: list[str], user_id: str) -> None:
        """Replace an owned entry's tags."""
        self.get_entry(entry_id, user_id)
        execute(
            self._query().update({"keywords": keywords}).eq("id", entry_id).eq("user_id", user_id),
            "update entry keywords",
        )

    def delete_entry(self, entry_id: str, user_id: str) -> None:
        """Delete an owned entry; nothing is mutated if ownership fails."""
        self.get_entry(entry_id, user_id)
        execute(
            self._query().delete().eq("id", entry_id).eq("user_id", user_id),
            "delete journal entry",
        )
        logger.info(f"Deleted journal entry {entry_id}")

    def _ordered_rows(
        self,
        user_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """
        User rows newest first, sorted in memory when the ordered query fails.

        Without a limit every row is read, one page at a time. A fresh
        deployment may lack the (user_id, timestamp) index or column the
        ordered query needs; the fallback reads every user row instead.
        """

        def ordered():
            return self._query().select("*").eq("user_id", user_id).order("timestamp", desc=True)

        try:
            if limit is None:
                return fetch_all_rows(ordered)[offset:]
            return ordered().range(offset, offset + limit - 1).execute().data or []
        except APIError as e:
            logger.warning(f"Ordered entry query failed, falling back to in-memory sort: {e}")
        except Exception as e:
            raise PersistenceError(f"Failed to list journal entries: {e}") from e

        try:
            rows = fetch_all_rows(
                lambda: self._query().select("*").eq("user_id", user_id).order("id")
            )
        except Exception as e:
            raise PersistenceError(f"Failed to list journal entries: {e}") from e

        rows.sort(key=lambda r: r.get("timestamp") or "", reverse=True)
        if limit is None:
            return rows[offset:]
        return rows[offset : offset + limit]

    def get_entries(self, user_id: str, limit: int = 50, offset: int = 0) -> list[JournalEntry]:
        """Paginated entries, newest first."""
        return [row_to_entry(r) for r in self._ordered_rows(user_id, limit=limit, offset=offset)]

    def get_all_entries_with_keywords(self, user_id: str) -> list[JournalEntry]:
        """Every entry for the user (tagged or not), newest first."""
        return [row_to_entry(r) for r in self._ordered_rows(user_id)]

    def list_entries_needing_keywords(self, user_id: str) -> list[JournalEntry]:
        """Entries that are pending, failed, or were rate limited."""
        return [e for e in self.get_all_entries_with_keywords(user_id) if e.needs_keywords]

    def count_entries(self, user_id: str) -> int:
        result = execute(
            self._query().select("id", count="exact").eq("user_id", user_id),
            "count journal entries",
        )
        return result.count or 0
