"""Database operations for the chat history table."""

from datetime import datetime, timezone
from typing import Any

from postgrest.exceptions import APIError
from supabase import Client

from kai.core.errors import PersistenceError
from kai.core.logging import get_logger
from kai.core.schemas_chat import ChatMessage
from kai.db.supabase_client import PAGE_SIZE, execute, fetch_all_rows, table_name

logger = get_logger(__name__)

# Upper bound on rows removed by a single delete request
DELETE_BATCH_SIZE = 500


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def row_to_message(row: dict[str, Any]) -> ChatMessage:
    return ChatMessage(
        id=str(row["id"]) if row.get("id") is not None else None,
        question=row.get("question") or "",
        answer=row.get("answer") or "",
        timestamp=row.get("timestamp") or "",
        created_at=row.get("created_at") or row.get("timestamp"),
        sources=row.get("sources") or [],
    )


class ChatHistoryStore:
    """Append-only question/answer log per user."""

    def __init__(self, client: Client, table_prefix: str = "my_kb_"):
        self.client = client
        self.table = table_name(table_prefix, "chat_history")

    def _query(self):
        return self.client.table(self.table)

    def add_message(
        self,
        question: str,
        answer: str,
        user_id: str,
        timestamp: str | None = None,
        sources: list[str] | None = None,
    ) -> str:
        """
        Append one exchange.

        Args:
            question: User question (stored trimmed)
            answer: Kai's answer (stored trimmed)
            user_id: Owning user
            timestamp: Optional ISO timestamp (defaults to now, UTC)
            sources: Optional ids of the entries the answer drew on

        Returns:
            The new message id
        """
        now = _utc_now_iso()
        row: dict[str, Any] = {
            "user_id": user_id,
            "question": question.strip(),
            "answer": answer.strip(),
            "timestamp": timestamp or now,
            "created_at": now,
        }
        if sources:
            row["sources"] = sources

        result = execute(self._query().insert(row), "save chat message")
        if not result.data:
            raise PersistenceError("No data returned from chat message insert")
        return str(result.data[0]["id"])

    def get_recent_messages(
        self,
        user_id: str,
        limit: int = 20,
        before: str | None = None,
    ) -> list[ChatMessage]:
        """
        Page backwards through a user's history.

        Args:
            user_id: Owning user
            limit: Page size
            before: Optional ``created_at`` cursor; only older messages are returned

        Returns:
            Up to ``limit`` messages, oldest first
        """
        query = self._query().select("*").eq("user_id", user_id)
        if before:
            query = query.lt("created_at", before)
        query = query.order("created_at", desc=True).limit(limit)

        try:
            rows = query.execute().data or []
        except APIError as e:
            logger.warning(f"Ordered chat history query failed, falling back to in-memory sort: {e}")
            try:
                all_rows = fetch_all_rows(
                    lambda: self._query().select("*").eq("user_id", user_id).order("id")
                )
            except Exception as e:
                raise PersistenceError(f"Failed to load chat history: {e}") from e
            rows = [
                r for r in all_rows
                if not before or (r.get("created_at") or "") < before
            ]
            rows.sort(key=lambda r: r.get("created_at") or "", reverse=True)
            rows = rows[:limit]
        except Exception as e:
            raise PersistenceError(f"Failed to load chat history: {e}") from e

        return [row_to_message(r) for r in reversed(rows)]

    def count_messages(self, user_id: str) -> int:
        result = execute(
            self._query().select("id", count="exact").eq("user_id", user_id),
            "count chat messages",
        )
        return result.count or 0

    def clear_history(self, user_id: str) -> int:
        """
        Delete every message owned by the user.

        Ids are read one page at a time and deleted in batches until a
        read comes back empty.

        Returns:
            Number of rows actually deleted
        """
        deleted = 0
        batches = 0
        while True:
            result = execute(
                self._query().select("id").eq("user_id", user_id).range(0, PAGE_SIZE - 1),
                "load chat history ids",
            )
            ids = [row["id"] for row in (result.data or [])]
            if not ids:
                break

            removed = 0
            for start in range(0, len(ids), DELETE_BATCH_SIZE):
                batch = ids[start : start + DELETE_BATCH_SIZE]
                response = execute(
                    self._query().delete().eq("user_id", user_id).in_("id", batch),
                    "clear chat history",
                )
                removed += len(response.data or [])
                batches += 1
            deleted += removed

            if not removed:
                logger.warning(f"Chat history delete removed nothing, {len(ids)} rows left for {user_id}")
                break

        logger.info(f"Cleared {deleted} chat messages in {batches} batches")
        return deleted
