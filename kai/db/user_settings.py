"""Database operations for the user settings table."""

from datetime import datetime, timezone

from supabase import Client

from kai.db.supabase_client import execute, table_name


class SettingsStore:
    """One settings row per user, written with upsert."""

    def __init__(self, client: Client, table_prefix: str = "my_kb_"):
        self.client = client
        self.table = table_name(table_prefix, "user_settings")

    def get_chat_prompt(self, user_id: str) -> str | None:
        """Return the user's custom chat prompt, or None when unset or reset."""
        result = execute(
            self.client.table(self.table).select("chat_prompt").eq("user_id", user_id).limit(1),
            "load chat prompt",
        )
        if not result.data:
            return None
        return result.data[0].get("chat_prompt") or None

    def _upsert_prompt(self, user_id: str, prompt: str | None, action: str) -> None:
        row = {
            "user_id": user_id,
            "chat_prompt": prompt,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        execute(
            self.client.table(self.table).upsert(row, on_conflict="user_id"),
            action,
        )

    def set_chat_prompt(self, user_id: str, prompt: str) -> None:
        self._upsert_prompt(user_id, prompt, "save chat prompt")

    def reset_chat_prompt(self, user_id: str) -> None:
        self._upsert_prompt(user_id, None, "reset chat prompt")
