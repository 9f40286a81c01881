"""FastAPI dependency providers for stores and services.

Handlers receive every collaborator through ``Depends``; tests swap them with
``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends

from kai.core.config import Settings, get_settings
from kai.core.llm import GenerationClient, get_generation_client
from kai.db.chat_history import ChatHistoryStore
from kai.db.journal_entries import JournalEntryStore
from kai.db.supabase_client import get_supabase
from kai.db.user_settings import SettingsStore
from kai.services.keyword_backfill import KeywordBackfillWorker


def get_journal_store(settings: Settings = Depends(get_settings)) -> JournalEntryStore:
    return JournalEntryStore(get_supabase(), table_prefix=settings.KAI_TABLE_PREFIX)


def get_chat_history_store(settings: Settings = Depends(get_settings)) -> ChatHistoryStore:
    return ChatHistoryStore(get_supabase(), table_prefix=settings.KAI_TABLE_PREFIX)


def get_settings_store(settings: Settings = Depends(get_settings)) -> SettingsStore:
    return SettingsStore(get_supabase(), table_prefix=settings.KAI_TABLE_PREFIX)


def get_llm_client(settings: Settings = Depends(get_settings)) -> GenerationClient:
    return get_generation_client(settings)


@lru_cache(maxsize=1)
def get_backfill_worker() -> KeywordBackfillWorker:
    """
    Get the process-wide keyword backfill worker (cached singleton).

    Every request shares its queue, so concurrent backfill requests never
    process the same entry twice or run generation calls in parallel.
    """
    settings = get_settings()
    return KeywordBackfillWorker(
        JournalEntryStore(get_supabase(), table_prefix=settings.KAI_TABLE_PREFIX),
        get_generation_client(settings),
        delay_seconds=settings.KEYWORD_BACKFILL_DELAY_SECONDS,
        rate_limit_pause_seconds=settings.KEYWORD_RATE_LIMIT_PAUSE_SECONDS,
        concurrency=settings.KEYWORD_BACKFILL_CONCURRENCY,
    )
