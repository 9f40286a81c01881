"""Pytest configuration and fixtures."""

import os
from dataclasses import dataclass

import pytest

# Module-level so settings resolve during collection-time imports too
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("GOOGLE_AI_API_KEY", "test-google-key")
os.environ.setdefault("KAI_ENV", "test")


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["GOOGLE_AI_API_KEY"] = "test-google-key"
    os.environ["KAI_ENV"] = "test"


@dataclass
class FakeBackends:
    journal: object
    chat: object
    settings_store: object
    llm: object


@pytest.fixture
def fakes():
    """In-memory stores and a scripted generation client."""
    from tests.fakes.fake_db import (
        FakeChatHistoryStore,
        FakeGenerationClient,
        FakeJournalStore,
        FakeSettingsStore,
    )

    return FakeBackends(
        journal=FakeJournalStore(),
        chat=FakeChatHistoryStore(),
        settings_store=FakeSettingsStore(),
        llm=FakeGenerationClient(),
    )


@pytest.fixture
def backfill_worker(fakes):
    """Keyword backfill worker shared by every request of one test."""
    from kai.services.keyword_backfill import KeywordBackfillWorker

    async def no_sleep(seconds):
        return None

    return KeywordBackfillWorker(fakes.journal, fakes.llm, sleep=no_sleep)


@pytest.fixture
def api_client(fakes, backfill_worker):
    """TestClient authenticated as ``user-1`` with every backend faked."""
    from fastapi.testclient import TestClient

    from kai.api.deps import (
        get_backfill_worker,
        get_chat_history_store,
        get_journal_store,
        get_llm_client,
        get_settings_store,
    )
    from kai.core.auth_middleware import AuthContext, VerifiedUser, get_current_user
    from kai.core.config import Settings, get_settings
    from kai.main import app

    test_settings = Settings(
        SUPABASE_URL="https://test.supabase.co",
        SUPABASE_SERVICE_ROLE_KEY="test-key",
        GOOGLE_AI_API_KEY="test-google-key",
        KAI_ENV="test",
    )

    app.dependency_overrides[get_current_user] = lambda: AuthContext(
        VerifiedUser(uid="user-1", email="user@example.com"), "test-token"
    )
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_journal_store] = lambda: fakes.journal
    app.dependency_overrides[get_chat_history_store] = lambda: fakes.chat
    app.dependency_overrides[get_settings_store] = lambda: fakes.settings_store
    app.dependency_overrides[get_llm_client] = lambda: fakes.llm
    app.dependency_overrides[get_backfill_worker] = lambda: backfill_worker

    yield TestClient(app)

    app.dependency_overrides.clear()
