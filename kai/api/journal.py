"""Journal API: entry capture, listing, deletion, keywords and chat."""

import logging
import re
import time
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from fastapi import APIRouter, BackgroundTasks, Depends, Form, Query

from kai.api.deps import (
    get_backfill_worker,
    get_chat_history_store,
    get_journal_store,
    get_llm_client,
    get_settings_store,
)
from kai.chains.answer_from_journal import answer_from_journal
from kai.chains.compose_answer import trim_history
from kai.chains.generate_keywords import generate_keywords_for_entry
from kai.core.auth_middleware import AuthContext, get_current_user
from kai.core.config import Settings, get_settings
from kai.core.errors import InvalidRequestError, KaiError, PersistenceError
from kai.core.llm import GenerationClient
from kai.core.logging import get_logger, log_with_context
from kai.core.schemas_chat import JournalChatRequest, JournalChatResponse
from kai.core.schemas_journal import (
    AddEntriesResponse,
    BackfillKeywordsResponse,
    CreatedEntry,
    DeleteEntryResponse,
    EntriesResponse,
    GenerateKeywordsRequest,
    GenerateKeywordsResponse,
)
from kai.db.chat_history import ChatHistoryStore
from kai.db.journal_entries import JournalEntryStore
from kai.db.user_settings import SettingsStore
from kai.services.keyword_backfill import KeywordBackfillWorker

logger = get_logger(__name__)

router = APIRouter(prefix="/journal")

# Blank-line boundaries in any newline convention
_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n|\r\n\s*\r\n|\r\s*\r")


def split_into_entries(text: str) -> list[str]:
    """Split submitted text on blank lines, dropping empty segments."""
    return [p.strip() for p in _PARAGRAPH_SPLIT.split(text) if p.strip()]


def _iso_utc(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@router.post("/add", response_model=AddEntriesResponse)
async def add_entries(
    text: str | None = Form(None),
    auth: AuthContext = Depends(get_current_user),
    store: JournalEntryStore = Depends(get_journal_store),
):
    """
    Save submitted text as one entry per blank-line separated paragraph.

    Each paragraph is saved independently; a failed save is logged and the
    rest of the batch continues. Keywords are generated by a follow-up call.
    """
    if not text or not text.strip():
        raise InvalidRequestError("Text is required")

    paragraphs = split_into_entries(text)
    if not paragraphs:
        raise InvalidRequestError("No valid content after splitting by double line breaks")

    base = datetime.now(timezone.utc)
    base_ms = int(base.timestamp() * 1000)
    created: list[CreatedEntry] = []

    for i, paragraph in enumerate(paragraphs):
        entry_id = f"{base_ms}-{i}-{uuid4().hex[:9]}"
        timestamp = _iso_utc(base + timedelta(seconds=i))
        try:
            store.add_entry(entry_id, paragraph, timestamp, auth.user_id)
        except KaiError as e:
            logger.error(f"Error saving entry {i}: {e}")
            continue
        created.append(CreatedEntry(id=entry_id, text=paragraph, timestamp=timestamp))

    if not created:
        raise PersistenceError("Failed to save any entries. Please try again.")

    noun = "entry" if len(created) == 1 else "entries"
    return AddEntriesResponse(
        message=f"Saved {len(created)} journal {noun}",
        entries=created,
        count=len(created),
    )


@router.get("/entries", response_model=EntriesResponse)
async def list_entries(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    auth: AuthContext = Depends(get_current_user),
    store: JournalEntryStore = Depends(get_journal_store),
):
    """List the user's entries, newest first."""
    entries = store.get_entries(auth.user_id, limit=limit, offset=offset)
    total = store.count_entries(auth.user_id)
    return EntriesResponse(total=total, entries=entries)


@router.delete("/delete", response_model=DeleteEntryResponse)
async def delete_entry(
    entryId: str | None = Query(None),
    auth: AuthContext = Depends(get_current_user),
    store: JournalEntryStore = Depends(get_journal_store),
):
    """Delete one entry after verifying the caller owns it."""
    if not entryId:
        raise InvalidRequestError("entryId parameter is required")
    store.delete_entry(entryId, auth.user_id)
    return DeleteEntryResponse()


@router.post("/generate-keywords", response_model=GenerateKeywordsResponse)
async def generate_keywords(
    request: GenerateKeywordsRequest,
    auth: AuthContext = Depends(get_current_user),
    store: JournalEntryStore = Depends(get_journal_store),
    client: GenerationClient = Depends(get_llm_client),
):
    """Generate and persist tags for one entry.

    A persistent rate limit surfaces as 429 so the caller can wait and retry.
    """
    if not request.entryId or not request.text:
        raise InvalidRequestError("entryId and text are required")

    store.get_entry(request.entryId, auth.user_id)
    keywords = await generate_keywords_for_entry(request.text, client)
    store.update_entry_keywords(request.entryId, keywords, auth.user_id)

    return GenerateKeywordsResponse(keywords=keywords, entryId=request.entryId)


@router.post("/backfill-keywords", response_model=BackfillKeywordsResponse)
async def backfill_keywords(
    background_tasks: BackgroundTasks,
    auth: AuthContext = Depends(get_current_user),
    worker: KeywordBackfillWorker = Depends(get_backfill_worker),
):
    """Queue every entry still needing keywords and process them after responding."""
    queued = worker.enqueue_pending_entries(auth.user_id)
    if queued:
        background_tasks.add_task(worker.drain)
    return BackfillKeywordsResponse(queued=queued)


@router.post("/chat", response_model=JournalChatResponse)
async def journal_chat(
    request: JournalChatRequest,
    auth: AuthContext = Depends(get_current_user),
    journal_store: JournalEntryStore = Depends(get_journal_store),
    chat_store: ChatHistoryStore = Depends(get_chat_history_store),
    settings_store: SettingsStore = Depends(get_settings_store),
    client: GenerationClient = Depends(get_llm_client),
    settings: Settings = Depends(get_settings),
):
    """Answer a question from the user's journal and record the exchange."""
    if not request.query:
        raise InvalidRequestError("Query is required")

    user_id = auth.user_id
    history = trim_history(request.conversation_history, settings.CHAT_HISTORY_WINDOW)
    log_with_context(
        logger,
        logging.INFO,
        "New chat request",
        user_id=user_id,
        query_length=len(request.query),
        history_items=len(history),
    )

    entries = journal_store.get_all_entries_with_keywords(user_id)

    try:
        custom_prompt = settings_store.get_chat_prompt(user_id)
    except KaiError as e:
        logger.warning(f"Could not load custom chat prompt, using default: {e}")
        custom_prompt = None

    start = time.monotonic()
    answer = await answer_from_journal(
        request.query,
        entries,
        client,
        conversation_history=history,
        custom_prompt=custom_prompt,
        max_candidates=settings.MAX_RETRIEVAL_CANDIDATES,
        fallback_limit=settings.RERANK_FALLBACK_LIMIT,
        max_entry_chars=settings.RERANK_ENTRY_CHARS,
        history_window=settings.CHAT_HISTORY_WINDOW,
    )
    log_with_context(
        logger,
        logging.INFO,
        "Chat answer ready",
        user_id=user_id,
        answer_length=len(answer.summary),
        sources=len(answer.sources),
        degraded=answer.degraded,
        duration_ms=int((time.monotonic() - start) * 1000),
    )

    try:
        chat_store.add_message(request.query, answer.summary, user_id, sources=answer.sources)
    except KaiError as e:
        logger.error(f"Failed to save chat history: {e}")

    return JournalChatResponse(
        summary=answer.summary,
        model_used=f"{settings.KAI_LLM_PROVIDER}-rag",
        sources=answer.sources,
    )
