"""Chat history API: paginated read and bulk clear."""

from fastapi import APIRouter, Depends, Query

from kai.api.deps import get_chat_history_store
from kai.core.auth_middleware import AuthContext, get_current_user
from kai.core.schemas_chat import ChatHistoryResponse, ClearHistoryResponse
from kai.db.chat_history import ChatHistoryStore

router = APIRouter(prefix="/chat")


@router.get("/history", response_model=ChatHistoryResponse)
async def get_chat_history(
    limit: int = Query(10, ge=1, le=200),
    before: str | None = Query(None, description="created_at cursor from a previous page"),
    auth: AuthContext = Depends(get_current_user),
    store: ChatHistoryStore = Depends(get_chat_history_store),
):
    """Return one page of history, oldest first, older than ``before`` if given."""
    messages = store.get_recent_messages(auth.user_id, limit=limit, before=before)
    total = store.count_messages(auth.user_id)
    return ChatHistoryResponse(
        messages=messages,
        total=total,
        hasMore=len(messages) == limit,
    )


@router.delete("/history", response_model=ClearHistoryResponse)
async def clear_chat_history(
    auth: AuthContext = Depends(get_current_user),
    store: ChatHistoryStore = Depends(get_chat_history_store),
):
    deleted = store.clear_history(auth.user_id)
    return ClearHistoryResponse(message=f"Cleared {deleted} chat messages", deleted=deleted)
