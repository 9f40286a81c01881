"""Pydantic schemas for journal chat and chat history."""

from pydantic import BaseModel


class ConversationTurn(BaseModel):
    """One prior question/answer exchange supplied by the client."""

    question: str
    answer: str


class JournalChatRequest(BaseModel):
    query: str | None = None
    conversation_history: list[ConversationTurn] = []


class JournalChatResponse(BaseModel):
    summary: str
    model_used: str
    sources: list[str] = []


class ChatMessage(BaseModel):
    """A persisted question/answer pair."""

    id: str | None = None
    question: str
    answer: str
    timestamp: str = ""
    created_at: str | None = None
    sources: list[str] = []


class ChatHistoryResponse(BaseModel):
    messages: list[ChatMessage]
    total: int
    hasMore: bool


class ClearHistoryResponse(BaseModel):
    message: str
    deleted: int
