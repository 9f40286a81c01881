"""Pydantic schemas for journal entries and keyword generation."""

from pydantic import BaseModel, Field

# Reserved keyword values that describe processing state rather than content
KEYWORD_ERROR = "error"
KEYWORD_RATE_LIMITED = "rate-limited"
SENTINEL_KEYWORDS = frozenset({KEYWORD_ERROR, KEYWORD_RATE_LIMITED})


class JournalEntry(BaseModel):
    """A single journal entry as stored for one user."""

    id: str
    text: str
    timestamp: str = ""
    date: str = ""
    keywords: list[str] | None = None
    user_id: str | None = None
    created_at: str | None = None

    @property
    def is_analyzed(self) -> bool:
        """True when the entry carries real tags (not pending, not a sentinel)."""
        return bool(self.keywords) and self.keywords[0] not in SENTINEL_KEYWORDS

    @property
    def needs_keywords(self) -> bool:
        """True when the entry is pending, failed, or waiting out a rate limit."""
        return not self.keywords or self.keywords[0] in SENTINEL_KEYWORDS


class CreatedEntry(BaseModel):
    id: str
    text: str
    timestamp: str


class AddEntriesResponse(BaseModel):
    message: str
    entries: list[CreatedEntry]
    count: int


class EntriesResponse(BaseModel):
    total: int
    entries: list[JournalEntry]


class DeleteEntryResponse(BaseModel):
    success: bool = True
    message: str = "Entry deleted successfully"


class GenerateKeywordsRequest(BaseModel):
    """Request body for keyword generation; fields are validated by the handler."""

    entryId: str | None = None
    text: str | None = None


class GenerateKeywordsResponse(BaseModel):
    success: bool = True
    keywords: list[str]
    entryId: str


class BackfillKeywordsResponse(BaseModel):
    queued: int = Field(..., description="Entries queued for keyword generation")
