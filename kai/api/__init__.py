"""API router for Kai endpoints."""

from fastapi import APIRouter

from kai.api import chat_history, journal, settings

router = APIRouter()

# Journal capture, keywords and chat
router.include_router(journal.router, tags=["journal"])

# Chat history pagination and clearing
router.include_router(chat_history.router, tags=["chat"])

# Per-user settings
router.include_router(settings.router, tags=["settings"])
