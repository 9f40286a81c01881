"""Pydantic schemas for per-user settings."""

from typing import Any

from pydantic import BaseModel


class ChatPromptResponse(BaseModel):
    prompt: str | None = None
    default_prompt: str


class ChatPromptUpdate(BaseModel):
    # Left untyped so a non-string prompt reaches the handler and gets a 400
    prompt: Any = None


class SettingsUpdateResponse(BaseModel):
    success: bool = True
