"""Settings API: custom chat prompt."""

from fastapi import APIRouter, Depends

from kai.api.deps import get_settings_store
from kai.chains.compose_answer import DEFAULT_CHAT_PROMPT
from kai.core.auth_middleware import AuthContext, get_current_user
from kai.core.errors import InvalidRequestError
from kai.core.schemas_settings import ChatPromptResponse, ChatPromptUpdate, SettingsUpdateResponse
from kai.db.user_settings import SettingsStore

router = APIRouter(prefix="/settings")


@router.get("/chat-prompt", response_model=ChatPromptResponse)
async def get_chat_prompt(
    auth: AuthContext = Depends(get_current_user),
    store: SettingsStore = Depends(get_settings_store),
):
    """Return the custom prompt (None when unset) and the built-in default."""
    prompt = store.get_chat_prompt(auth.user_id)
    return ChatPromptResponse(prompt=prompt, default_prompt=DEFAULT_CHAT_PROMPT)


@router.post("/chat-prompt", response_model=SettingsUpdateResponse)
async def set_chat_prompt(
    body: ChatPromptUpdate,
    auth: AuthContext = Depends(get_current_user),
    store: SettingsStore = Depends(get_settings_store),
):
    if not isinstance(body.prompt, str):
        raise InvalidRequestError("Prompt must be a string")
    store.set_chat_prompt(auth.user_id, body.prompt)
    return SettingsUpdateResponse()


@router.delete("/chat-prompt", response_model=SettingsUpdateResponse)
async def reset_chat_prompt(
    auth: AuthContext = Depends(get_current_user),
    store: SettingsStore = Depends(get_settings_store),
):
    """Drop the custom prompt; chat falls back to the default template."""
    store.reset_chat_prompt(auth.user_id)
    return SettingsUpdateResponse()
