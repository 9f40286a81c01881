"""Generation API clients.

Two providers share one contract, ``generate(prompt, temperature) -> str``:
Gemini ``generateContent`` over plain HTTP (default) and Anthropic Messages.
Both retry transient failures and surface a persistent 429 as
``GenerationRateLimitError`` so callers can schedule their own retry.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Protocol

import httpx
from anthropic import (
    APIConnectionError,
    APIStatusError,
    AsyncAnthropic,
    InternalServerError,
    RateLimitError,
)

from kai.core.config import Settings, get_settings
from kai.core.errors import GenerationError, GenerationRateLimitError
from kai.core.logging import get_logger

logger = get_logger(__name__)

RATE_LIMIT_MESSAGE = "Rate limit exceeded. Please wait a minute and try again."
_RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"

Sleep = Callable[[float], Awaitable[Any]]


class GenerationClient(Protocol):
    """Anything that turns a prompt into generated text."""

    model_name: str

    async def generate(self, prompt: str, temperature: float = 0.2) -> str: ...


class _RateLimited(Exception):
    def __init__(self, retry_after: float | None = None):
        super().__init__("429")
        self.retry_after = retry_after


def parse_retry_delay(body: Any) -> float | None:
    """
    Read the server-suggested retry delay from a Gemini 429 error body.

    Args:
        body: Decoded JSON error body (any shape)

    Returns:
        Delay in seconds, or None if the body carries no RetryInfo
    """
    if not isinstance(body, dict):
        return None
    details = (body.get("error") or {}).get("details") or []
    for detail in details:
        if isinstance(detail, dict) and detail.get("@type") == _RETRY_INFO_TYPE:
            raw = str(detail.get("retryDelay", "")).strip().rstrip("s")
            try:
                return float(raw)
            except ValueError:
                return None
    return None


class GeminiClient:
    """Google Gemini ``generateContent`` client over httpx."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-2.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        max_retries: int = 3,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.api_key = api_key
        self.model_name = model
        self.base_url = base_url.rstrip("/")
        self.max_retries = max_retries
        self.timeout = timeout
        self._transport = transport
        self._sleep = sleep

    @property
    def url(self) -> str:
        return f"{self.base_url}/models/{self.model_name}:generateContent"

    async def generate(self, prompt: str, temperature: float = 0.2) -> str:
        """
        Generate text for a prompt, retrying rate limits and transient errors.

        Args:
            prompt: Full prompt text
            temperature: Sampling temperature

        Returns:
            Generated text, stripped

        Raises:
            GenerationRateLimitError: If every attempt was rate limited
            GenerationError: If the last attempt failed for any other reason
        """
        last_error: GenerationError | None = None

        for attempt in range(self.max_retries):
            is_last = attempt == self.max_retries - 1
            try:
                return await self._generate_once(prompt, temperature)
            except _RateLimited as e:
                if is_last:
                    raise GenerationRateLimitError(RATE_LIMIT_MESSAGE) from None
                delay = e.retry_after if e.retry_after is not None else float(2**attempt)
                logger.warning(
                    f"Rate limit hit, waiting {delay}s before retry "
                    f"{attempt + 1}/{self.max_retries}"
                )
                await self._sleep(delay)
            except GenerationError as e:
                last_error = e
                if is_last:
                    raise
                logger.warning(f"Gemini call failed on attempt {attempt + 1}: {e}")
                await self._sleep(float(attempt + 1))

        raise last_error or GenerationError("Failed to call Gemini API after retries")

    async def _generate_once(self, prompt: str, temperature: float) -> str:
        payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": temperature},
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, params={"key": self.api_key}, json=payload)
        except httpx.HTTPError as e:
            raise GenerationError(f"Gemini API request failed: {e}") from e

        if response.status_code == 429:
            try:
                body = response.json()
            except ValueError:
                body = None
            raise _RateLimited(parse_retry_delay(body))

        if response.is_error:
            raise GenerationError(f"Gemini API error: {response.status_code} - {response.text}")

        try:
            data = response.json()
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationError("Invalid response from Gemini API") from e

        return str(text).strip()


class AnthropicClient:
    """Anthropic Messages client with the same retry contract."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-haiku-4-5-20251001",
        max_retries: int = 3,
        max_tokens: int = 2048,
        client: AsyncAnthropic | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.model_name = model
        self.max_retries = max_retries
        self.max_tokens = max_tokens
        self._client = client or AsyncAnthropic(api_key=api_key)
        self._sleep = sleep

    async def generate(self, prompt: str, temperature: float = 0.2) -> str:
        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            is_last = attempt == self.max_retries - 1
            try:
                response = await self._client.messages.create(
                    model=self.model_name,
                    max_tokens=self.max_tokens,
                    temperature=temperature,
                    messages=[{"role": "user", "content": prompt}],
                )
            except RateLimitError:
                if is_last:
                    raise GenerationRateLimitError(RATE_LIMIT_MESSAGE) from None
                delay = float(2**attempt)
                logger.warning(f"Rate limit hit, waiting {delay}s before retry {attempt + 1}")
                await self._sleep(delay)
                continue
            except (APIConnectionError, InternalServerError) as e:
                last_error = e
                if is_last:
                    raise GenerationError(f"Anthropic API request failed: {e}") from e
                logger.warning(f"Transient error on attempt {attempt + 1}: {e}")
                await self._sleep(float(attempt + 1))
                continue
            except APIStatusError as e:
                raise GenerationError(f"Anthropic API error: {e.status_code} - {e.message}") from e

            if not response.content:
                raise GenerationError("Invalid response from Anthropic API")
            text = "".join(
                block.text for block in response.content if getattr(block, "type", None) == "text"
            )
            return text.strip()

        raise GenerationError(f"Failed to call Anthropic API after retries: {last_error}")


def get_generation_client(settings: Settings | None = None) -> GenerationClient:
    """
    Build the configured generation client.

    Args:
        settings: Settings override (defaults to cached settings)

    Returns:
        GeminiClient or AnthropicClient

    Raises:
        GenerationError: If the provider is unknown or its API key is missing
    """
    settings = settings or get_settings()
    provider = settings.KAI_LLM_PROVIDER.lower()

    if provider == "gemini":
        if not settings.GOOGLE_AI_API_KEY:
            raise GenerationError("GOOGLE_AI_API_KEY environment variable is required")
        return GeminiClient(
            api_key=settings.GOOGLE_AI_API_KEY,
            model=settings.GEMINI_MODEL,
            base_url=settings.GEMINI_BASE_URL,
            max_retries=settings.LLM_MAX_RETRIES,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )

    if provider == "anthropic":
        if not settings.ANTHROPIC_API_KEY:
            raise GenerationError("ANTHROPIC_API_KEY environment variable is required")
        return AnthropicClient(
            api_key=settings.ANTHROPIC_API_KEY,
            model=settings.ANTHROPIC_MODEL,
            max_retries=settings.LLM_MAX_RETRIES,
        )

    raise GenerationError(f"Unknown KAI_LLM_PROVIDER: {settings.KAI_LLM_PROVIDER}")
