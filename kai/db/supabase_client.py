"""Supabase client initialization."""

from functools import lru_cache
from typing import Any, Callable

from supabase import Client, create_client

from kai.core.config import get_settings
from kai.core.errors import PersistenceError


@lru_cache(maxsize=1)
def get_supabase() -> Client:
    """
    Get Supabase client instance (cached singleton).

    Returns:
        Supabase client configured with service role key

    Raises:
        RuntimeError: If client initialization fails
    """
    try:
        settings = get_settings()
        client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        return client
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e


def table_name(prefix: str, name: str) -> str:
    return f"{prefix}{name}"


def execute(query: Any, action: str) -> Any:
    """
    Execute a PostgREST query, converting failures to PersistenceError.

    Args:
        query: Built query (anything with ``.execute()``)
        action: Short description used in the error message

    Returns:
        The query response
    """
    try:
        return query.execute()
    except Exception as e:
        raise PersistenceError(f"Failed to {action}: {e}") from e


# PostgREST caps every response at this many rows (Supabase max_rows default)
PAGE_SIZE = 1000


def fetch_all_rows(build_query: Callable[[], Any], page_size: int = PAGE_SIZE) -> list[dict[str, Any]]:
    """
    Read every row of a query one ``.range()`` page at a time.

    Args:
        build_query: Returns a fresh filtered, ordered query for each page
        page_size: Rows requested per page

    Returns:
        All rows in query order; stops at the first short page
    """
    rows: list[dict[str, Any]] = []
    start = 0
    while True:
        page = build_query().range(start, start + page_size - 1).execute().data or []
        rows.extend(page)
        if len(page) < page_size:
            return rows
        start += page_size
