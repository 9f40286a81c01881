#!/usr/bin/env python3
"""
Backfill keywords for journal entries that are pending, failed or rate limited.

Processes one user's entries sequentially through the keyword backfill worker,
pausing between generation calls to stay under the API rate limit.

Usage:
    python scripts/backfill_keywords.py --user-id USER_ID [--delay 7] [--pause 40]

Options:
    --user-id: User whose entries should be processed (required)
    --delay: Seconds between successive generation calls (default: settings)
    --pause: Seconds to wait before the single retry after a 429 (default: settings)
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from kai.core.config import get_settings
from kai.core.llm import get_generation_client
from kai.core.logging import get_logger
from kai.db.journal_entries import JournalEntryStore
from kai.db.supabase_client import get_supabase
from kai.services.keyword_backfill import KeywordBackfillWorker

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Backfill journal entry keywords")
    parser.add_argument("--user-id", required=True, help="User id to backfill")
    parser.add_argument("--delay", type=float, default=None, help="Seconds between calls")
    parser.add_argument("--pause", type=float, default=None, help="Seconds to wait after a 429")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = JournalEntryStore(get_supabase(), table_prefix=settings.KAI_TABLE_PREFIX)
    worker = KeywordBackfillWorker(
        store,
        get_generation_client(settings),
        delay_seconds=args.delay if args.delay is not None else settings.KEYWORD_BACKFILL_DELAY_SECONDS,
        rate_limit_pause_seconds=(
            args.pause if args.pause is not None else settings.KEYWORD_RATE_LIMIT_PAUSE_SECONDS
        ),
        concurrency=settings.KEYWORD_BACKFILL_CONCURRENCY,
    )

    report = await worker.backfill_user(args.user_id)
    logger.info(
        f"Backfill complete for {args.user_id}: tagged={report.tagged} failed={report.failed} "
        f"rate_limited={report.rate_limited} skipped={report.skipped}"
    )
    return 0 if report.failed == 0 and report.rate_limited == 0 else 1


def main() -> None:
    sys.exit(asyncio.run(run(parse_args())))


if __name__ == "__main__":
    main()
