"""Sequential keyword backfill for entries that are pending, failed or rate limited.

Jobs sit in a queue drained by a fixed number of workers (one by default).
Each worker waits ``delay_seconds`` between successive generation calls to
stay under the generation API's request-rate ceiling. A 429 marks the entry
``rate-limited``, pauses for ``rate_limit_pause_seconds`` and retries once.
The API shares one worker per process: an entry is never queued twice while
queued or in flight, and only one drain runs at a time. There is no
cancellation: a drain runs until the queue is empty.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from kai.chains.generate_keywords import generate_keywords_for_entry
from kai.core.errors import GenerationRateLimitError, KaiError
from kai.core.llm import GenerationClient
from kai.core.logging import get_logger
from kai.core.schemas_journal import KEYWORD_ERROR, KEYWORD_RATE_LIMITED
from kai.db.journal_entries import JournalEntryStore

logger = get_logger(__name__)


@dataclass
class KeywordJob:
    entry_id: str
    text: str
    user_id: str


@dataclass
class BackfillReport:
    processed: int = 0
    tagged: int = 0
    failed: int = 0
    rate_limited: int = 0
    skipped: int = 0


class KeywordBackfillWorker:
    """Queue plus worker pool for keyword generation."""

    def __init__(
        self,
        store: JournalEntryStore,
        client: GenerationClient,
        delay_seconds: float = 7.0,
        rate_limit_pause_seconds: float = 40.0,
        concurrency: int = 1,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.store = store
        self.client = client
        self.delay_seconds = delay_seconds
        self.rate_limit_pause_seconds = rate_limit_pause_seconds
        self.concurrency = max(1, concurrency)
        self._sleep = sleep
        self._queue: asyncio.Queue[KeywordJob] = asyncio.Queue()
        # Entry ids queued or in flight
        self._tracked: set[str] = set()
        self._draining = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def draining(self) -> bool:
        return self._draining

    def enqueue(self, job: KeywordJob) -> bool:
        """Queue a job unless its entry is already queued or in flight."""
        if job.entry_id in self._tracked:
            return False
        self._tracked.add(job.entry_id)
        self._queue.put_nowait(job)
        return True

    def enqueue_pending_entries(self, user_id: str) -> int:
        """
        Queue every entry of the user that still needs keywords.

        Returns:
            Number of jobs newly queued
        """
        entries = self.store.list_entries_needing_keywords(user_id)
        queued = sum(
            1
            for entry in entries
            if self.enqueue(KeywordJob(entry_id=entry.id, text=entry.text, user_id=user_id))
        )
        logger.info(
            f"Queued {queued} entries for keyword generation "
            f"({len(entries) - queued} already pending)"
        )
        return queued

    async def backfill_user(self, user_id: str) -> BackfillReport:
        self.enqueue_pending_entries(user_id)
        return await self.drain()

    async def drain(self) -> BackfillReport:
        """
        Run the workers until the queue is empty.

        Only one drain runs at a time; a call made while one is running
        returns an empty report and its jobs are picked up by the running drain.
        """
        report = BackfillReport()
        if self._draining:
            logger.info(f"Keyword backfill already running, {self.pending} jobs pending")
            return report

        self._draining = True
        try:
            rounds = 0
            while True:
                # Jobs queued after the workers went idle start another round
                await asyncio.gather(
                    *(self._work(report, pace_first=rounds > 0) for _ in range(self.concurrency))
                )
                rounds += 1
                if self._queue.empty():
                    break
        finally:
            self._draining = False

        logger.info(
            f"Keyword backfill finished: processed={report.processed} tagged={report.tagged} "
            f"failed={report.failed} rate_limited={report.rate_limited} skipped={report.skipped}"
        )
        return report

    async def _work(self, report: BackfillReport, pace_first: bool = False) -> None:
        made_call = pace_first
        while True:
            try:
                job = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                called = await self._process(job, report, pace=made_call)
                made_call = made_call or called
            finally:
                self._tracked.discard(job.entry_id)
                self._queue.task_done()

    async def _process(self, job: KeywordJob, report: BackfillReport, pace: bool) -> bool:
        """Handle one job. Returns True if the generation API was called."""
        try:
            entry = self.store.get_entry(job.entry_id, job.user_id)
        except KaiError as e:
            logger.info(f"Skipping entry {job.entry_id}: {e}")
            report.skipped += 1
            return False

        if not entry.needs_keywords:
            report.skipped += 1
            return False

        if pace:
            await self._sleep(self.delay_seconds)

        report.processed += 1
        try:
            keywords = await generate_keywords_for_entry(job.text, self.client)
        except GenerationRateLimitError:
            logger.warning(
                f"Rate limit hit for entry {job.entry_id}, pausing "
                f"{self.rate_limit_pause_seconds}s before one retry"
            )
            self._save(job, [KEYWORD_RATE_LIMITED])
            await self._sleep(self.rate_limit_pause_seconds)
            try:
                keywords = await generate_keywords_for_entry(job.text, self.client)
            except GenerationRateLimitError:
                report.rate_limited += 1
                return True

        self._save(job, keywords)
        if keywords and keywords[0] != KEYWORD_ERROR:
            report.tagged += 1
        else:
            report.failed += 1
        return True

    def _save(self, job: KeywordJob, keywords: list[str]) -> None:
        try:
            self.store.update_entry_keywords(job.entry_id, keywords, job.user_id)
        except KaiError as e:
            logger.error(f"Failed to save keywords for entry {job.entry_id}: {e}")
