"""
Ranking run orchestration.

A run lists agencies, fans out metric fetches chunk by chunk and sorts once.
It always ends in a terminal state: SORTED with a complete RankedResult,
CANCELLED with the processed prefix flagged as cancelled, or FALLBACK with
the canned DegradedFallback.
"""

import threading
import time
from enum import Enum
from typing import Callable, List, Optional, Union

from .aggregate import ScoreAggregator
from .client import MetricsClient
from .config import Settings
from .errors import TopLevelFailure, UpstreamError
from .fallback import degraded_fallback
from .logger import StructuredLogger, get_logger
from .models import Agency, DegradedFallback, RankedResult
from .scheduler import BatchScheduler, chunk_count


class RunState(str, Enum):
    IDLE = "idle"
    LISTING = "listing"
    FAILED = "failed"
    FALLBACK = "fallback"
    LISTED = "listed"
    PROCESSING = "processing"
    SORTED = "sorted"
    CANCELLED = "cancelled"


TERMINAL_STATES = {RunState.SORTED, RunState.CANCELLED, RunState.FALLBACK}


class RankingRun:
    """One ranking run. Not reusable; build a new one per call."""

    def __init__(
        self,
        client: MetricsClient,
        scheduler: BatchScheduler,
        logger: Optional[StructuredLogger] = None,
    ):
        self.client = client
        self.scheduler = scheduler
        self.logger = logger or get_logger()
        self.state = RunState.IDLE
        self.chunks_processed = 0

    def _transition(self, state: RunState) -> None:
        self.logger.debug("Run state change", old=self.state.value, new=state.value)
        self.state = state

    def _list_agencies(self) -> List[Agency]:
        try:
            return self.client.list_agencies()
        except UpstreamError as e:
            raise TopLevelFailure(e) from e

    def execute(self, cancel: Optional[threading.Event] = None) -> Union[RankedResult, DegradedFallback]:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Run already finished (state={self.state.value})")
        if self.state is not RunState.IDLE:
            raise RuntimeError(f"Run already in progress (state={self.state.value})")

        self._transition(RunState.LISTING)
        try:
            agencies = self._list_agencies()
        except TopLevelFailure as e:
            self._transition(RunState.FAILED)
            self.logger.record_fallback()
            self.logger.error(
                "Agency listing failed, returning fallback ranking",
                error_type=type(e.cause).__name__,
                error=str(e.cause),
            )
            self._transition(RunState.FALLBACK)
            return degraded_fallback()

        self._transition(RunState.LISTED)
        self.logger.info(
            "Agencies listed",
            available=len(agencies),
            cap=self.scheduler.cap,
            concurrency=self.scheduler.concurrency,
        )

        self._transition(RunState.PROCESSING)
        aggregator = ScoreAggregator()
        self.chunks_processed = self.scheduler.run(agencies, aggregator, cancel=cancel)

        expected = chunk_count(len(agencies), self.scheduler.cap, self.scheduler.concurrency)
        cancelled = self.chunks_processed < expected
        result = aggregator.ranked(cancelled=cancelled)
        self._transition(RunState.CANCELLED if cancelled else RunState.SORTED)
        self.logger.info(
            "Ranking cancelled" if cancelled else "Ranking complete",
            agencies=len(result),
            chunks=self.chunks_processed,
            degraded_records=sum(1 for r in result if r.degraded),
        )
        return result


def compute_ranking(
    cap: Optional[int] = None,
    concurrency: Optional[int] = None,
    *,
    client: Optional[MetricsClient] = None,
    settings: Optional[Settings] = None,
    cancel: Optional[threading.Event] = None,
    sleep: Callable[[float], None] = time.sleep,
    logger: Optional[StructuredLogger] = None,
) -> Union[RankedResult, DegradedFallback]:
    """
    Rank agencies by word count plus change count.

    Upstream failures never raise: per-agency failures become zero metrics
    and a failed agency listing returns the degraded fallback.

    Args:
        cap: Maximum agencies to rank (default from settings, 50)
        concurrency: Agencies fetched concurrently per chunk (default 5)
        client: MetricsClient to use; one is built from settings otherwise
        settings: Runtime settings (defaults if omitted)
        cancel: Optional event; once set, no further chunks are started
        sleep: Delay function used between rate-limit retries

    Raises:
        ValueError: If cap is negative or concurrency is below 1
    """
    settings = settings or Settings()
    logger = logger or get_logger()
    scheduler_client = client or MetricsClient(
        base_url=settings.base_url, timeout=settings.timeout, logger=logger
    )

    try:
        scheduler = BatchScheduler(
            scheduler_client,
            concurrency=settings.concurrency if concurrency is None else concurrency,
            cap=settings.cap if cap is None else cap,
            max_attempts=settings.max_attempts,
            base_delay=settings.base_delay,
            sleep=sleep,
            logger=logger,
        )
        run = RankingRun(scheduler_client, scheduler, logger=logger)
        return run.execute(cancel=cancel)
    finally:
        # Only close sessions this call opened
        if client is None:
            scheduler_client.close()
