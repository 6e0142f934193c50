"""
Chunked fan-out of metric fetches.

Agencies are processed in consecutive chunks of `concurrency` agencies.
Within a chunk both metrics of every agency are fetched concurrently, so at
most 2 * concurrency requests are in flight. A chunk fully settles, retries
included, before the next one is submitted.
"""

import math
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from .aggregate import ScoreAggregator
from .client import MetricsClient
from .errors import UpstreamError
from .logger import StructuredLogger, get_logger
from .models import Agency, MetricSample
from .retry import retry

DEFAULT_CONCURRENCY = 5
DEFAULT_CAP = 50


def chunked(items: Sequence[Agency], width: int) -> Iterator[List[Agency]]:
    """Yield consecutive chunks of at most width items, preserving order."""
    if width < 1:
        raise ValueError(f"Chunk width must be at least 1, got {width}")
    for start in range(0, len(items), width):
        yield list(items[start:start + width])


def chunk_count(available: int, cap: int, width: int) -> int:
    """Number of sequential chunks a run over `available` agencies takes."""
    return math.ceil(min(available, cap) / width)


class BatchScheduler:
    """Drives chunk-sequential, intra-chunk-parallel metric fetches."""

    def __init__(
        self,
        client: MetricsClient,
        concurrency: int = DEFAULT_CONCURRENCY,
        cap: int = DEFAULT_CAP,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[StructuredLogger] = None,
    ):
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        if cap < 0:
            raise ValueError(f"cap must be non-negative, got {cap}")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.client = client
        self.concurrency = concurrency
        self.cap = cap
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.sleep = sleep
        self.logger = logger or get_logger()

    def select(self, agencies: Sequence[Agency]) -> List[Agency]:
        """First `cap` agencies in upstream order."""
        return list(agencies[:self.cap])

    def run(
        self,
        agencies: Sequence[Agency],
        aggregator: ScoreAggregator,
        cancel: Optional[threading.Event] = None,
    ) -> int:
        """
        Fetch metrics for the capped listing and feed the aggregator.

        Args:
            agencies: Full agency listing in upstream order
            aggregator: Receives one record per processed agency, in order
            cancel: Once set, no further chunks are started; the chunk
                already running settles normally

        Returns:
            Number of chunks processed
        """
        selected = self.select(agencies)
        processed = 0

        if not selected:
            return processed

        with ThreadPoolExecutor(
            max_workers=2 * self.concurrency, thread_name_prefix="agencyrank"
        ) as pool:
            for index, chunk in enumerate(chunked(selected, self.concurrency)):
                if cancel is not None and cancel.is_set():
                    self.logger.warning(
                        "Run cancelled, not starting remaining chunks",
                        next_chunk=index,
                        agencies_processed=len(aggregator),
                    )
                    break

                self.logger.debug("Processing chunk", chunk=index, size=len(chunk))
                pending: List[Tuple[Agency, Future, Future]] = [
                    (
                        agency,
                        pool.submit(self._fetch_metric, self.client.fetch_word_count, agency, "word_count"),
                        pool.submit(self._fetch_metric, self.client.fetch_change_count, agency, "change_count"),
                    )
                    for agency in chunk
                ]
                wait([f for _, word, change in pending for f in (word, change)])

                # Append in listing order regardless of completion order
                for agency, word_future, change_future in pending:
                    word_count, word_degraded = word_future.result()
                    change_count, change_degraded = change_future.result()
                    aggregator.add(
                        agency,
                        MetricSample(word_count=word_count, change_count=change_count),
                        degraded=word_degraded or change_degraded,
                    )
                processed += 1

        return processed

    def _fetch_metric(
        self, fetch: Callable[[str], int], agency: Agency, metric: str
    ) -> Tuple[int, bool]:
        """Run one fetch under the retry policy; degrade to 0 on failure."""
        self.logger.record_fetch_attempt()

        def on_retry(attempt, exc, delay):
            self.logger.record_rate_limit_retry()
            self.logger.warning(
                "Rate limited, backing off",
                slug=agency.slug,
                metric=metric,
                attempt=attempt,
                delay=delay,
                retry_after=exc.retry_after,
            )

        try:
            value = retry(
                lambda: fetch(agency.slug),
                max_attempts=self.max_attempts,
                base_delay=self.base_delay,
                sleep=self.sleep,
                on_retry=on_retry,
            )
        except UpstreamError as e:
            self.logger.record_fetch_degraded(type(e).__name__)
            self.logger.warning(
                "Metric fetch failed, using 0",
                slug=agency.slug,
                metric=metric,
                error_type=type(e).__name__,
                error=str(e),
            )
            return 0, True

        self.logger.record_fetch_success()
        return value, False
