"""
Score aggregation for a ranking run.

Invariant:
Records are appended in capped listing order and sorted exactly once, so
agencies with equal scores keep their listing order.
"""

from typing import List, Tuple

from .models import Agency, MetricSample, RankedResult, ScoreRecord


class ScoreAggregator:
    """Collects one ScoreRecord per agency and ranks them."""

    def __init__(self):
        self._records: List[ScoreRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> Tuple[ScoreRecord, ...]:
        """Records in insertion order, before ranking."""
        return tuple(self._records)

    def add(self, agency: Agency, sample: MetricSample, degraded: bool = False) -> ScoreRecord:
        record = ScoreRecord.from_sample(agency, sample, degraded=degraded)
        self._records.append(record)
        return record

    def ranked(self, cancelled: bool = False) -> RankedResult:
        # sorted() is stable, so ties keep insertion order
        ordered = sorted(self._records, key=lambda r: r.score, reverse=True)
        return RankedResult(records=tuple(ordered), cancelled=cancelled)
