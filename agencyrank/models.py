"""Value types shared by the client, scheduler and aggregator."""

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Tuple


@dataclass(frozen=True)
class Agency:
    """An agency as returned by the eCFR agency listing."""

    slug: str
    name: str
    display_name: Optional[str] = None
    short_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.name


@dataclass(frozen=True)
class MetricSample:
    word_count: int
    change_count: int

    def __post_init__(self):
        if self.word_count < 0 or self.change_count < 0:
            raise ValueError(
                f"Metric counts must be non-negative: {self.word_count}, {self.change_count}"
            )


@dataclass(frozen=True)
class ScoreRecord:
    """
    One ranked agency.

    Build through from_sample() so that score is always the sum of the two
    counts, including when either count was zero-filled.
    """

    slug: str
    display_name: str
    word_count: int
    change_count: int
    score: int
    degraded: bool = False

    @classmethod
    def from_sample(
        cls, agency: Agency, sample: MetricSample, degraded: bool = False
    ) -> "ScoreRecord":
        return cls(
            slug=agency.slug,
            display_name=agency.label,
            word_count=sample.word_count,
            change_count=sample.change_count,
            score=sample.word_count + sample.change_count,
            degraded=degraded,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "agency": self.display_name,
            "word_count": self.word_count,
            "change_count": self.change_count,
            "score": self.score,
            "degraded": self.degraded,
        }


@dataclass(frozen=True)
class RankedResult:
    """
    Ranking from a run that obtained the agency listing.

    cancelled is set when the caller stopped the run early; records then
    hold only the agencies processed before the cancel.
    """

    records: Tuple[ScoreRecord, ...] = ()
    cancelled: bool = False

    @property
    def degraded(self) -> bool:
        return False

    def __iter__(self) -> Iterator[ScoreRecord]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __getitem__(self, index: int) -> ScoreRecord:
        return self.records[index]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "degraded": self.degraded,
            "cancelled": self.cancelled,
            "records": [r.to_dict() for r in self.records],
        }


@dataclass(frozen=True)
class DegradedFallback(RankedResult):
    """Canned ranking returned when the agency listing itself failed."""

    reason: str = ""

    @property
    def degraded(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason
        return data


@dataclass(frozen=True)
class ChangePoint:
    date: str
    count: int
