"""Fixed ranking shown when the agency listing cannot be fetched."""

from .models import Agency, DegradedFallback, MetricSample, ScoreRecord

FALLBACK_SAMPLES = (
    (Agency(slug="epa", name="Environmental Protection Agency"), MetricSample(500000, 120000)),
    (Agency(slug="usda", name="Department of Agriculture"), MetricSample(420000, 95000)),
    (Agency(slug="doc", name="Department of Commerce"), MetricSample(380000, 110000)),
)

DEFAULT_REASON = "Could not compute bureaucracy ranking. Showing sample data."


def degraded_fallback(reason: str = DEFAULT_REASON) -> DegradedFallback:
    """Return the canned three-agency ranking with the degraded flag set."""
    records = tuple(
        ScoreRecord.from_sample(agency, sample, degraded=True)
        for agency, sample in FALLBACK_SAMPLES
    )
    return DegradedFallback(records=records, reason=reason)
