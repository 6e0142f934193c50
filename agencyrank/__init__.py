"""Composite bureaucracy ranking of federal agencies from the eCFR API."""

__version__ = "0.1.0"

from .engine import compute_ranking  # noqa: E402
from .models import DegradedFallback, RankedResult, ScoreRecord  # noqa: E402

__all__ = ["compute_ranking", "DegradedFallback", "RankedResult", "ScoreRecord", "__version__"]
