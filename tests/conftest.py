"""
Pytest configuration and shared fixtures.
"""

import threading
import time
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest
import requests

from agencyrank.errors import MalformedResponseError
from agencyrank.logger import get_logger, reset_logger
from agencyrank.models import Agency


@pytest.fixture(autouse=True)
def quiet_logger():
    """Fresh global logger per test with console output disabled."""
    reset_logger()
    logger = get_logger(enable_console=False)
    yield logger
    reset_logger()


def no_sleep(seconds: float) -> None:
    pass


@pytest.fixture
def recorded_sleeps() -> List[float]:
    return []


@pytest.fixture
def recording_sleep(recorded_sleeps):
    return recorded_sleeps.append


class FakeClient:
    """
    Stand-in for MetricsClient.

    Responses per slug are either a value or a list consumed in order; an
    Exception instance in a response is raised instead of returned.
    """

    def __init__(
        self,
        agencies: Optional[List[Agency]] = None,
        word_counts: Optional[Dict[str, Any]] = None,
        change_counts: Optional[Dict[str, Any]] = None,
        listing_error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.agencies = agencies or []
        self.word_counts = dict(word_counts or {})
        self.change_counts = dict(change_counts or {})
        self.listing_error = listing_error
        self.delay = delay
        self.calls: List[tuple] = []
        self.events: List[tuple] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False
        self._lock = threading.Lock()

    def list_agencies(self) -> List[Agency]:
        self.calls.append(("list",))
        if self.listing_error is not None:
            raise self.listing_error
        return list(self.agencies)

    def _next(self, table: Dict[str, Any], slug: str, default: int):
        with self._lock:
            entry = table.get(slug, default)
            if isinstance(entry, list):
                value = entry.pop(0) if len(entry) > 1 else entry[0]
            else:
                value = entry
        if isinstance(value, Exception):
            raise value
        return value

    def _call(self, metric: str, table: Dict[str, Any], slug: str, default: int):
        with self._lock:
            self.calls.append((metric, slug))
            self.events.append(("start", slug))
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            return self._next(table, slug, default)
        finally:
            with self._lock:
                self.in_flight -= 1
                self.events.append(("end", slug))

    def fetch_word_count(self, slug: str) -> int:
        return self._call("word", self.word_counts, slug, 0)

    def fetch_change_count(self, slug: str) -> int:
        return self._call("change", self.change_counts, slug, 0)

    def requested_slugs(self) -> List[str]:
        return [c[1] for c in self.calls if c[0] != "list"]

    def close(self):
        self.closed = True


def make_agencies(*slugs: str) -> List[Agency]:
    return [Agency(slug=s, name=f"Agency {s.upper()}") for s in slugs]


@pytest.fixture
def malformed():
    return MalformedResponseError("bad payload")


def make_response(status: int = 200, payload: Any = None, headers: Optional[dict] = None, json_error: bool = False):
    """Build a mock requests.Response."""
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status
    resp.headers = headers or {}
    if json_error:
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status} Error", response=resp
        )
    else:
        resp.raise_for_status.return_value = None
    return resp


@pytest.fixture
def mock_session():
    session = MagicMock(spec=requests.Session)
    return session


@pytest.fixture
def agencies_payload() -> Dict[str, Any]:
    """Sample eCFR agency listing."""
    return {
        "agencies": [
            {
                "name": "Environmental Protection Agency",
                "short_name": "EPA",
                "display_name": "Environmental Protection Agency",
                "slug": "environmental-protection-agency",
            },
            {
                "name": "Agriculture Department",
                "short_name": "USDA",
                "display_name": "Department of Agriculture",
                "slug": "agriculture-department",
            },
            {
                "name": "Commerce Department",
                "short_name": None,
                "slug": "commerce-department",
            },
        ]
    }
