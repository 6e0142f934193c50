"""HTTP client for the eCFR admin and search endpoints."""

from typing import Any, Dict, List, Optional

import requests

from .config import DEFAULT_BASE_URL
from .errors import MalformedResponseError, RateLimitedError, TransientError
from .logger import StructuredLogger, get_logger
from .models import Agency, ChangePoint
from .retry import should_retry_http_status
from .schema import parse_daily_counts, parse_word_count, validate_agency

AGENCIES_PATH = "/api/admin/v1/agencies.json"
COUNT_PATH = "/api/search/v1/count"
DAILY_COUNTS_PATH = "/api/search/v1/counts/daily"

DEFAULT_TIMEOUT = 15


def _retry_after(resp: Optional[requests.Response]) -> Optional[float]:
    if resp is None:
        return None
    raw = resp.headers.get("Retry-After")
    try:
        return float(raw) if raw is not None else None
    except ValueError:
        return None


class MetricsClient:
    """
    Issues the three upstream calls a ranking run needs.

    Every failure surfaces as an UpstreamError subclass:
    RateLimitedError for 429, TransientError for timeouts, connection
    problems and other error statuses, MalformedResponseError for payloads
    that do not have an accepted shape.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger or get_logger()

    def __enter__(self) -> "MetricsClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.session.close()

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None, slug: Optional[str] = None) -> Any:
        """Fetch path and decode JSON with standardized error handling.

        Raises:
            RateLimitedError: On HTTP 429
            TransientError: On any other HTTP error, timeout, or request failure
            MalformedResponseError: If the body is not JSON
        """
        url = f"{self.base_url}{path}"
        self.logger.record_api_call()
        try:
            resp = self.session.get(url, params=params, timeout=self.timeout)
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            if status is not None and should_retry_http_status(status):
                self.logger.debug("Upstream rate limited", url=url, slug=slug)
                raise RateLimitedError(
                    f"Rate limited (429): {url}",
                    retry_after=_retry_after(e.response),
                    endpoint=path,
                    slug=slug,
                )
            self.logger.debug("Upstream request failed", url=url, slug=slug, status=status)
            raise TransientError(
                f"Request failed ({status}): {url}", endpoint=path, slug=slug, status=status
            )
        except requests.exceptions.Timeout:
            self.logger.debug("Upstream request timed out", url=url, slug=slug)
            raise TransientError(
                f"Request timed out after {self.timeout}s: {url}", endpoint=path, slug=slug
            )
        except requests.exceptions.RequestException as e:
            self.logger.debug("Upstream request error", url=url, slug=slug, error=str(e))
            raise TransientError(f"Request error: {e}", endpoint=path, slug=slug)

        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"Response is not valid JSON: {url}", endpoint=path, slug=slug, status=resp.status_code
            ) from e

    @staticmethod
    def _search_params(slug: Optional[str] = None, query: Optional[str] = None) -> Dict[str, Any]:
        # "*" matches every section; no slug searches across all agencies
        params: Dict[str, Any] = {"query": query or "*"}
        if slug:
            params["agency_slugs[]"] = slug
        return params

    def list_agencies(self) -> List[Agency]:
        """
        List agencies in upstream order.

        Invalid entries are skipped and duplicate slugs after the first are
        dropped, both with a warning. A body without an 'agencies' list is
        malformed.
        """
        payload = self._get_json(AGENCIES_PATH)
        entries = payload.get("agencies") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            raise MalformedResponseError(
                "Agency listing has no 'agencies' list", endpoint=AGENCIES_PATH
            )

        seen = set()
        agencies: List[Agency] = []
        for index, entry in enumerate(entries):
            errors = validate_agency(entry)
            if errors:
                self.logger.warning("Skipping invalid agency entry", index=index, errors=errors)
                continue
            slug = entry["slug"].strip()
            if slug in seen:
                self.logger.warning("Skipping duplicate agency slug", index=index, slug=slug)
                continue
            seen.add(slug)
            agencies.append(
                Agency(
                    slug=slug,
                    name=entry["name"].strip(),
                    display_name=entry.get("display_name") or None,
                    short_name=entry.get("short_name") or None,
                )
            )
        return agencies

    def fetch_word_count(self, slug: str) -> int:
        """Match-all search count for one agency."""
        payload = self._get_json(COUNT_PATH, params=self._search_params(slug), slug=slug)
        try:
            return parse_word_count(payload)
        except ValueError as e:
            raise MalformedResponseError(str(e), endpoint=COUNT_PATH, slug=slug) from e

    def fetch_change_count(self, slug: str) -> int:
        """Sum of the agency's daily change counts."""
        return sum(point.count for point in self.fetch_daily_series(slug))

    def fetch_daily_series(
        self,
        slug: Optional[str] = None,
        start: Optional[str] = None,
        end: Optional[str] = None,
        query: Optional[str] = None,
    ) -> List[ChangePoint]:
        """
        Daily change counts, sorted by date.

        Args:
            slug: Agency slug; omit to count across all agencies
            start: Optional ISO date, inclusive lower bound on last modification
            end: Optional ISO date, inclusive upper bound on last modification
            query: Search term; omit to match everything
        """
        params = self._search_params(slug, query)
        if start:
            params["last_modified_on_or_after"] = start
        if end:
            params["last_modified_on_or_before"] = end

        payload = self._get_json(DAILY_COUNTS_PATH, params=params, slug=slug)
        try:
            dates = parse_daily_counts(payload)
        except ValueError as e:
            raise MalformedResponseError(str(e), endpoint=DAILY_COUNTS_PATH, slug=slug) from e
        return [ChangePoint(date=day, count=count) for day, count in sorted(dates.items())]
