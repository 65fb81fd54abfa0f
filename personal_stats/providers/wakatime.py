import logging
from datetime import date
from typing import Any, Optional

import requests

from personal_stats.config import WakaTimeConfig
from personal_stats.errors import InvalidUpstreamResponse, MissingCredential, TransportFailure
from personal_stats.providers.base import FetchResult
from personal_stats.utils.retry import RetryPolicy, retry_on_error, retry_while_pending

logger = logging.getLogger(__name__)

API_BASE = "https://wakatime.com/api/v1"
# Query dates for the summaries endpoint
SUMMARY_DATE_FORMAT = "%m/%d/%Y"


def response_data(resp: requests.Response) -> Any:
    """The `data` member of a WakaTime JSON body.

    Raises InvalidUpstreamResponse when the body is not a JSON object.
    """
    try:
        body = resp.json()
    except ValueError as e:
        raise InvalidUpstreamResponse(f"WakaTime returned a non-JSON body: {e}") from e
    if not isinstance(body, dict):
        raise InvalidUpstreamResponse(
            f"WakaTime returned a {type(body).__name__} body instead of an object"
        )
    return body.get("data")


class WakaTimeClient:
    def __init__(
        self,
        config: WakaTimeConfig,
        session: Optional[requests.Session] = None,
        summaries_retry: RetryPolicy = retry_on_error,
        stats_retry: RetryPolicy = retry_while_pending,
    ):
        self.config = config
        self.session = session or requests.Session()
        self.summaries_retry = summaries_retry
        self.stats_retry = stats_retry

    @property
    def base_url(self) -> str:
        return f"{API_BASE}/users/{self.config.username or 'current'}"

    def _headers(self) -> dict:
        if not self.config.access_token:
            raise MissingCredential("An access token is required to call the WakaTime API.")
        return {"Authorization": f"Basic {self.config.access_token}"}

    def _get(self, path: str, params: Optional[dict] = None) -> requests.Response:
        return self.session.get(
            f"{self.base_url}{path}",
            params=params,
            headers=self._headers(),
            timeout=30,
        )

    def _get_ok(self, path: str, params: Optional[dict] = None) -> requests.Response:
        resp = self._get(path, params)
        resp.raise_for_status()
        return resp

    def get_summaries(self, start: str, end: str) -> FetchResult:
        """Fetch coding summaries between two dates.

        Never raises for request failures: the outcome is reported through
        the returned FetchResult. Only a missing access token raises.
        """
        self._headers()
        logger.debug("Fetching WakaTime summaries %s..%s", start, end)
        try:
            resp = self.summaries_retry.call(
                self._get_ok, "/summaries", {"start": start, "end": end},
            )
            summaries = response_data(resp) or []
        except (requests.RequestException, InvalidUpstreamResponse) as e:
            logger.error("WakaTime summaries request failed: %s", e)
            return FetchResult.failure(str(e))
        return FetchResult.success(summaries)

    def get_stats(self, range_name: str) -> dict:
        """Fetch the stats for one named range, waiting out pending updates."""
        try:
            resp = self.stats_retry.call(self._get_ok, f"/stats/{range_name}")
        except requests.RequestException as e:
            raise TransportFailure(f"WakaTime stats request for {range_name} failed: {e}") from e
        data = response_data(resp)
        logger.info(
            "Fetched WakaTime stats for %s (status: %s)",
            range_name, data.get("status", "unknown") if isinstance(data, dict) else "unknown",
        )
        return data

    def get_daily_summary(self, day: date) -> requests.Response:
        """Fetch the summary for a single day, returning the raw response."""
        day_str = day.strftime(SUMMARY_DATE_FORMAT)
        try:
            return self.summaries_retry.call(
                self._get, "/summaries", {"start": day_str, "end": day_str},
            )
        except requests.RequestException as e:
            raise TransportFailure(f"WakaTime summary request for {day_str} failed: {e}") from e
