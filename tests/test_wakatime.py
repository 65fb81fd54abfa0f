from datetime import date
from unittest.mock import patch

import pytest
import requests
import responses

from personal_stats.config import WakaTimeConfig
from personal_stats.errors import InvalidUpstreamResponse, MissingCredential, TransportFailure
from personal_stats.providers.wakatime import API_BASE, WakaTimeClient

BASE_URL = f"{API_BASE}/users/test-user"


@responses.activate
def test_get_summaries_success(wakatime_config, no_retry):
    responses.add(
        responses.GET,
        f"{BASE_URL}/summaries",
        json={"data": [{"grand_total": {"total_seconds": 3600}}]},
        status=200,
    )

    client = WakaTimeClient(wakatime_config, summaries_retry=no_retry)
    result = client.get_summaries(start="2026-10-12", end="2026-10-19")

    assert result.ok is True
    assert result.data == [{"grand_total": {"total_seconds": 3600}}]
    assert result.error is None

    request = responses.calls[0].request
    assert request.headers["Authorization"] == "Basic dGVzdC1rZXk="
    assert "start=2026-10-12" in request.url
    assert "end=2026-10-19" in request.url


@responses.activate
def test_get_summaries_reports_failure_instead_of_raising(wakatime_config, no_retry):
    responses.add(
        responses.GET,
        f"{BASE_URL}/summaries",
        body=requests.ConnectionError("connection reset"),
    )

    client = WakaTimeClient(wakatime_config, summaries_retry=no_retry)
    result = client.get_summaries(start="2026-10-12", end="2026-10-19")

    assert result.ok is False
    assert result.data is None
    assert "connection reset" in result.error


@responses.activate
@patch("personal_stats.utils.retry.time.sleep")
def test_get_summaries_retries_on_error(mock_sleep, wakatime_config):
    url = f"{BASE_URL}/summaries"
    responses.add(responses.GET, url, json={"error": "busy"}, status=500)
    responses.add(responses.GET, url, json={"data": []}, status=200)

    result = WakaTimeClient(wakatime_config).get_summaries(start="a", end="b")

    assert result.ok is True
    assert result.data == []
    assert len(responses.calls) == 2
    mock_sleep.assert_called_once_with(5.0)


def test_missing_access_token_raises():
    client = WakaTimeClient(WakaTimeConfig(username="test-user", access_token=""))

    with pytest.raises(MissingCredential, match="An access token is required"):
        client.get_summaries(start="a", end="b")


@responses.activate
@patch("personal_stats.utils.retry.time.sleep")
def test_get_stats_waits_while_pending(mock_sleep, wakatime_config):
    url = f"{BASE_URL}/stats/last_7_days"
    responses.add(responses.GET, url, json={"data": {"status": "pending_update"}}, status=202)
    responses.add(responses.GET, url, json={"data": {"status": "ok", "total_seconds": 10}}, status=200)

    data = WakaTimeClient(wakatime_config).get_stats("last_7_days")

    assert data == {"status": "ok", "total_seconds": 10}
    assert len(responses.calls) == 2


@responses.activate
def test_get_stats_raises_transport_failure(wakatime_config, no_retry):
    responses.add(responses.GET, f"{BASE_URL}/stats/last_year", json={}, status=401)

    client = WakaTimeClient(wakatime_config, stats_retry=no_retry)
    with pytest.raises(TransportFailure, match="last_year"):
        client.get_stats("last_year")


@responses.activate
def test_get_daily_summary_returns_raw_response(wakatime_config, no_retry):
    responses.add(responses.GET, f"{BASE_URL}/summaries", json={"data": []}, status=404)

    client = WakaTimeClient(wakatime_config, summaries_retry=no_retry)
    resp = client.get_daily_summary(date(2026, 10, 18))

    assert resp.status_code == 404
    assert "start=10%2F18%2F2026" in responses.calls[0].request.url


@responses.activate
def test_get_summaries_reports_non_object_body_as_failure(wakatime_config, no_retry):
    responses.add(responses.GET, f"{BASE_URL}/summaries", body="null", status=200, content_type="application/json")

    client = WakaTimeClient(wakatime_config, summaries_retry=no_retry)
    result = client.get_summaries(start="2026-10-12", end="2026-10-19")

    assert result.ok is False
    assert result.data is None
    assert "NoneType body" in result.error


@responses.activate
def test_get_stats_rejects_non_object_body(wakatime_config, no_retry):
    responses.add(responses.GET, f"{BASE_URL}/stats/last_7_days", json=["unexpected"], status=200)

    client = WakaTimeClient(wakatime_config, stats_retry=no_retry)
    with pytest.raises(InvalidUpstreamResponse, match="list body"):
        client.get_stats("last_7_days")
