import os
from unittest.mock import patch

import pytest
import requests
import responses
from responses import matchers

from personal_stats.errors import InvalidUpstreamResponse, MissingCredential, TransportFailure
from personal_stats.providers.discogs import (
    fetch_release_details,
    fetch_releases,
    fetch_releases_batch,
    with_token,
)

RESOURCE_URL = "https://api.discogs.com/releases/249504"
COLLECTION_URL = "https://api.discogs.com/users/collector/collection/folders/0/releases"
DISCOGS_ENV = {"DISCOGS_API_KEY": "test-key", "DISCOGS_USERNAME": "collector"}


@patch.dict(os.environ, {}, clear=True)
def test_missing_api_key():
    with pytest.raises(MissingCredential) as exc:
        fetch_release_details(RESOURCE_URL, "249504")
    assert str(exc.value) == "Missing required environment variable: DISCOGS_API_KEY"


def test_with_token():
    assert with_token(RESOURCE_URL, "k") == f"{RESOURCE_URL}?token=k"
    assert with_token(f"{RESOURCE_URL}?curr=USD", "k") == f"{RESOURCE_URL}?curr=USD&token=k"
    assert with_token(f"{RESOURCE_URL}?token=abc", "k") == f"{RESOURCE_URL}?token=abc"


@responses.activate
@patch.dict(os.environ, {"DISCOGS_API_KEY": "test-key"})
def test_fetch_success():
    responses.add(responses.GET, RESOURCE_URL, json={"id": 249504, "title": "Never Gonna"}, status=200)

    data = fetch_release_details(RESOURCE_URL, "249504")

    assert data == {"id": 249504, "title": "Never Gonna"}
    request = responses.calls[0].request
    assert request.url == f"{RESOURCE_URL}?token=test-key"
    assert request.headers["User-Agent"] == "MetricsApp/1.0"


@responses.activate
@patch.dict(os.environ, {"DISCOGS_API_KEY": "test-key"})
def test_fetch_error_status_returns_none():
    responses.add(responses.GET, RESOURCE_URL, json={"message": "Release not found."}, status=404)

    assert fetch_release_details(RESOURCE_URL, "249504") is None


@responses.activate
@patch.dict(os.environ, {"DISCOGS_API_KEY": "test-key"})
def test_fetch_transport_error_returns_none():
    responses.add(responses.GET, RESOURCE_URL, body=requests.ConnectionError("timed out"))

    assert fetch_release_details(RESOURCE_URL, "249504") is None


def _page(page, pages, releases):
    return {"pagination": {"page": page, "pages": pages, "items": 3}, "releases": releases}


@responses.activate
@patch.dict(os.environ, DISCOGS_ENV)
def test_fetch_releases_follows_every_page():
    for page, releases in ((1, [{"id": 1}, {"id": 2}]), (2, [{"id": 3}])):
        responses.add(
            responses.GET,
            COLLECTION_URL,
            json=_page(page, 2, releases),
            status=200,
            match=[matchers.query_param_matcher({"token": "test-key", "page": str(page), "per_page": "50"})],
        )

    result = fetch_releases()

    assert [r["id"] for r in result["releases"]] == [1, 2, 3]
    assert result["pagination"] == {"page": 1, "pages": 1, "per_page": 3, "items": 3, "urls": {}}
    assert responses.calls[0].request.headers["User-Agent"] == "MetricsApp/1.0"


@patch.dict(os.environ, {"DISCOGS_API_KEY": "test-key"}, clear=True)
def test_fetch_releases_requires_username():
    with pytest.raises(MissingCredential, match="DISCOGS_USERNAME"):
        fetch_releases()


@responses.activate
@patch.dict(os.environ, DISCOGS_ENV)
def test_fetch_releases_error_status():
    responses.add(responses.GET, COLLECTION_URL, json={"message": "nope"}, status=401)

    with pytest.raises(TransportFailure, match="^Discogs API error: 401"):
        fetch_releases()


@responses.activate
@patch.dict(os.environ, DISCOGS_ENV)
def test_fetch_releases_malformed_body():
    responses.add(responses.GET, COLLECTION_URL, json={"releases": []}, status=200)

    with pytest.raises(InvalidUpstreamResponse):
        fetch_releases()


@responses.activate
@patch("personal_stats.providers.discogs.time.sleep")
@patch.dict(os.environ, DISCOGS_ENV)
def test_fetch_releases_batch_attaches_trimmed_resource(mock_sleep):
    responses.add(
        responses.GET, RESOURCE_URL, json={"id": 249504, "title": "Never Gonna", "images": []}, status=200,
    )
    responses.add(responses.GET, "https://api.discogs.com/releases/2", json={}, status=404)
    releases = [
        {"id": 249504, "basic_information": {"resource_url": RESOURCE_URL}},
        {"id": 2, "basic_information": {"resource_url": "https://api.discogs.com/releases/2"}},
        {"id": 3, "basic_information": {}},
    ]

    enhanced = fetch_releases_batch(releases)

    assert enhanced[0]["resource"] == {"id": 249504, "title": "Never Gonna"}
    assert enhanced[1] == releases[1]
    assert enhanced[2] == releases[2]
    mock_sleep.assert_called_with(1.0)
