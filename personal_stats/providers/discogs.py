import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import requests

from personal_stats.config import require_env
from personal_stats.errors import InvalidUpstreamResponse, TransportFailure
from personal_stats.transformers import filter_discogs_resource

logger = logging.getLogger(__name__)

API_BASE = "https://api.discogs.com"
USER_AGENT = "MetricsApp/1.0"
PER_PAGE = 50


def with_token(resource_url: str, api_key: str) -> str:
    """Append the API token to a Discogs URL unless it already carries one."""
    if "token=" in resource_url:
        return resource_url
    separator = "&" if "?" in resource_url else "?"
    return f"{resource_url}{separator}token={api_key}"


def fetch_release_details(
    resource_url: str,
    release_id: str,
    session: Optional[requests.Session] = None,
) -> Optional[dict]:
    """Fetch the full release resource behind a collection entry.

    Returns None when Discogs answers with an error status or cannot be
    reached. A missing DISCOGS_API_KEY raises MissingCredential.
    """
    api_key = require_env("DISCOGS_API_KEY")
    url = with_token(resource_url, api_key)
    http = session or requests

    logger.debug("Fetching release resource for %s", release_id)
    try:
        resp = http.get(url, headers={"User-Agent": USER_AGENT}, timeout=30)
        if not resp.ok:
            logger.warning(
                "Failed to fetch release resource for %s: %s %s",
                release_id, resp.status_code, resp.reason,
            )
            return None
        data = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.error("Error fetching release resource for %s: %s", release_id, e)
        return None

    logger.debug("Successfully fetched release resource for %s", release_id)
    return data


def fetch_releases(session: Optional[requests.Session] = None) -> dict:
    """Every release in the user's collection, following all pages.

    The result keeps Discogs' {"pagination", "releases"} shape, with the
    pagination rewritten to describe a single page holding everything.
    """
    api_key = require_env("DISCOGS_API_KEY")
    username = require_env("DISCOGS_USERNAME")
    http = session or requests
    url = f"{API_BASE}/users/{username}/collection/folders/0/releases"

    releases = []
    page = 1
    while True:
        logger.info("Fetching Discogs releases page %d", page)
        try:
            resp = http.get(
                url,
                params={"token": api_key, "page": page, "per_page": PER_PAGE},
                headers={"User-Agent": USER_AGENT},
                timeout=30,
            )
        except requests.RequestException as e:
            raise TransportFailure(f"Discogs API request failed: {e}") from e
        if not resp.ok:
            raise TransportFailure(f"Discogs API error: {resp.status_code} {resp.reason}")

        try:
            body = resp.json()
            releases.extend(body["releases"])
            pagination = body["pagination"]
            more = pagination["page"] < pagination["pages"]
        except (ValueError, KeyError, TypeError) as e:
            raise InvalidUpstreamResponse("Invalid response from Discogs API") from e
        if not more:
            break
        page += 1

    return {
        "pagination": {
            "page": 1,
            "pages": 1,
            "per_page": len(releases),
            "items": len(releases),
            "urls": {},
        },
        "releases": releases,
    }


def fetch_releases_batch(
    releases: list[dict],
    session: Optional[requests.Session] = None,
    concurrency: int = 2,
    delay: float = 1.0,
) -> list[dict]:
    """Attach the trimmed release resource to each collection entry.

    Entries without a resource_url, or whose lookup fails, come back
    unchanged. Output order matches input order.
    """
    def enhance(indexed):
        index, release = indexed
        info = release.get("basic_information") or {}
        resource_url = info.get("resource_url")
        release_id = release.get("id") or info.get("id")
        if not resource_url:
            logger.warning("Release %s has no resource_url", release_id)
            return release
        if index > 0 and delay > 0:
            time.sleep(delay)
        details = fetch_release_details(resource_url, release_id, session=session)
        if details is None:
            return release
        return {**release, "resource": filter_discogs_resource(details)}

    if not releases:
        return []
    with ThreadPoolExecutor(max_workers=concurrency) as executor:
        enhanced = list(executor.map(enhance, enumerate(releases)))

    logger.info(
        "Batch fetch completed: %d/%d releases enhanced with resource data",
        sum(1 for r in enhanced if r.get("resource")), len(releases),
    )
    return enhanced
