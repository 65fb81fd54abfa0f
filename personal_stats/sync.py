"""Jobs that pull provider data and publish it to the document store.

Every job takes a SyncContext, fans its provider calls out over a thread
pool, and writes one document per range or key. A failed fetch only costs
its own range; a failed write raises and stops the writes that follow it.
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional
from zoneinfo import ZoneInfo

import requests
from google.cloud import firestore, storage

from personal_stats.config import AppConfig
from personal_stats.errors import MissingMedia, TransportFailure, WriteFailure
from personal_stats.providers import discogs, flickr, github
from personal_stats.providers.base import FetchResult
from personal_stats.providers.cloud_storage import MediaStore
from personal_stats.providers.wakatime import SUMMARY_DATE_FORMAT, WakaTimeClient, response_data
from personal_stats.store import (
    COLLECTION_DISCOGS,
    COLLECTION_FLICKR,
    COLLECTION_STATS,
    COLLECTION_SUMMARIES,
    SERVER_TIMESTAMP,
    DocumentStore,
)
from personal_stats.transformers import to_discogs_destination_path, transform_discogs_release

logger = logging.getLogger(__name__)

STATS_RANGES = ("last_7_days", "last_30_days", "last_6_months", "last_year")
SUMMARY_RANGE_DAYS = {"last_7_days": 7, "last_30_days": 30, "last_90_days": 90}
YMD_FORMAT = "%Y-%m-%d"
MEDIA_UPLOAD_CONCURRENCY = 10


@dataclass(frozen=True)
class StatsRange:
    name: str
    start: Optional[str] = None
    end: Optional[str] = None


@dataclass
class SyncContext:
    config: AppConfig
    store: DocumentStore
    wakatime: WakaTimeClient
    media: Optional[MediaStore] = None
    session: Optional[requests.Session] = None

    @classmethod
    def from_config(cls, config: AppConfig) -> "SyncContext":
        """Context backed by real Firestore and Cloud Storage clients."""
        return cls(
            config=config,
            store=DocumentStore(firestore.Client()),
            wakatime=WakaTimeClient(config.wakatime),
            media=MediaStore(storage.Client(), config.storage.images_bucket),
        )

    def today(self) -> date:
        return datetime.now(ZoneInfo(self.config.timezone)).date()


def summary_ranges(today: date) -> list[StatsRange]:
    return [
        StatsRange(
            name=name,
            start=(today - timedelta(days=days)).strftime(YMD_FORMAT),
            end=today.strftime(YMD_FORMAT),
        )
        for name, days in SUMMARY_RANGE_DAYS.items()
    ]


def _fan_out(func: Callable, items: Iterable) -> list:
    """Run `func` over `items` concurrently, keeping input order."""
    items = list(items)
    if not items:
        return []
    with ThreadPoolExecutor(max_workers=len(items)) as executor:
        return list(executor.map(func, items))


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def _fetch_stats(context: SyncContext) -> list[FetchResult]:
    return _fan_out(
        lambda name: FetchResult.capture(context.wakatime.get_stats, name),
        STATS_RANGES,
    )


def sync_all_stats(context: SyncContext) -> list[dict]:
    """Fetch every stats range and replace its `stats/{range}` document.

    Returns [{"name", "value"}] in range order. A range whose fetch failed
    has value None and is not written.
    """
    outcomes = _fetch_stats(context)

    results = []
    for name, outcome in zip(STATS_RANGES, outcomes):
        if not outcome.ok:
            logger.error("Failed fetching %s stats from WakaTime: %s", name, outcome.error)
        results.append({"name": name, "value": outcome.data})

    for result in results:
        if result["value"] is None:
            continue
        context.store.set_document(
            COLLECTION_STATS,
            result["name"],
            {"timestamp": _epoch_ms(), "data": result["value"]},
        )

    logger.info(
        "Completed syncing stats: %s",
        [r["name"] for r in results if r["value"] is not None],
    )
    return results


def fetch_all_stats(context: SyncContext) -> dict:
    """Live stats for every range, keyed by range name. Nothing is stored."""
    outcomes = _fetch_stats(context)
    stats = {}
    for name, outcome in zip(STATS_RANGES, outcomes):
        if not outcome.ok:
            logger.warning("Could not fetch %s stats: %s", name, outcome.error)
        stats[name] = outcome.data
    return stats


def load_published_stats(context: SyncContext) -> dict:
    """Stats as last published by sync_all_stats, keyed by range name."""
    published = {}
    for name in STATS_RANGES:
        doc = context.store.get_document(COLLECTION_STATS, name) or {}
        published[name] = doc.get("data")
    return published


def sync_all_summaries(context: SyncContext, today: Optional[date] = None) -> dict:
    """Fetch each summary range and replace its `summaries/{range}` document.

    Failed ranges are logged and skipped. The returned dict carries a
    per-range status list next to the overall success flag.
    """
    ranges = summary_ranges(today or context.today())
    outcomes = _fan_out(
        lambda r: context.wakatime.get_summaries(start=r.start, end=r.end),
        ranges,
    )

    statuses = []
    updated = []
    for stats_range, outcome in zip(ranges, outcomes):
        statuses.append({"name": stats_range.name, "ok": outcome.ok, "error": outcome.error})
        if not outcome.ok:
            logger.error(
                "Failed fetching %s data from WakaTime: %s", stats_range.name, outcome.error,
            )
            continue
        context.store.set_document(
            COLLECTION_SUMMARIES,
            stats_range.name,
            {
                "name": stats_range.name,
                "summaries": outcome.data,
                "timestamp": SERVER_TIMESTAMP,
            },
        )
        updated.append(stats_range.name)

    logger.info("Completed syncing summaries. Updated docs: %s", updated)
    return {"success": True, "ranges": statuses}


def sync_yesterdays_code_summary(context: SyncContext, today: Optional[date] = None) -> dict:
    """Store yesterday's raw WakaTime summary under `summaries/MMDDYYYY`.

    If that write fails, an {"error", "date"} document is written in its
    place and a failure result is returned.
    """
    yesterday = (today or context.today()) - timedelta(days=1)
    label = yesterday.strftime(SUMMARY_DATE_FORMAT)
    doc_id = label.replace("/", "")

    resp = context.wakatime.get_daily_summary(yesterday)
    if resp.status_code >= 400:
        raise TransportFailure(f"HTTP Error: {resp.status_code}")
    data = response_data(resp)

    try:
        context.store.set_document(COLLECTION_SUMMARIES, doc_id, {"raw": data})
    except WriteFailure as e:
        logger.error("Could not store summary for %s: %s", label, e)
        context.store.set_document(COLLECTION_SUMMARIES, doc_id, {"error": str(e), "date": label})
        return {"date": label, "result": "failure"}

    logger.info("Stored code summary for %s", label)
    return {"reference": doc_id, "result": "success"}


def get_latest_repositories(context: SyncContext) -> list[dict]:
    return github.get_latest_repositories(context.config.github, session=context.session)


def sync_flickr_data(context: SyncContext) -> dict:
    """Publish recent Flickr photos as the Flickr widget content."""
    user_id = os.environ.get("FLICKR_USER_ID", "")
    try:
        response = flickr.fetch_photos(session=context.session)
        context.store.set_document(
            COLLECTION_FLICKR,
            "last-response",
            {"response": response, "fetchedAt": SERVER_TIMESTAMP},
        )

        photo_count = response.get("total")
        metrics = []
        if photo_count:
            metrics.append({"displayName": "Photos", "id": "photos-count", "value": photo_count})

        widget_content = {
            "collections": {"photos": response["photos"]},
            "meta": {"synced": SERVER_TIMESTAMP},
            "metrics": metrics,
            "profile": {
                "displayName": user_id,
                "profileURL": f"https://www.flickr.com/photos/{user_id}/",
            },
        }
        context.store.set_document(COLLECTION_FLICKR, "widget-content", widget_content)
    except Exception as e:
        logger.error("Flickr data sync failed: %s", e, exc_info=True)
        return {"result": "FAILURE", "error": str(e)}

    logger.info(
        "Flickr data sync completed (total: %s, fetched: %d)",
        response.get("total"), len(response["photos"]),
    )
    return {"result": "SUCCESS", "widgetContent": widget_content}


def discogs_media_to_download(releases: Iterable[dict], stored: Iterable[str]) -> list[dict]:
    """Thumb and cover images not yet in the bucket, in release order."""
    stored = set(stored)
    media = []
    for release in releases:
        release_id = release.get("id")
        info = release.get("basic_information") or {}
        for image_type, key in (("thumb", "thumb"), ("cover", "cover_image")):
            url = info.get(key)
            if not url:
                continue
            destination = to_discogs_destination_path(url, release_id, image_type)
            if destination not in stored:
                media.append({
                    "destinationPath": destination,
                    "id": f"{release_id}_{image_type}",
                    "mediaURL": url,
                })
    return media


def _upload_media(context: SyncContext, media: list[dict]) -> list[dict]:
    """Copy each item into the bucket. Failed items are logged and left out."""
    def upload(item):
        try:
            return context.media.fetch_and_upload_file(item["destinationPath"], item["mediaURL"], item["id"])
        except (MissingMedia, TransportFailure) as e:
            logger.warning("Skipping %s: %s", item["id"], e)
            return None

    if not media:
        return []
    with ThreadPoolExecutor(max_workers=min(len(media), MEDIA_UPLOAD_CONCURRENCY)) as executor:
        return [r for r in executor.map(upload, media) if r is not None]


def sync_discogs_data(context: SyncContext) -> dict:
    """Publish the Discogs collection as widget content and mirror its artwork.

    Release details are fetched two at a time. Only images missing from the
    bucket are downloaded.
    """
    username = os.environ.get("DISCOGS_USERNAME", "")
    try:
        response = discogs.fetch_releases(session=context.session)
        releases = response["releases"]
        logger.info("Starting Discogs sync for %d releases", len(releases))

        enhanced = discogs.fetch_releases_batch(releases, session=context.session)
        media = discogs_media_to_download(enhanced, context.media.list_stored_media())

        context.store.set_document(
            COLLECTION_DISCOGS,
            "last-response",
            {**response, "releases": enhanced, "fetchedAt": SERVER_TIMESTAMP},
        )

        cdn_base_url = context.config.storage.image_cdn_base_url
        widget_content = {
            "collections": {
                "releases": [transform_discogs_release(r, cdn_base_url) for r in enhanced],
            },
            "metrics": {"LPs Owned": response["pagination"]["items"]},
            "profile": {"profileURL": f"https://www.discogs.com/user/{username}/collection"},
            "meta": {"synced": SERVER_TIMESTAMP},
        }
        context.store.set_document(COLLECTION_DISCOGS, "widget-content", widget_content)
    except Exception as e:
        logger.error("Discogs data sync failed: %s", e, exc_info=True)
        return {"result": "FAILURE", "error": str(e)}

    uploaded = _upload_media(context, media)
    uploaded_files = [u["fileName"] for u in uploaded]
    logger.info(
        "Discogs sync finished: %d of %d new media files uploaded to %s",
        len(uploaded), len(media), context.media.bucket_name,
    )
    return {
        "destinationBucket": context.media.bucket_name,
        "result": "SUCCESS",
        "totalUploadedCount": len(uploaded),
        "uploadedFiles": uploaded_files,
        "data": widget_content,
    }
