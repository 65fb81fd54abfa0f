"""Firebase Functions entry points.

Scheduled jobs run every day at 02:00; the HTTPS endpoints serve published
data with CDN-friendly cache headers. Clients are built on first use and
kept for the life of the instance.
"""

import functools
import json
import logging

from firebase_functions import https_fn, options, scheduler_fn

from personal_stats import sync
from personal_stats.config import load_config
from personal_stats.errors import MissingCredential, PersonalStatsError
from personal_stats.utils.logger import setup_logging

logger = logging.getLogger(__name__)

SCHEDULE = "every day 02:00"
CACHE_CONTROL = "public, max-age=3600, s-maxage=14400"
NO_CACHE = "no-store"
CORS = options.CorsOptions(cors_origins="*", cors_methods=["get"])


@functools.lru_cache(maxsize=1)
def get_context() -> sync.SyncContext:
    setup_logging()
    return sync.SyncContext.from_config(load_config())


def json_response(payload, status: int = 200, cache_control: str = CACHE_CONTROL) -> https_fn.Response:
    return https_fn.Response(
        json.dumps(payload, default=str),
        status=status,
        mimetype="application/json",
        headers={"Cache-Control": cache_control},
    )


def run_job(job, *args):
    context = get_context()
    logger.info("Running %s", job.__name__)
    result = job(context, *args)
    logger.info("%s finished", job.__name__)
    return result


def serve(job) -> https_fn.Response:
    """Run a job for an HTTPS request and answer with its result as JSON.

    Configuration errors answer 500 and provider errors 502. Error
    responses are never cached.
    """
    try:
        return json_response(run_job(job))
    except MissingCredential as e:
        logger.error("%s is misconfigured: %s", job.__name__, e)
        return json_response({"error": str(e)}, status=500, cache_control=NO_CACHE)
    except PersonalStatsError as e:
        logger.error("%s failed: %s", job.__name__, e, exc_info=True)
        return json_response({"error": str(e)}, status=502, cache_control=NO_CACHE)


def stats_job(req: https_fn.Request):
    """`?live=true` asks WakaTime directly; otherwise the published copy is read."""
    if req.args.get("live") == "true":
        return sync.fetch_all_stats
    return sync.load_published_stats


@scheduler_fn.on_schedule(schedule=SCHEDULE)
def sync_all_stats(event: scheduler_fn.ScheduledEvent) -> None:
    run_job(sync.sync_all_stats)


@scheduler_fn.on_schedule(schedule=SCHEDULE)
def sync_all_summaries(event: scheduler_fn.ScheduledEvent) -> None:
    run_job(sync.sync_all_summaries)


@scheduler_fn.on_schedule(schedule=SCHEDULE)
def sync_yesterdays_code_summary(event: scheduler_fn.ScheduledEvent) -> None:
    run_job(sync.sync_yesterdays_code_summary)


@scheduler_fn.on_schedule(schedule=SCHEDULE)
def sync_flickr_data(event: scheduler_fn.ScheduledEvent) -> None:
    run_job(sync.sync_flickr_data)


@scheduler_fn.on_schedule(schedule=SCHEDULE, timeout_sec=540)
def sync_discogs_data(event: scheduler_fn.ScheduledEvent) -> None:
    run_job(sync.sync_discogs_data)


@https_fn.on_request(cors=CORS)
def get_latest_repositories(req: https_fn.Request) -> https_fn.Response:
    return serve(sync.get_latest_repositories)


@https_fn.on_request(cors=CORS)
def get_stats(req: https_fn.Request) -> https_fn.Response:
    return serve(stats_job(req))
