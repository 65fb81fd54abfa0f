import json
import sys
from typing import Optional

from dotenv import load_dotenv

from personal_stats import sync
from personal_stats.config import load_config
from personal_stats.errors import MissingCredential, PersonalStatsError
from personal_stats.utils.logger import setup_logging

JOBS = {
    "sync-all-stats": sync.sync_all_stats,
    "sync-all-summaries": sync.sync_all_summaries,
    "sync-yesterdays-code-summary": sync.sync_yesterdays_code_summary,
    "sync-flickr-data": sync.sync_flickr_data,
    "sync-discogs-data": sync.sync_discogs_data,
    "fetch-all-stats": sync.fetch_all_stats,
    "get-latest-repositories": sync.get_latest_repositories,
    "list-stored-media": lambda context: context.media.list_stored_media(),
}


def main(argv: Optional[list[str]] = None) -> int:
    """Run one job by name and print its result as JSON.

    Usage: python -m personal_stats.main <job>
    """
    load_dotenv()
    argv = sys.argv[1:] if argv is None else argv
    logger = setup_logging()

    if not argv or argv[0] not in JOBS:
        logger.error("Usage: personal-stats <job>. Jobs: %s", ", ".join(JOBS))
        return 2
    job_name = argv[0]

    try:
        config = load_config()
    except MissingCredential as e:
        logger.error("Configuration error: %s", e)
        return 1

    context = sync.SyncContext.from_config(config)
    logger.info("Starting %s", job_name)
    try:
        result = JOBS[job_name](context)
    except PersonalStatsError as e:
        logger.error("%s failed: %s", job_name, e, exc_info=True)
        return 1

    print(json.dumps(result, indent=2, default=str))
    logger.info("%s completed", job_name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
