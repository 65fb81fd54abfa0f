"""Firebase Functions loads its triggers from main.py in the source directory."""

from personal_stats.functions import (  # noqa: F401
    get_latest_repositories,
    get_stats,
    sync_all_stats,
    sync_all_summaries,
    sync_discogs_data,
    sync_flickr_data,
    sync_yesterdays_code_summary,
)
