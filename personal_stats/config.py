import json
import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping, MutableMapping, Optional

from personal_stats.errors import MissingCredential

logger = logging.getLogger(__name__)

DEFAULT_IMAGES_BUCKET = "img.chrisvogt.me"
DEFAULT_IMAGE_CDN_BASE_URL = "https://img.chrisvogt.me/"
DEFAULT_TIMEZONE = "UTC"

# Paths in a `firebase functions:config:export` document and the environment
# variables they are published under.
CONFIG_PATH_TO_ENV = {
    "auth.client_api_key": "CLIENT_API_KEY",
    "auth.client_auth_domain": "CLIENT_AUTH_DOMAIN",
    "auth.client_project_id": "CLIENT_PROJECT_ID",
    "gemini.api_key": "GEMINI_API_KEY",
    "storage.firestore_database_url": "STORAGE_FIRESTORE_DATABASE_URL",
    "storage.cloud_storage_images_bucket": "CLOUD_STORAGE_IMAGES_BUCKET",
    "storage.image_cdn_base_url": "IMAGE_CDN_BASE_URL",
    "wakatime.access_token": "WAKATIME_ACCESS_TOKEN",
    "wakatime.username": "WAKATIME_USERNAME",
    "discogs.api_key": "DISCOGS_API_KEY",
    "discogs.username": "DISCOGS_USERNAME",
    "flickr.api_key": "FLICKR_API_KEY",
    "flickr.user_id": "FLICKR_USER_ID",
    "steam.api_key": "STEAM_API_KEY",
    "steam.user_id": "STEAM_USER_ID",
    "github.access_token": "GITHUB_ACCESS_TOKEN",
    "github.username": "GITHUB_USERNAME",
    "spotify.client_id": "SPOTIFY_CLIENT_ID",
    "spotify.client_secret": "SPOTIFY_CLIENT_SECRET",
    "spotify.redirect_uri": "SPOTIFY_REDIRECT_URI",
    "spotify.refresh_token": "SPOTIFY_REFRESH_TOKEN",
    "goodreads.key": "GOODREADS_API_KEY",
    "goodreads.user_id": "GOODREADS_USER_ID",
    "instagram.access_token": "INSTAGRAM_ACCESS_TOKEN",
    "google.books_api_key": "GOOGLE_BOOKS_API_KEY",
}

EXPORTED_CONFIG_VAR = "FUNCTIONS_CONFIG_EXPORT"


@dataclass(frozen=True)
class WakaTimeConfig:
    username: str
    access_token: str


@dataclass(frozen=True)
class GitHubConfig:
    """Optional: checked when the repositories endpoint is called."""

    username: str = ""
    access_token: str = ""


@dataclass(frozen=True)
class StorageConfig:
    images_bucket: str = DEFAULT_IMAGES_BUCKET
    image_cdn_base_url: str = DEFAULT_IMAGE_CDN_BASE_URL


@dataclass(frozen=True)
class AppConfig:
    wakatime: WakaTimeConfig
    github: GitHubConfig = GitHubConfig()
    storage: StorageConfig = StorageConfig()
    timezone: str = DEFAULT_TIMEZONE


def require_env(name: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Return a non-empty environment variable or raise MissingCredential."""
    environ = os.environ if environ is None else environ
    val = environ.get(name, "").strip()
    if not val:
        raise MissingCredential(f"Missing required environment variable: {name}")
    return val


def apply_exported_config_to_env(
    data: Any, environ: Optional[MutableMapping[str, str]] = None
) -> int:
    """Copy string leaves of an exported functions config into the environment.

    Only paths listed in CONFIG_PATH_TO_ENV are applied. Returns the number of
    variables set.
    """
    environ = os.environ if environ is None else environ
    if not isinstance(data, dict):
        return 0

    applied = 0
    for config_path, env_var in CONFIG_PATH_TO_ENV.items():
        value: Any = data
        for key in config_path.split("."):
            value = value.get(key) if isinstance(value, dict) else None
        if isinstance(value, str):
            environ[env_var] = value
            applied += 1
    return applied


def load_exported_config(environ: Optional[MutableMapping[str, str]] = None) -> int:
    """Apply the FUNCTIONS_CONFIG_EXPORT secret, if it is set."""
    environ = os.environ if environ is None else environ
    raw = environ.get(EXPORTED_CONFIG_VAR, "").strip()
    if not raw:
        return 0
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("Ignoring malformed %s: %s", EXPORTED_CONFIG_VAR, e)
        return 0
    applied = apply_exported_config_to_env(data, environ)
    logger.info("Applied %d value(s) from %s", applied, EXPORTED_CONFIG_VAR)
    return applied


def load_config(environ: Optional[MutableMapping[str, str]] = None) -> AppConfig:
    """Load and validate all configuration from environment variables.

    Only the WakaTime credentials are required here. Other providers check
    their own credentials when their job runs.
    """
    environ = os.environ if environ is None else environ
    load_exported_config(environ)
    missing = []

    def _get(name: str) -> str:
        val = environ.get(name, "").strip()
        if not val:
            missing.append(name)
            return ""
        return val

    wakatime = WakaTimeConfig(
        username=_get("WAKATIME_USERNAME"),
        access_token=_get("WAKATIME_ACCESS_TOKEN"),
    )

    github = GitHubConfig(
        username=environ.get("GITHUB_USERNAME", "").strip(),
        access_token=environ.get("GITHUB_ACCESS_TOKEN", "").strip(),
    )

    if missing:
        raise MissingCredential(
            f"Missing required environment variables: {', '.join(missing)}"
        )

    storage = StorageConfig(
        images_bucket=environ.get("CLOUD_STORAGE_IMAGES_BUCKET", "").strip() or DEFAULT_IMAGES_BUCKET,
        image_cdn_base_url=environ.get("IMAGE_CDN_BASE_URL", "").strip() or DEFAULT_IMAGE_CDN_BASE_URL,
    )

    return AppConfig(
        wakatime=wakatime,
        github=github,
        storage=storage,
        timezone=environ.get("STATS_TIMEZONE", "").strip() or DEFAULT_TIMEZONE,
    )
