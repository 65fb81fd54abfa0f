"""Pure reshaping of provider records into the dashboard's display shapes.

Nothing in here does I/O. Missing nested fields fall back to empty values
instead of raising.
"""

import posixpath
from typing import Any, Optional
from urllib.parse import urlparse

CLOUD_STORAGE_DISCOGS_PATH = "discogs/"
IMAGE_CDN_BASE_URL = "https://img.chrisvogt.me/"

# Top-level Discogs release fields kept in stored documents
DISCOGS_RELEASE_FIELDS = {
    "id", "title", "year", "country", "released", "released_formatted",
    "status", "data_quality", "tracklist", "genres", "styles", "notes",
    "uri", "resource_url", "master_id", "master_url", "main_release",
    "main_release_url",
}
# Fields kept on nested records such as tracklist entries
DISCOGS_NESTED_FIELDS = {"position", "title", "duration", "type"}


def _dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def track_to_collection_item(track: dict) -> dict:
    """Spotify track -> collection item."""
    album = _dict(track.get("album"))
    artists = track.get("artists") or []
    return {
        "albumImages": album.get("images") or [],
        "artists": [_dict(artist).get("name") for artist in artists],
        "id": track.get("id"),
        "name": track.get("name"),
        "previewURL": track.get("preview_url"),
        "spotifyURL": _dict(track.get("external_urls")).get("spotify"),
        "type": track.get("type"),
        "uri": track.get("uri"),
    }


def photo_to_card(photo: dict, user_id: str) -> dict:
    """Flickr photo -> photo card. The description is always a string."""
    description = photo.get("description")
    if isinstance(description, dict):
        description = description.get("_content")
    return {
        "id": photo.get("id"),
        "title": photo.get("title"),
        "description": description if isinstance(description, str) else "",
        "dateTaken": photo.get("datetaken"),
        "ownerName": photo.get("ownername"),
        "thumbnailUrl": photo.get("url_q"),
        "mediumUrl": photo.get("url_m"),
        "largeUrl": photo.get("url_l"),
        "link": f"https://www.flickr.com/photos/{user_id}/{photo.get('id')}",
    }


def flatten_repository(repo: dict) -> dict:
    """Replace GitHub's {totalCount} connections with plain integers."""
    flat = dict(repo)
    flat["stargazers"] = _dict(repo.get("stargazers")).get("totalCount", 0)
    flat["forks"] = _dict(repo.get("forks")).get("totalCount", 0)
    return flat


def _filter_nested(value: Any) -> Any:
    if isinstance(value, list):
        return [_filter_nested(item) for item in value]
    if isinstance(value, dict):
        return {k: v for k, v in value.items() if k in DISCOGS_NESTED_FIELDS}
    return value


def filter_discogs_resource(resource: Optional[dict]) -> Optional[dict]:
    """Trim a Discogs release down to the fields worth storing."""
    if not resource:
        return None
    return {
        key: _filter_nested(value)
        for key, value in resource.items()
        if key in DISCOGS_RELEASE_FIELDS
    }


def to_discogs_destination_path(image_url: str, release_id: Any, image_type: str = "thumb") -> str:
    extension = posixpath.splitext(urlparse(image_url).path)[1]
    return f"{CLOUD_STORAGE_DISCOGS_PATH}{release_id}_{image_type}{extension}"


def transform_discogs_release(release: dict, cdn_base_url: str = IMAGE_CDN_BASE_URL) -> dict:
    """Discogs collection entry -> widget release, with CDN image URLs."""
    info = _dict(release.get("basic_information"))
    release_id = release.get("id")
    thumb = info.get("thumb")
    cover_image = info.get("cover_image")

    item = {
        "id": release_id,
        "instanceId": release.get("instance_id"),
        "dateAdded": release.get("date_added"),
        "rating": release.get("rating"),
        "folderId": release.get("folder_id"),
        "notes": release.get("notes"),
        "basicInformation": {
            "id": info.get("id"),
            "masterId": info.get("master_id"),
            "masterUrl": info.get("master_url"),
            "resourceUrl": info.get("resource_url"),
            "thumb": thumb,
            "coverImage": cover_image,
            "cdnThumbUrl": (
                f"{cdn_base_url}{to_discogs_destination_path(thumb, release_id, 'thumb')}" if thumb else None
            ),
            "cdnCoverUrl": (
                f"{cdn_base_url}{to_discogs_destination_path(cover_image, release_id, 'cover')}"
                if cover_image else None
            ),
            "title": info.get("title"),
            "year": info.get("year"),
            "formats": info.get("formats"),
            "labels": info.get("labels"),
            "artists": info.get("artists"),
            "genres": info.get("genres"),
            "styles": info.get("styles"),
        },
    }
    if release.get("resource"):
        item["resource"] = release["resource"]
    return item
