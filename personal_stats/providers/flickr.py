import logging
import os
from typing import Optional

import requests

from personal_stats.errors import InvalidUpstreamResponse, MissingCredential, TransportFailure
from personal_stats.transformers import photo_to_card

logger = logging.getLogger(__name__)

FLICKR_API_BASE_URL = "https://www.flickr.com/services/rest"
PER_PAGE = 12
PHOTO_EXTRAS = "date_taken,description,owner_name,url_q,url_m,url_l"


def fetch_photos(session: Optional[requests.Session] = None) -> dict:
    """Fetch the most recent public photos.

    See https://www.flickr.com/services/api/flickr.people.getPhotos.html
    """
    api_key = os.environ.get("FLICKR_API_KEY", "").strip()
    user_id = os.environ.get("FLICKR_USER_ID", "").strip()
    if not api_key or not user_id:
        raise MissingCredential("Missing required Flickr configuration (api_key or user_id)")

    http = session or requests
    try:
        resp = http.get(
            FLICKR_API_BASE_URL,
            params={
                "method": "flickr.people.getPhotos",
                "api_key": api_key,
                "user_id": user_id,
                "format": "json",
                "nojsoncallback": 1,
                "per_page": PER_PAGE,
                "extras": PHOTO_EXTRAS,
                "privacy_filter": 1,
            },
            timeout=30,
        )
        resp.raise_for_status()
        body = resp.json()
    except requests.RequestException as e:
        logger.error("Error fetching Flickr photos: %s", e)
        raise TransportFailure(f"Flickr request failed: {e}") from e
    except ValueError as e:
        logger.error("Flickr returned a non-JSON body: %s", e)
        raise InvalidUpstreamResponse("Invalid response from Flickr API") from e

    photos = (body.get("photos") if isinstance(body, dict) else None) or {}
    if not isinstance(photos, dict) or not isinstance(photos.get("photo"), list):
        logger.error("Flickr response has no photo list: %s", body)
        raise InvalidUpstreamResponse("Invalid response from Flickr API")

    return {
        "photos": [photo_to_card(photo, user_id) for photo in photos["photo"]],
        "total": photos.get("total"),
        "page": photos.get("page"),
        "pages": photos.get("pages"),
    }
