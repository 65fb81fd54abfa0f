"""Firestore persistence for synced stats.

Documents are always written with a full `set`, so every sync replaces what
the previous one stored for the same key.
"""

import logging
from typing import Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore

from personal_stats.errors import WriteFailure

logger = logging.getLogger(__name__)

COLLECTION_STATS = "stats"
COLLECTION_SUMMARIES = "summaries"
COLLECTION_FLICKR = "flickr"
COLLECTION_DISCOGS = "discogs"

# Written by Firestore itself when the document lands
SERVER_TIMESTAMP = firestore.SERVER_TIMESTAMP


class DocumentStore:
    def __init__(self, client: firestore.Client):
        self.client = client

    def _ref(self, collection: str, doc_id: str):
        return self.client.collection(collection).document(doc_id)

    def set_document(self, collection: str, doc_id: str, data: dict) -> None:
        """Replace `collection/doc_id` with `data`.

        Raises:
            WriteFailure: if Firestore rejects the write.
        """
        try:
            self._ref(collection, doc_id).set(data)
        except gcp_exceptions.GoogleAPIError as e:
            logger.error("Failed to write %s/%s: %s", collection, doc_id, e)
            raise WriteFailure(f"Failed to write {collection}/{doc_id}: {e}") from e
        logger.debug("Wrote %s/%s", collection, doc_id)

    def get_document(self, collection: str, doc_id: str) -> Optional[dict]:
        """Return the stored document, or None if it does not exist."""
        snapshot = self._ref(collection, doc_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict()
