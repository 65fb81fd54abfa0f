import io
import logging
from typing import Optional

import requests
import urllib3
from google.cloud import storage

from personal_stats.errors import DownloadFailed, MissingMedia, UploadFailed

logger = logging.getLogger(__name__)

CACHE_CONTROL = "public, max-age=31536000"
# google-cloud-storage sends bodies up to this size as one multipart request
# and switches to a resumable session above it.
MAX_UPLOAD_SIZE = 8 * 1024 * 1024
READ_CHUNK_SIZE = 64 * 1024

# What reading a streamed body can raise once the response headers are in
READ_ERRORS = (requests.RequestException, urllib3.exceptions.HTTPError)


class DownloadStream:
    """File-like view of a streamed download for upload_from_file.

    Read errors surface as DownloadFailed so they are not reported as
    upload failures.
    """

    def __init__(self, raw, id: str):
        self.raw = raw
        self.id = id

    def read(self, size: Optional[int] = None) -> bytes:
        try:
            return self.raw.read(size)
        except READ_ERRORS as e:
            raise DownloadFailed(f"Failed to download media for {self.id}: {e}") from e


def _known_size(resp: requests.Response) -> Optional[int]:
    """Content-Length of the raw body, or None when it can't be trusted."""
    if resp.headers.get("Content-Encoding", "identity").lower() != "identity":
        return None
    length = resp.headers.get("Content-Length")
    if length and length.isdigit():
        return int(length)
    return None


class MediaStore:
    """Media files kept in a Cloud Storage bucket.

    The storage client is passed in so callers decide its lifetime.
    """

    def __init__(self, client: storage.Client, bucket_name: str, session: Optional[requests.Session] = None):
        self.client = client
        self.bucket_name = bucket_name
        self.session = session

    @property
    def bucket(self) -> storage.Bucket:
        return self.client.bucket(self.bucket_name)

    def _read_body(self, resp: requests.Response, id: str) -> bytes:
        """Buffer a body of unknown length, stopping once it is over the limit."""
        body = bytearray()
        try:
            for chunk in resp.iter_content(READ_CHUNK_SIZE):
                body.extend(chunk)
                if len(body) > MAX_UPLOAD_SIZE:
                    break
        except READ_ERRORS as e:
            logger.error("Download of %s failed mid-body: %s", id, e)
            raise DownloadFailed(f"Failed to download media for {id}: {e}") from e
        return bytes(body)

    def fetch_and_upload_file(self, destination_path: str, media_url: Optional[str], id: str) -> dict:
        """Download `media_url` and store it publicly at `destination_path`.

        Every upload is a single non-resumable request, so media larger
        than MAX_UPLOAD_SIZE is refused with UploadFailed. Returns
        {"id", "fileName"} once the upload has finished.
        """
        if not media_url:
            raise MissingMedia(f"Missing media to download for {id}.")

        http = self.session or requests
        resp = None
        try:
            resp = http.get(media_url, stream=True, timeout=30)
            resp.raise_for_status()
        except requests.RequestException as e:
            if resp is not None:
                resp.close()
            logger.error("Download of %s for %s failed: %s", media_url, id, e)
            raise DownloadFailed(f"Failed to download media for {id}: {e}") from e

        with resp:
            size = _known_size(resp)
            if size is None:
                body = self._read_body(resp, id)
                size = len(body)
                stream = io.BytesIO(body)
            else:
                stream = DownloadStream(resp.raw, id)

            if size > MAX_UPLOAD_SIZE:
                logger.error("Refusing to upload %s: %d bytes", destination_path, size)
                raise UploadFailed(
                    f"Failed to upload {destination_path}: media exceeds {MAX_UPLOAD_SIZE} bytes"
                )

            blob = self.bucket.blob(destination_path)
            blob.cache_control = CACHE_CONTROL
            try:
                blob.upload_from_file(
                    stream,
                    size=size,
                    content_type=resp.headers.get("Content-Type"),
                    predefined_acl="publicRead",
                )
            except DownloadFailed:
                logger.error("Download of %s for %s broke off during upload", media_url, id)
                raise
            except Exception as e:
                logger.error("Upload of %s failed: %s", destination_path, e, exc_info=True)
                raise UploadFailed(f"Failed to upload {destination_path}: {e}") from e

        logger.info("Uploaded %s to gs://%s/%s", id, self.bucket_name, destination_path)
        return {"id": id, "fileName": destination_path}

    def list_stored_media(self) -> list[str]:
        """Names of every object in the bucket, in listing order."""
        return [blob.name for blob in self.client.list_blobs(self.bucket_name)]
