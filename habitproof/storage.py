import logging
import os
import tempfile
import time
from contextlib import contextmanager

from google.api_core.exceptions import GoogleAPIError
from google.auth import default as google_auth_default
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage
from google.oauth2 import service_account
from werkzeug.utils import secure_filename

from .errors import UpstreamFailure

logger = logging.getLogger(__name__)

PUBLIC_URL_TEMPLATE = "https://storage.googleapis.com/{bucket}/{name}"


def classify_media(content_type):
    content_type = (content_type or "").lower()
    if content_type.startswith("image/"):
        return "image"
    if content_type.startswith("video/"):
        return "video"
    return "file"


def destination_name(filename):
    safe_name = secure_filename(filename or "") or "upload"
    return f"proofs/{int(time.time() * 1000)}_{safe_name}"


@contextmanager
def temporary_upload(media, folder):
    """Spool an incoming upload to disk for the duration of the block.

    The temp file is removed on exit whether or not the block raised.
    """
    os.makedirs(folder, exist_ok=True)
    fd, path = tempfile.mkstemp(dir=folder, prefix="proof_")
    os.close(fd)
    try:
        media.save(path)
        yield path
    finally:
        if os.path.exists(path):
            os.remove(path)
            logger.debug(f"Removed temporary upload {path}")


class GCSBlobStore:
    def __init__(self, bucket_name, credentials_path=None):
        self.bucket_name = bucket_name
        self.credentials_path = credentials_path
        self._bucket = None

    def _build_creds(self):
        scopes = ["https://www.googleapis.com/auth/cloud-platform"]
        if self.credentials_path and os.path.exists(self.credentials_path):
            creds = service_account.Credentials.from_service_account_file(self.credentials_path, scopes=scopes)
            return creds, creds.project_id
        return google_auth_default(scopes=scopes)

    def bucket(self):
        if self._bucket is None:
            creds, project = self._build_creds()
            client = storage.Client(project=project, credentials=creds)
            self._bucket = client.bucket(self.bucket_name)
        return self._bucket

    def upload(self, local_path, filename, content_type):
        if not self.bucket_name:
            raise UpstreamFailure("Upload failed", "STORAGE_BUCKET is not configured")
        name = destination_name(filename)
        try:
            blob = self.bucket().blob(name)
            blob.upload_from_filename(local_path, content_type=content_type)
            blob.make_public()
        except (GoogleAPIError, GoogleAuthError, OSError) as e:
            logger.error(f"Blob upload of {name} failed: {str(e)}")
            raise UpstreamFailure("Upload failed", str(e)) from e
        logger.info(f"Uploaded {name} to bucket {self.bucket_name}")
        return PUBLIC_URL_TEMPLATE.format(bucket=self.bucket_name, name=name)
