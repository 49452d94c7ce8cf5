# storage.py
import logging
from typing import Optional

from supabase import Client, create_client

from errors import StorageError

logger = logging.getLogger(__name__)

MISSING_BUCKET_MARKERS = ("bucket", "not found", "404")

BUCKET_SETUP_STEPS = (
    "The storage bucket '{bucket}' was not found. To set it up:\n"
    "1. Open your Supabase dashboard and go to Storage\n"
    "2. Create a new bucket named '{bucket}'\n"
    "3. Make the bucket public so uploaded files get a public URL\n"
    "4. Add an insert policy that allows uploads for your users\n"
    "Then upload the file again."
)


def create_supabase(url: str, key: str) -> Client:
    if not url or not key:
        raise RuntimeError("SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY missing in .env")
    return create_client(url, key)


def is_missing_bucket_error(error: Exception) -> bool:
    """
    Classify a storage failure as "bucket does not exist".

    The storage API only reports this in the message text, so this is a
    substring heuristic (case-insensitive).
    """
    message = str(error).lower()
    return any(marker in message for marker in MISSING_BUCKET_MARKERS)


def bucket_setup_message(bucket: str) -> str:
    return BUCKET_SETUP_STEPS.format(bucket=bucket)


class SupabaseStorage:
    def __init__(self, client: Client, bucket: str = "uploads"):
        self.client = client
        self.bucket = bucket

    def upload(self, object_name: str, data: bytes, content_type: Optional[str] = None) -> None:
        options = {"content-type": content_type or "application/octet-stream"}
        try:
            self.client.storage.from_(self.bucket).upload(
                path=object_name, file=data, file_options=options
            )
        except Exception as e:
            status = getattr(e, "status", None) or getattr(e, "code", None)
            logger.error(
                "Storage upload failed (bucket=%s, object=%s): %s",
                self.bucket, object_name, e,
            )
            raise StorageError(str(e), status_code=status) from e
        logger.info("Uploaded %s to bucket %s", object_name, self.bucket)

    def get_public_url(self, object_name: str) -> str:
        return self.client.storage.from_(self.bucket).get_public_url(object_name)
