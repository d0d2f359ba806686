from supabase import Client
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


class StorageError(Exception):
    pass


class BucketStorage:
    """Thin wrapper over a Supabase Storage bucket."""

    def __init__(self, supabase: Client, bucket_name: str):
        if not bucket_name:
            raise ValueError("Storage bucket name must be configured")
        self.bucket_name = bucket_name
        self._bucket = supabase.storage.from_(bucket_name)

    def download(self, key: str) -> Optional[bytes]:
        """Return the object bytes, or None when the object does not exist"""
        try:
            data = self._bucket.download(key)
        except Exception as e:
            message = str(e).lower()
            if "not found" in message or "404" in message:
                return None
            logger.error(f"Failed to download {self.bucket_name}/{key}: {e}")
            raise StorageError(str(e)) from e
        return data

    def upload_file(self, file_content: bytes, key: str, content_type: str = "application/octet-stream", upsert: bool = False) -> str:
        """Upload bytes and return the storage path"""
        try:
            self._bucket.upload(
                path=key,
                file=file_content,
                file_options={"content-type": content_type, "upsert": "true" if upsert else "false"},
            )
            return key
        except Exception as e:
            logger.error(f"Failed to upload {self.bucket_name}/{key}: {e}")
            raise StorageError(str(e)) from e

    def delete_files(self, keys: List[str]) -> bool:
        try:
            self._bucket.remove(keys)
            return True
        except Exception as e:
            logger.warning("Failed to delete from %s (%s): %s", self.bucket_name, keys, e)
            return False

    def public_url(self, key: str) -> str:
        return self._bucket.get_public_url(key)
