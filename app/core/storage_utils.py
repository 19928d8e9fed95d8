# app/core/storage_utils.py
import uuid
from typing import Protocol

from app.core.config import get_settings
from app.core.supabase_client import supabase_admin

settings = get_settings()


class BlobStore(Protocol):
    """
    Narrow blob storage interface used by the image slot assigner.

    upload() must be idempotent under the same path (re-upload overwrites).
    """

    def upload(self, path: str, file_bytes: bytes) -> str: ...

    def delete_url(self, url: str) -> None: ...


class SupabaseBlobStore:
    """
    BlobStore backed by a Supabase Storage bucket.

    The admin client is created lazily so importing this module does not
    require SUPABASE_SERVICE_ROLE_KEY.
    """

    def __init__(self, bucket: str | None = None):
        self.bucket = bucket or settings.STORAGE_BUCKET

    @property
    def _storage(self):
        return supabase_admin().storage.from_(self.bucket)

    def upload(self, path: str, file_bytes: bytes) -> str:
        """
        Upload raw bytes to Supabase Storage and return a public URL.

        If a file already exists at this path, it will be overwritten
        thanks to the 'upsert' option.

        Args:
            path: Full object path inside the bucket.
                  Example: "products/<uuid>/colors/<uuid>/<uuid>.png"
            file_bytes: File content in bytes.

        Raises:
            Any exception raised by Supabase client if upload fails.
        """
        self._storage.upload(path, file_bytes, {"upsert": "true"})
        return self._storage.get_public_url(path)

    def delete_path(self, path: str) -> None:
        # Supabase Python client expects a list of paths.
        self._storage.remove([path])

    def delete_url(self, url: str) -> None:
        """
        Delete a file by its public URL.
        No-op if the URL does not belong to this bucket.
        """
        path = extract_path_from_public_url(url, self.bucket)
        if path:
            self.delete_path(path)


def extract_path_from_public_url(url: str, bucket: str) -> str | None:
    """
    Given a public URL, extract the object path relative to the bucket.

    Example:
        https://<proj>.supabase.co/storage/v1/object/public/assets/products/p/a.png
        -> 'products/p/a.png'
    """
    marker = f"/storage/v1/object/public/{bucket}/"
    idx = url.find(marker)
    if idx == -1:
        return None
    return url[idx + len(marker) :]


def generate_filename(ext: str) -> str:
    """
    Generate a random filename using UUID4.

    Args:
        ext: File extension without dot (e.g. "png", "jpg")

    Returns:
        A filename like "<uuid4>.png"
    """
    return f"{uuid.uuid4()}.{ext}"


def get_blob_store() -> BlobStore:
    """FastAPI dependency returning the Storage-backed blob store."""
    return SupabaseBlobStore()
