import hashlib
import os
import pathlib
from typing import BinaryIO, Optional, Tuple

from google.cloud import storage

from medly.core.config import settings


class StorageError(Exception):
    pass


class StorageClient:
    """Document files on GCS, or under a local directory when no bucket is set."""

    def __init__(self) -> None:
        self.bucket_name = os.getenv("GCS_BUCKET") or settings.GCS_BUCKET
        self.use_local = os.getenv("LOCAL_STORAGE", "0") == "1" or settings.LOCAL_STORAGE or not self.bucket_name
        self.base_dir = pathlib.Path(os.getenv("LOCAL_STORAGE_DIR", settings.LOCAL_STORAGE_DIR)).resolve()
        if self.use_local:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        self._client = storage.Client() if self.bucket_name and not self.use_local else None

    def _bucket(self):
        if not self.bucket_name or not self._client:
            raise StorageError("GCS_BUCKET nao configurado.")
        return self._client.bucket(self.bucket_name)

    def upload_file(
        self,
        file_obj: BinaryIO,
        dest_path: str,
        content_type: str,
        max_bytes: Optional[int] = None,
    ) -> Tuple[str, int, str]:
        """Streams ``file_obj`` and returns ``(file_url, size, sha256)``."""
        hasher = hashlib.sha256()
        total = 0
        if self.use_local:
            full_path = self.base_dir / dest_path
            full_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                with open(full_path, "wb") as handle:
                    while True:
                        chunk = file_obj.read(1024 * 1024)
                        if not chunk:
                            break
                        total += len(chunk)
                        if max_bytes and total > max_bytes:
                            raise StorageError("Arquivo excede o tamanho maximo permitido.")
                        handle.write(chunk)
                        hasher.update(chunk)
            except StorageError:
                full_path.unlink(missing_ok=True)
                raise
            return full_path.as_uri(), total, hasher.hexdigest()

        blob = self._bucket().blob(dest_path)
        with blob.open("wb") as handle:
            while True:
                chunk = file_obj.read(1024 * 1024)
                if not chunk:
                    break
                total += len(chunk)
                if max_bytes and total > max_bytes:
                    raise StorageError("Arquivo excede o tamanho maximo permitido.")
                handle.write(chunk)
                hasher.update(chunk)
        blob.content_type = content_type
        blob.patch()
        return f"gs://{self.bucket_name}/{dest_path}", total, hasher.hexdigest()

    def delete(self, file_url: str) -> None:
        if file_url.startswith("file://"):
            path = pathlib.Path(file_url.replace("file://", "", 1))
            path.unlink(missing_ok=True)
            return
        if file_url.startswith("gs://"):
            _, path = file_url.split("gs://", 1)
            bucket_name, blob_path = path.split("/", 1)
            client = self._client or storage.Client()
            client.bucket(bucket_name).blob(blob_path).delete()
            return
        raise StorageError("URL de arquivo nao suportada.")

    def generate_signed_url(self, file_url: str, expires_minutes: int = 30) -> str:
        if file_url.startswith("file://"):
            return file_url
        if file_url.startswith("gs://"):
            _, path = file_url.split("gs://", 1)
            bucket_name, blob_path = path.split("/", 1)
            client = self._client or storage.Client()
            blob = client.bucket(bucket_name).blob(blob_path)
            return blob.generate_signed_url(expiration=expires_minutes * 60, method="GET")
        raise StorageError("URL de arquivo nao suportada.")
