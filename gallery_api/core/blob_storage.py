"""
Blob storage backends for uploaded photos and videos.

Three implementations share one small interface (put/get/delete/keys):
Azure Blob Storage for deployments, a local directory and an in-process dict
for development. BLOB_BACKEND picks one; nothing here looks at the hostname.
"""
import logging
import re
import threading
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterator, Protocol

from gallery_api.core.config import settings

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
CONTENT_TYPE_SUFFIX = ".content-type"

# Keys are a single path segment: "<uuid>.<ext>"
_KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,254}$")


@dataclass
class StoredBlob:
    data: bytes
    content_type: str


class BlobStore(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> None: ...

    def get(self, key: str) -> StoredBlob | None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...


def validate_key(key: str) -> str:
    if not key or not _KEY_RE.match(key) or ".." in key or key.endswith(CONTENT_TYPE_SUFFIX):
        raise ValueError(f"Invalid storage key: {key!r}")
    return key


def public_url(key: str, base_url: str | None = None) -> str:
    base = (base_url if base_url is not None else settings.resolved_public_base_url()).rstrip("/")
    return f"{base}/{key}"


def key_from_url(url: str) -> str:
    """Storage key is whatever follows the last '/' of the public URL."""
    return (url or "").rsplit("/", 1)[-1]


class MemoryBlobStore:
    """Process-local store. Development and tests only; contents vanish on restart."""

    def __init__(self):
        self._blobs: dict[str, StoredBlob] = {}
        self._lock = threading.Lock()

    def put(self, key: str, data: bytes, content_type: str) -> None:
        validate_key(key)
        with self._lock:
            self._blobs[key] = StoredBlob(data=bytes(data), content_type=content_type or DEFAULT_CONTENT_TYPE)

    def get(self, key: str) -> StoredBlob | None:
        validate_key(key)
        with self._lock:
            return self._blobs.get(key)

    def delete(self, key: str) -> None:
        validate_key(key)
        with self._lock:
            self._blobs.pop(key, None)

    def keys(self) -> Iterator[str]:
        with self._lock:
            return iter(sorted(self._blobs))


class LocalBlobStore:
    """Blobs as files in one directory; the content type sits in a sidecar file next to each blob."""

    def __init__(self, root: str | Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.root / validate_key(key)

    def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        path.write_bytes(data)
        path.with_name(path.name + CONTENT_TYPE_SUFFIX).write_text(content_type or DEFAULT_CONTENT_TYPE)

    def get(self, key: str) -> StoredBlob | None:
        path = self._path(key)
        if not path.is_file():
            return None
        sidecar = path.with_name(path.name + CONTENT_TYPE_SUFFIX)
        content_type = sidecar.read_text().strip() if sidecar.is_file() else DEFAULT_CONTENT_TYPE
        return StoredBlob(data=path.read_bytes(), content_type=content_type)

    def delete(self, key: str) -> None:
        path = self._path(key)
        path.unlink(missing_ok=True)
        path.with_name(path.name + CONTENT_TYPE_SUFFIX).unlink(missing_ok=True)

    def keys(self) -> Iterator[str]:
        for p in sorted(self.root.iterdir()):
            if p.is_file() and not p.name.endswith(CONTENT_TYPE_SUFFIX):
                yield p.name


class AzureBlobStore:
    """One Azure Blob Storage container, authenticated with the account key."""

    def __init__(self, account_name: str, account_key: str, container: str):
        # Lazy import so the app starts without azure-storage-blob if another backend is used
        from azure.storage.blob import BlobServiceClient

        service = BlobServiceClient(
            account_url=f"https://{account_name}.blob.core.windows.net",
            credential={"account_name": account_name, "account_key": account_key},
        )
        self._container = service.get_container_client(container)

    def put(self, key: str, data: bytes, content_type: str) -> None:
        from azure.storage.blob import ContentSettings

        self._container.upload_blob(
            name=validate_key(key),
            data=data,
            overwrite=False,
            content_settings=ContentSettings(content_type=content_type or DEFAULT_CONTENT_TYPE),
        )

    def get(self, key: str) -> StoredBlob | None:
        from azure.core.exceptions import ResourceNotFoundError

        try:
            downloader = self._container.download_blob(validate_key(key))
        except ResourceNotFoundError:
            return None
        content_type = downloader.properties.content_settings.content_type or DEFAULT_CONTENT_TYPE
        return StoredBlob(data=downloader.readall(), content_type=content_type)

    def delete(self, key: str) -> None:
        from azure.core.exceptions import ResourceNotFoundError

        try:
            self._container.delete_blob(validate_key(key))
        except ResourceNotFoundError:
            logger.info("blob_storage: %s already gone", key)

    def keys(self) -> Iterator[str]:
        for props in self._container.list_blobs():
            yield props.name


def create_blob_store(backend: str | None = None) -> BlobStore:
    backend = (backend or settings.blob_backend or "local").strip().lower()
    if backend == "azure":
        if not (settings.azure_storage_account and settings.azure_storage_account_key):
            raise RuntimeError("BLOB_BACKEND=azure needs AZURE_STORAGE_ACCOUNT and AZURE_STORAGE_ACCOUNT_KEY")
        return AzureBlobStore(
            account_name=settings.azure_storage_account,
            account_key=settings.azure_storage_account_key,
            container=settings.photos_container,
        )
    if backend == "memory":
        return MemoryBlobStore()
    if backend == "local":
        return LocalBlobStore(settings.local_media_dir)
    raise RuntimeError(f"Unknown BLOB_BACKEND {backend!r} (expected local, memory or azure)")


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    """FastAPI dependency: one store per process, built from settings."""
    store = create_blob_store()
    logger.info("blob_storage: using %s", type(store).__name__)
    return store
