"""Photo/video ingestion: blob write then metadata insert, and the matching removal."""
import logging
import re
import time

from sqlalchemy.orm import Session

from gallery_api.core.blob_storage import BlobStore, key_from_url, public_url
from gallery_api.db import models
from gallery_api.db.session import init_db

logger = logging.getLogger(__name__)

FALLBACK_EXTENSION = "bin"
_EXT_RE = re.compile(r"^[a-z0-9]{1,10}$")


class IngestError(Exception):
    """Storage failure during ingestion; carries a user-facing message."""

    message = "Error uploading photo"


class BlobWriteError(IngestError):
    message = "Failed to store file"


class MetadataWriteError(IngestError):
    message = "Failed to save file metadata to database"


def media_type_for(content_type: str | None) -> str:
    return models.MediaType.video.value if (content_type or "").startswith("video/") else models.MediaType.image.value


def file_extension(filename: str | None) -> str:
    name = (filename or "").rsplit("/", 1)[-1].rsplit("\\", 1)[-1]
    if "." not in name:
        return FALLBACK_EXTENSION
    ext = name.rsplit(".", 1)[-1].lower()
    return ext if _EXT_RE.match(ext) else FALLBACK_EXTENSION


def storage_key(photo_id: str, filename: str | None) -> str:
    return f"{photo_id}.{file_extension(filename)}"


def now_ms() -> int:
    return int(time.time() * 1000)


def ingest_upload(
    db: Session,
    store: BlobStore,
    *,
    filename: str | None,
    content_type: str | None,
    data: bytes,
    base_url: str | None = None,
    cleanup_orphans: bool = True,
) -> models.Photo:
    """
    Store one uploaded file and record it. The blob is written first; no row is
    created if that fails. If the row insert fails afterwards and cleanup_orphans
    is set, one best-effort delete of the new blob is attempted before raising.
    """
    photo_id = models.new_photo_id()
    key = storage_key(photo_id, filename)
    content_type = content_type or "application/octet-stream"

    try:
        store.put(key, data, content_type)
    except Exception as e:
        logger.exception("ingest: blob write failed key=%s: %s", key, e)
        raise BlobWriteError(str(e)) from e
    logger.info("ingest: stored blob key=%s size=%d type=%s", key, len(data), content_type)

    photo = models.Photo(
        id=photo_id,
        url=public_url(key, base_url),
        created_at=now_ms(),
        type=media_type_for(content_type),
    )
    try:
        init_db()
        db.add(photo)
        db.commit()
        db.refresh(photo)
    except Exception as e:
        db.rollback()
        logger.exception("ingest: metadata insert failed id=%s: %s", photo_id, e)
        if cleanup_orphans:
            _discard_orphan(store, key)
        else:
            logger.warning("ingest: blob %s left orphaned (cleanup disabled)", key)
        raise MetadataWriteError(str(e)) from e

    logger.info("ingest: created photo id=%s url=%s", photo.id, photo.url)
    return photo


def _discard_orphan(store: BlobStore, key: str) -> None:
    try:
        store.delete(key)
        logger.info("ingest: removed orphaned blob %s", key)
    except Exception as e:
        logger.error("ingest: could not remove orphaned blob %s: %s", key, e)


def list_photos(db: Session) -> list[models.Photo]:
    return db.query(models.Photo).order_by(models.Photo.created_at.desc()).all()


def remove_photo(db: Session, store: BlobStore, photo: models.Photo) -> bool:
    """
    Delete the blob, then the row. A failed blob delete is logged and the row is
    still removed so the item leaves the gallery. Returns whether the blob delete succeeded.
    """
    key = key_from_url(photo.url)
    blob_deleted = True
    try:
        store.delete(key)
    except Exception as e:
        blob_deleted = False
        logger.error("ingest: blob delete failed key=%s id=%s: %s", key, photo.id, e)

    db.delete(photo)
    db.commit()
    logger.info("ingest: deleted photo id=%s blob_deleted=%s", photo.id, blob_deleted)
    return blob_deleted
