"""Out-of-band reconciliation: blobs that no photo row points at (left behind by failed ingestions)."""
import logging

from sqlalchemy.orm import Session

from gallery_api.core.blob_storage import BlobStore, key_from_url
from gallery_api.db import models

logger = logging.getLogger(__name__)


def find_orphaned_keys(db: Session, store: BlobStore) -> list[str]:
    referenced = {key_from_url(url) for (url,) in db.query(models.Photo.url).all()}
    return [key for key in store.keys() if key not in referenced]


def sweep_orphaned_blobs(db: Session, store: BlobStore, *, dry_run: bool = True) -> list[str]:
    """Return the orphaned keys; delete them unless dry_run. Failed deletes are logged and skipped."""
    orphans = find_orphaned_keys(db, store)
    if dry_run:
        return orphans
    removed = []
    for key in orphans:
        try:
            store.delete(key)
        except Exception as e:
            logger.error("sweep: could not delete %s: %s", key, e)
            continue
        removed.append(key)
    logger.info("sweep: removed %d of %d orphaned blob(s)", len(removed), len(orphans))
    return removed
