import logging
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile, status
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError, ProgrammingError
from sqlalchemy.orm import Session

from gallery_api.core.auth import require_admin
from gallery_api.core.blob_storage import BlobStore, get_blob_store
from gallery_api.core.config import settings
from gallery_api.db import models
from gallery_api.db.session import engine, get_db, init_db
from gallery_api.schemas.photo import DeleteOut, PhotoOut
from gallery_api.services import ingest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/photos", tags=["photos"])


def _photos_table_exists() -> bool:
    return inspect(engine).has_table(models.Photo.__tablename__)


@router.get("", response_model=list[PhotoOut])
def get_photos(db: Session = Depends(get_db)):
    try:
        rows = ingest.list_photos(db)
    except (OperationalError, ProgrammingError) as e:
        db.rollback()
        try:
            table_exists = _photos_table_exists()
            if not table_exists:
                # First run: create the table and report an empty gallery
                logger.info("photos/list: table missing, creating it")
                init_db()
        except Exception as e2:
            logger.exception("photos/list: could not check or create table: %s", e2)
            raise HTTPException(status_code=500, detail={"error": "Error fetching photos", "details": str(e2)})
        if table_exists:
            logger.exception("photos/list: error %s", e)
            raise HTTPException(status_code=500, detail={"error": "Error fetching photos", "details": str(e)})
        return []
    except Exception as e:
        logger.exception("photos/list: error %s", e)
        raise HTTPException(status_code=500, detail={"error": "Error fetching photos", "details": str(e)})
    logger.info("photos/list: %d photos", len(rows))
    return rows


@router.post("", response_model=PhotoOut, status_code=status.HTTP_201_CREATED)
def create_photo(
    request: Request,
    file: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    content_type = request.headers.get("content-type", "")
    if "multipart/form-data" not in content_type:
        raise HTTPException(status_code=400, detail="Content-Type must be multipart/form-data")
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")

    logger.info("photos/upload: file=%s type=%s size=%s", file.filename, file.content_type, file.size)
    if file.size is not None and file.size > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="File too large")

    data = file.file.read()
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail="File too large")

    try:
        photo = ingest.ingest_upload(
            db,
            store,
            filename=file.filename,
            content_type=file.content_type,
            data=data,
            cleanup_orphans=settings.cleanup_orphaned_blobs,
        )
    except ingest.IngestError as e:
        raise HTTPException(status_code=500, detail={"error": e.message, "details": str(e)})
    return photo


@router.delete("", dependencies=[Depends(require_admin)])
def delete_photo_without_id():
    raise HTTPException(status_code=400, detail="Photo id is required")


@router.delete("/{photo_id}", response_model=DeleteOut, dependencies=[Depends(require_admin)])
def delete_photo(
    photo_id: str,
    db: Session = Depends(get_db),
    store: BlobStore = Depends(get_blob_store),
):
    photo_id = photo_id.strip()
    if not photo_id:
        raise HTTPException(status_code=400, detail="Photo id is required")
    try:
        photo = db.get(models.Photo, photo_id)
    except (OperationalError, ProgrammingError) as e:
        db.rollback()
        try:
            table_exists = _photos_table_exists()
        except Exception:
            table_exists = True
        if table_exists:
            logger.exception("photos/delete: lookup failed id=%s: %s", photo_id, e)
            raise HTTPException(status_code=500, detail={"error": "Error deleting photo", "details": str(e)})
        photo = None
    if photo is None:
        raise HTTPException(status_code=404, detail="Photo not found")
    try:
        ingest.remove_photo(db, store, photo)
    except Exception as e:
        db.rollback()
        logger.exception("photos/delete: error id=%s: %s", photo_id, e)
        raise HTTPException(status_code=500, detail={"error": "Error deleting photo", "details": str(e)})
    return DeleteOut(success=True, id=photo_id)
