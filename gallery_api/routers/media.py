"""Serves stored blobs for the local and memory backends, so their public URLs resolve. Azure serves its own."""
import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from gallery_api.core.blob_storage import BlobStore, get_blob_store

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/media", tags=["media"])


@router.get("/{key}")
def get_media(key: str, store: BlobStore = Depends(get_blob_store)):
    try:
        blob = store.get(key)
    except ValueError:
        raise HTTPException(status_code=404, detail="Not found")
    if blob is None:
        raise HTTPException(status_code=404, detail="Not found")
    return Response(
        content=blob.data,
        media_type=blob.content_type,
        headers={"Cache-Control": "public, max-age=31536000, immutable"},
    )
