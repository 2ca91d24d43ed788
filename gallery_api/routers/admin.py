from fastapi import APIRouter, Depends

from gallery_api.core.auth import require_admin
from gallery_api.schemas.photo import AdminSessionOut

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/session", response_model=AdminSessionOut, dependencies=[Depends(require_admin)])
def admin_session():
    """Lets the admin page check its token before showing delete controls."""
    return AdminSessionOut(ok=True)
