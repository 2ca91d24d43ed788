"""Async HTTP client for the gallery API (httpx)."""
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

import httpx

logger = logging.getLogger(__name__)

PHOTOS_PATH = "/api/photos"
ADMIN_SESSION_PATH = "/api/admin/session"


class GalleryApiError(Exception):
    """Non-2xx answer from the gallery API."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message


@dataclass(frozen=True)
class PendingFile:
    """A local file picked for upload. content_type is the declared type, as a browser would report it."""

    path: Path
    name: str
    content_type: str
    size: int

    @classmethod
    def from_path(cls, path: str | Path) -> "PendingFile":
        p = Path(path)
        content_type, _ = mimetypes.guess_type(p.name)
        return cls(path=p, name=p.name, content_type=content_type or "", size=p.stat().st_size)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return (response.text or response.reason_phrase or "")[:300]
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)


class GalleryClient:
    """
    Thin wrapper over the /api/photos resource. No retries; the timeout is httpx's
    default unless one is passed in. Pass transport= to talk to an in-process app.
    """

    def __init__(
        self,
        base_url: str,
        *,
        admin_token: str | None = None,
        timeout: float | httpx.Timeout | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        kwargs = {"base_url": base_url.rstrip("/")}
        if timeout is not None:
            kwargs["timeout"] = timeout
        if transport is not None:
            kwargs["transport"] = transport
        self._http = httpx.AsyncClient(**kwargs)
        self.admin_token = admin_token

    async def __aenter__(self) -> "GalleryClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def _admin_headers(self) -> dict:
        return {"Authorization": f"Bearer {self.admin_token}"} if self.admin_token else {}

    @staticmethod
    def _check(response: httpx.Response) -> httpx.Response:
        if response.is_error:
            raise GalleryApiError(response.status_code, _error_message(response))
        return response

    async def upload(self, file: PendingFile) -> dict:
        """POST one file as multipart field `file`; returns the created photo record."""
        with file.path.open("rb") as fh:
            r = await self._http.post(
                PHOTOS_PATH,
                files={"file": (file.name, fh, file.content_type or "application/octet-stream")},
            )
        return self._check(r).json()

    async def list_photos(self) -> list[dict]:
        r = await self._http.get(PHOTOS_PATH)
        return self._check(r).json()

    async def delete_photo(self, photo_id: str) -> dict:
        r = await self._http.delete(f"{PHOTOS_PATH}/{photo_id}", headers=self._admin_headers())
        return self._check(r).json()

    async def verify_admin(self) -> bool:
        """True when the configured admin token is accepted."""
        r = await self._http.get(ADMIN_SESSION_PATH, headers=self._admin_headers())
        if r.status_code in (401, 403):
            return False
        self._check(r)
        return True
