"""
Guest upload session: pick files, submit them one by one, report per-file outcomes.

States: idle -> selected -> uploading -> success (or back to idle when nothing
went through). Upload is best-effort per file: a failed file is reported and
the batch carries on with the next one.
"""
import asyncio
import enum
import logging
import random
from dataclasses import dataclass, field
from typing import Callable, Iterable, Protocol

import httpx

from gallery_client.api import GalleryApiError, GalleryClient, PendingFile

logger = logging.getLogger(__name__)

ACCEPTED_TYPE_PREFIXES = ("image/", "video/")
MAX_FILE_BYTES = 100 * 1024 * 1024

# Cosmetic progress: not tied to bytes sent
PROGRESS_CAP = 90
PROGRESS_STEP = (5, 15)
PROGRESS_INTERVAL = 0.2


class SessionState(str, enum.Enum):
    idle = "idle"
    selected = "selected"
    uploading = "uploading"
    success = "success"


class InvalidSessionState(Exception):
    pass


class Notifier(Protocol):
    def rejected(self, file: PendingFile, reason: str) -> None: ...

    def progress(self, file: PendingFile, percent: int) -> None: ...

    def file_failed(self, file: PendingFile, reason: str) -> None: ...

    def nothing_uploaded(self) -> None: ...

    def celebrate(self, uploaded: int) -> None: ...


class LoggingNotifier:
    """Default notifier: everything goes to the log."""

    def rejected(self, file, reason):
        logger.warning("upload: skipped %s: %s", file.name, reason)

    def progress(self, file, percent):
        logger.debug("upload: %s %d%%", file.name, percent)

    def file_failed(self, file, reason):
        logger.error("upload: %s failed: %s", file.name, reason)

    def nothing_uploaded(self):
        logger.error("upload: no files were uploaded")

    def celebrate(self, uploaded):
        logger.info("upload: %d file(s) added to the gallery", uploaded)


@dataclass
class FileOutcome:
    file: PendingFile
    ok: bool
    progress: int = 0
    record: dict | None = None
    error: str | None = None
    requested: bool = False  # False when rejected locally without a network call


@dataclass
class BatchResult:
    outcomes: list[FileOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[FileOutcome]:
        return [o for o in self.outcomes if not o.ok]


def is_accepted_type(content_type: str | None) -> bool:
    return (content_type or "").startswith(ACCEPTED_TYPE_PREFIXES)


class UploadSession:
    def __init__(
        self,
        client: GalleryClient,
        *,
        notifier: Notifier | None = None,
        on_success: Callable[[BatchResult], None] | None = None,
        max_file_bytes: int = MAX_FILE_BYTES,
        progress_interval: float = PROGRESS_INTERVAL,
        rng: random.Random | None = None,
    ):
        self.client = client
        self.notifier = notifier or LoggingNotifier()
        self.on_success = on_success
        self.max_file_bytes = max_file_bytes
        self.progress_interval = progress_interval
        self._rng = rng or random.Random()
        self.state = SessionState.idle
        self.pending: list[PendingFile] = []
        self.progress: dict[int, int] = {}  # batch position -> percent
        self.last_result: BatchResult | None = None
        self._celebrated = False

    def select(self, files: Iterable[PendingFile]) -> list[PendingFile]:
        """Append image/video files to the pending set; returns the rejected ones."""
        if self.state in (SessionState.uploading, SessionState.success):
            raise InvalidSessionState(f"cannot select files while {self.state.value}")
        rejected = []
        for f in files:
            if is_accepted_type(f.content_type):
                self.pending.append(f)
            else:
                rejected.append(f)
                self.notifier.rejected(f, f"unsupported file type {f.content_type or 'unknown'!r}")
        if self.pending:
            self.state = SessionState.selected
        return rejected

    def remove(self, file: PendingFile) -> None:
        if self.state != SessionState.selected:
            raise InvalidSessionState(f"cannot remove files while {self.state.value}")
        self.pending.remove(file)
        if not self.pending:
            self.state = SessionState.idle

    def add_more(self) -> None:
        if self.state != SessionState.success:
            raise InvalidSessionState(f"add_more only follows a successful upload, not {self.state.value}")
        self.state = SessionState.idle
        self.progress = {}
        self._celebrated = False

    async def submit(self) -> BatchResult:
        """Upload the pending files in selection order, one request at a time."""
        if self.state != SessionState.selected:
            raise InvalidSessionState(f"nothing to submit while {self.state.value}")
        self.state = SessionState.uploading
        batch = list(self.pending)
        self.progress = {i: 0 for i in range(len(batch))}
        result = BatchResult()
        for i, f in enumerate(batch):
            result.outcomes.append(await self._upload_one(i, f))
        self.last_result = result

        if result.succeeded:
            self.pending = []
            self.state = SessionState.success
            if self.on_success:
                self.on_success(result)
            if not self._celebrated:
                self._celebrated = True
                self.notifier.celebrate(len(result.succeeded))
        else:
            self.pending = []
            self.state = SessionState.idle
            self.notifier.nothing_uploaded()
        logger.info("upload: batch done, %d ok, %d failed", len(result.succeeded), len(result.failed))
        return result

    async def _upload_one(self, i: int, f: PendingFile) -> FileOutcome:
        if f.size > self.max_file_bytes:
            reason = f"file is larger than {self.max_file_bytes // (1024 * 1024)} MB"
            self.notifier.file_failed(f, reason)
            return FileOutcome(file=f, ok=False, error=reason)

        task = asyncio.ensure_future(self.client.upload(f))
        await self._tick_progress(i, f, task)
        try:
            record = task.result()
        except Exception as e:
            # Any failure stays with this file; the batch goes on
            if not isinstance(e, (GalleryApiError, httpx.HTTPError, OSError)):
                logger.exception("upload: unexpected error for %s", f.name)
            self.notifier.file_failed(f, str(e) or type(e).__name__)
            return FileOutcome(file=f, ok=False, progress=self.progress[i], error=str(e), requested=True)

        self._set_progress(i, f, 100)
        return FileOutcome(file=f, ok=True, progress=100, record=record, requested=True)

    async def _tick_progress(self, i: int, f: PendingFile, task: asyncio.Future) -> None:
        while True:
            done, _ = await asyncio.wait({task}, timeout=self.progress_interval)
            if done:
                return
            step = self._rng.randint(*PROGRESS_STEP)
            self._set_progress(i, f, min(PROGRESS_CAP, self.progress[i] + step))

    def _set_progress(self, i: int, f: PendingFile, percent: int) -> None:
        if self.progress.get(i) == percent:
            return
        self.progress[i] = percent
        self.notifier.progress(f, percent)
