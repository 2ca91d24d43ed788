import asyncio
import random

import httpx
import pytest

from gallery_client.api import GalleryClient, PendingFile
from gallery_client.session import (
    MAX_FILE_BYTES,
    PROGRESS_CAP,
    InvalidSessionState,
    SessionState,
    UploadSession,
)


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def rejected(self, file, reason):
        self.events.append(("rejected", file.name))

    def progress(self, file, percent):
        self.events.append(("progress", file.name, percent))

    def file_failed(self, file, reason):
        self.events.append(("failed", file.name, reason))

    def nothing_uploaded(self):
        self.events.append(("nothing_uploaded",))

    def celebrate(self, uploaded):
        self.events.append(("celebrate", uploaded))

    def of(self, kind):
        return [e for e in self.events if e[0] == kind]


def _file(tmp_path, name, content_type, data=b"data"):
    path = tmp_path / name
    path.write_bytes(data)
    return PendingFile(path=path, name=name, content_type=content_type, size=len(data))


def _mock_client(handler):
    return GalleryClient("http://gallery.test", transport=httpx.MockTransport(handler))


def _uploaded_name(request: httpx.Request) -> str:
    # multipart body carries filename="..."
    body = request.read().decode("latin-1")
    return body.split('filename="', 1)[1].split('"', 1)[0]


def _ok_handler(seen, fail_names=()):
    def handler(request):
        name = _uploaded_name(request)
        seen.append(name)
        if name in fail_names:
            return httpx.Response(500, json={"error": "Error uploading photo"})
        return httpx.Response(201, json={"id": name, "url": f"https://media.example.test/{name}", "created_at": 1, "type": "image"})

    return handler


def test_select_keeps_only_images_and_videos(tmp_path):
    notifier = RecordingNotifier()
    session = UploadSession(_mock_client(_ok_handler([])), notifier=notifier)
    photo = _file(tmp_path, "a.jpg", "image/jpeg")
    doc = _file(tmp_path, "menu.pdf", "application/pdf")
    clip = _file(tmp_path, "b.mp4", "video/mp4")
    unknown = _file(tmp_path, "c", "")

    rejected = session.select([photo, doc, clip, unknown])

    assert rejected == [doc, unknown]
    assert session.pending == [photo, clip]
    assert session.state == SessionState.selected
    assert notifier.of("rejected") == [("rejected", "menu.pdf"), ("rejected", "c")]


def test_select_appends_across_picks(tmp_path):
    session = UploadSession(_mock_client(_ok_handler([])), notifier=RecordingNotifier())
    first = _file(tmp_path, "a.jpg", "image/jpeg")
    second = _file(tmp_path, "b.png", "image/png")
    session.select([first])
    session.select([second])
    assert session.pending == [first, second]


def test_select_only_rejections_stays_idle(tmp_path):
    session = UploadSession(_mock_client(_ok_handler([])), notifier=RecordingNotifier())
    session.select([_file(tmp_path, "x.txt", "text/plain")])
    assert session.state == SessionState.idle
    assert session.pending == []


def test_remove_last_file_returns_to_idle(tmp_path):
    session = UploadSession(_mock_client(_ok_handler([])), notifier=RecordingNotifier())
    a = _file(tmp_path, "a.jpg", "image/jpeg")
    b = _file(tmp_path, "b.jpg", "image/jpeg")
    session.select([a, b])
    session.remove(a)
    assert session.state == SessionState.selected
    session.remove(b)
    assert session.state == SessionState.idle


def test_submit_is_sequential_and_best_effort(tmp_path):
    seen = []
    notifier = RecordingNotifier()
    batches = []
    session = UploadSession(
        _mock_client(_ok_handler(seen, fail_names={"b.jpg"})),
        notifier=notifier,
        on_success=batches.append,
        progress_interval=0.001,
    )
    files = [_file(tmp_path, n, "image/jpeg") for n in ("a.jpg", "b.jpg", "c.jpg")]
    session.select(files)

    result = asyncio.run(session.submit())

    assert seen == ["a.jpg", "b.jpg", "c.jpg"]
    assert [o.ok for o in result.outcomes] == [True, False, True]
    assert session.state == SessionState.success
    assert session.pending == []
    assert batches == [result]
    assert [e[1] for e in notifier.of("failed")] == ["b.jpg"]
    assert notifier.of("celebrate") == [("celebrate", 2)]
    assert session.progress[0] == 100
    assert session.progress[2] == 100
    assert session.progress[1] < 100


def test_submit_with_no_successes_returns_to_idle(tmp_path):
    notifier = RecordingNotifier()
    batches = []
    session = UploadSession(
        _mock_client(_ok_handler([], fail_names={"a.jpg", "b.mp4"})),
        notifier=notifier,
        on_success=batches.append,
        progress_interval=0.001,
    )
    session.select([_file(tmp_path, "a.jpg", "image/jpeg"), _file(tmp_path, "b.mp4", "video/mp4")])

    result = asyncio.run(session.submit())

    assert result.succeeded == []
    assert session.state == SessionState.idle
    assert session.pending == []
    assert batches == []
    assert notifier.of("nothing_uploaded") == [("nothing_uploaded",)]
    assert notifier.of("celebrate") == []


def test_oversized_file_is_never_sent(tmp_path):
    seen = []
    notifier = RecordingNotifier()
    session = UploadSession(_mock_client(_ok_handler(seen)), notifier=notifier, progress_interval=0.001)
    huge = PendingFile(path=tmp_path / "wedding.mov", name="wedding.mov", content_type="video/quicktime", size=MAX_FILE_BYTES + 1)
    small = _file(tmp_path, "toast.jpg", "image/jpeg")
    session.select([huge, small])

    result = asyncio.run(session.submit())

    assert seen == ["toast.jpg"]
    oversized = result.outcomes[0]
    assert not oversized.ok
    assert not oversized.requested
    assert [e[1] for e in notifier.of("failed")] == ["wedding.mov"]
    assert session.state == SessionState.success


def test_network_error_counts_as_failure(tmp_path):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    notifier = RecordingNotifier()
    session = UploadSession(_mock_client(handler), notifier=notifier, progress_interval=0.001)
    session.select([_file(tmp_path, "a.jpg", "image/jpeg")])
    result = asyncio.run(session.submit())
    assert result.failed[0].requested
    assert session.state == SessionState.idle


def test_progress_is_capped_until_the_request_finishes(tmp_path):
    async def slow_handler(request):
        await asyncio.sleep(0.05)
        return httpx.Response(201, json={"id": "x", "url": "https://media.example.test/x.jpg", "created_at": 1, "type": "image"})

    notifier = RecordingNotifier()
    session = UploadSession(
        _mock_client(slow_handler),
        notifier=notifier,
        progress_interval=0.001,
        rng=random.Random(7),
    )
    session.select([_file(tmp_path, "a.jpg", "image/jpeg")])
    asyncio.run(session.submit())

    values = [e[2] for e in notifier.of("progress")]
    assert values[-1] == 100
    assert all(v <= PROGRESS_CAP for v in values[:-1])
    assert values == sorted(values)


def test_add_more_after_success(tmp_path):
    session = UploadSession(_mock_client(_ok_handler([])), notifier=RecordingNotifier(), progress_interval=0.001)
    session.select([_file(tmp_path, "a.jpg", "image/jpeg")])
    asyncio.run(session.submit())

    with pytest.raises(InvalidSessionState):
        session.select([_file(tmp_path, "b.jpg", "image/jpeg")])
    session.add_more()
    assert session.state == SessionState.idle
    session.select([_file(tmp_path, "b.jpg", "image/jpeg")])
    assert session.state == SessionState.selected


def test_submit_needs_selected_files(tmp_path):
    session = UploadSession(_mock_client(_ok_handler([])), notifier=RecordingNotifier())
    with pytest.raises(InvalidSessionState):
        asyncio.run(session.submit())


def test_pending_file_from_path_guesses_type(tmp_path):
    path = tmp_path / "IMG_0042.jpeg"
    path.write_bytes(b"12345")
    f = PendingFile.from_path(path)
    assert f.name == "IMG_0042.jpeg"
    assert f.content_type == "image/jpeg"
    assert f.size == 5


def test_batch_against_api_records_exactly_the_successes(app, tmp_path):
    """Guest flow end to end: k of N files go through and exactly k rows are listed."""

    async def run():
        transport = httpx.ASGITransport(app=app)
        async with GalleryClient("http://testserver", transport=transport) as client:
            session = UploadSession(client, notifier=RecordingNotifier(), progress_interval=0.001)
            session.select([
                _file(tmp_path, "ceremony.jpg", "image/jpeg"),
                _file(tmp_path, "seating.pdf", "application/pdf"),
                PendingFile(path=tmp_path / "full.mov", name="full.mov", content_type="video/quicktime", size=MAX_FILE_BYTES + 1),
                _file(tmp_path, "first-dance.mp4", "video/mp4"),
            ])
            result = await session.submit()
            listed = await client.list_photos()
            return session, result, listed

    session, result, listed = asyncio.run(run())

    assert session.state == SessionState.success
    assert len(result.succeeded) == 2
    assert sorted(r["id"] for r in listed) == sorted(o.record["id"] for o in result.succeeded)
    assert {r["type"] for r in listed} == {"image", "video"}


def test_client_delete_and_admin_check(app, upload, tmp_path):
    created = upload().json()

    async def run():
        transport = httpx.ASGITransport(app=app)
        async with GalleryClient("http://testserver", admin_token="test-admin-token", transport=transport) as admin:
            ok = await admin.verify_admin()
            await admin.delete_photo(created["id"])
            remaining = await admin.list_photos()
        async with GalleryClient("http://testserver", admin_token="wrong", transport=transport) as guest:
            denied = await guest.verify_admin()
        return ok, remaining, denied

    ok, remaining, denied = asyncio.run(run())
    assert ok is True
    assert remaining == []
    assert denied is False


def test_unexpected_error_fails_only_that_file(tmp_path):
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            raise RuntimeError("transport bug")
        return httpx.Response(201, json={"id": "b", "url": "https://media.example.test/b.jpg", "created_at": 1, "type": "image"})

    notifier = RecordingNotifier()
    session = UploadSession(_mock_client(handler), notifier=notifier, progress_interval=0.001)
    session.select([_file(tmp_path, "a.jpg", "image/jpeg"), _file(tmp_path, "b.jpg", "image/jpeg")])

    result = asyncio.run(session.submit())

    assert [o.ok for o in result.outcomes] == [False, True]
    assert [e[1] for e in notifier.of("failed")] == ["a.jpg"]
    assert session.state == SessionState.success


def test_unexpected_error_on_every_file_leaves_session_usable(tmp_path):
    def handler(request):
        raise RuntimeError("transport bug")

    session = UploadSession(_mock_client(handler), notifier=RecordingNotifier(), progress_interval=0.001)
    session.select([_file(tmp_path, "a.jpg", "image/jpeg")])
    asyncio.run(session.submit())

    assert session.state == SessionState.idle
    session.select([_file(tmp_path, "b.jpg", "image/jpeg")])
    assert session.state == SessionState.selected


def test_same_file_picked_twice_gets_its_own_progress(tmp_path):
    async def slow_handler(request):
        await asyncio.sleep(0.02)
        return httpx.Response(201, json={"id": "x", "url": "https://media.example.test/x.jpg", "created_at": 1, "type": "image"})

    notifier = RecordingNotifier()
    session = UploadSession(_mock_client(slow_handler), notifier=notifier, progress_interval=0.001, rng=random.Random(3))
    photo = _file(tmp_path, "a.jpg", "image/jpeg")
    session.select([photo])
    session.select([photo])

    result = asyncio.run(session.submit())

    assert len(result.succeeded) == 2
    assert session.progress == {0: 100, 1: 100}
    values = [e[2] for e in notifier.of("progress")]
    first_done = values.index(100)
    # second upload restarts from zero instead of inheriting the first one's 100
    assert values[first_done + 1] <= PROGRESS_CAP
    assert values.count(100) == 2
