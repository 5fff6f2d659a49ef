"""File uploads: multipart GraphQL requests, static serving and deletion."""
import json

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quillgraph.api import mutations
from quillgraph.errors import NotFoundOrForbidden, ValidationFailure
from quillgraph.models import File
from quillgraph.services import file_service
from quillgraph.services.file_service import IncomingFile
from quillgraph.storage import FileStorage, safe_filename
from tests.helpers import error_codes, gql, make_user

UPLOAD = "mutation Upload($file: Upload!) { uploadFile(file: $file) { id filename mimetype size url user { id } } }"
UPLOAD_MANY = "mutation UploadMany($files: [Upload!]!) { uploadMultipleFiles(files: $files) { id size } }"


async def _upload(client: AsyncClient, files: dict, query: str, variables: dict, file_map: dict, token: str | None = None):
    headers = {"Apollo-Require-Preflight": "true"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    response = await client.post(
        "/graphql",
        data={
            "operations": json.dumps({"query": query, "variables": variables}),
            "map": json.dumps(file_map),
        },
        files=files,
        headers=headers,
    )
    assert response.status_code == 200, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Storage helpers
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "raw,expected",
    [
        ("report.pdf", "report.pdf"),
        ("../../etc/passwd", "passwd"),
        ("my photo (1).jpg", "my_photo_1_.jpg"),
        ("", "upload"),
        (None, "upload"),
    ],
)
def test_safe_filename(raw, expected):
    assert safe_filename(raw) == expected


def test_path_for_rejects_escape(storage: FileStorage):
    with pytest.raises(ValueError):
        storage.path_for("../outside.txt")


# ---------------------------------------------------------------------------
# Over HTTP
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_upload_file_and_fetch_it(async_client: AsyncClient, db_session: AsyncSession, notifier, storage):
    user, token = await make_user(db_session, notifier)

    body = await _upload(
        async_client,
        {"0": ("hello.txt", b"hello world", "text/plain")},
        UPLOAD, {"file": None}, {"0": ["variables.file"]},
        token=token,
    )
    assert "errors" not in body, body
    uploaded = body["data"]["uploadFile"]
    assert uploaded["filename"].endswith("-hello.txt")
    assert uploaded["mimetype"] == "text/plain"
    assert uploaded["size"] == 11
    assert uploaded["url"] == f"/uploads/{uploaded['filename']}"
    assert uploaded["user"] == {"id": user["id"]}
    assert await storage.exists(uploaded["filename"])

    response = await async_client.get(uploaded["url"])
    assert response.status_code == 200
    assert response.content == b"hello world"


@pytest.mark.asyncio
async def test_anonymous_upload(async_client: AsyncClient):
    body = await _upload(
        async_client,
        {"0": ("anon.bin", b"\x00\x01", "application/octet-stream")},
        UPLOAD, {"file": None}, {"0": ["variables.file"]},
    )
    assert body["data"]["uploadFile"]["user"] is None


@pytest.mark.asyncio
async def test_upload_multiple_files(async_client: AsyncClient, db_session: AsyncSession, notifier):
    user, token = await make_user(db_session, notifier)
    body = await _upload(
        async_client,
        {"0": ("a.txt", b"a", "text/plain"), "1": ("b.txt", b"bb", "text/plain")},
        UPLOAD_MANY, {"files": [None, None]},
        {"0": ["variables.files.0"], "1": ["variables.files.1"]},
        token=token,
    )
    assert [f["size"] for f in body["data"]["uploadMultipleFiles"]] == [1, 2]

    listed = await gql(
        async_client, "query U($id: ID!) { user(id: $id) { files { size } } }", {"id": user["id"]}
    )
    assert sorted(f["size"] for f in listed["data"]["user"]["files"]) == [1, 2]


@pytest.mark.asyncio
async def test_delete_file_owner_only(async_client: AsyncClient, db_session: AsyncSession, notifier, storage):
    _, alice = await make_user(db_session, notifier)
    _, bob = await make_user(db_session, notifier, email="bob@example.com", name="Bob")
    body = await _upload(
        async_client,
        {"0": ("keep.txt", b"data", "text/plain")},
        UPLOAD, {"file": None}, {"0": ["variables.file"]},
        token=alice,
    )
    uploaded = body["data"]["uploadFile"]
    delete = "mutation D($id: ID!) { deleteFile(id: $id) { id } }"

    body = await gql(async_client, delete, {"id": uploaded["id"]}, token=bob)
    assert error_codes(body) == ["NOT_FOUND_OR_FORBIDDEN"]
    assert await storage.exists(uploaded["filename"])

    body = await gql(async_client, delete, {"id": uploaded["id"]}, token=alice)
    assert body["data"]["deleteFile"] == {"id": uploaded["id"]}
    assert not await storage.exists(uploaded["filename"])


# ---------------------------------------------------------------------------
# Service level
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_anonymous_file_cannot_be_deleted(db_session: AsyncSession, notifier, storage):
    user, _ = await make_user(db_session, notifier)
    record = await file_service.upload_file(
        db_session, storage, None, IncomingFile("x.txt", "text/plain", b"x")
    )
    with pytest.raises(NotFoundOrForbidden):
        await file_service.delete_file(db_session, storage, user["id"], record["id"])


@pytest.mark.asyncio
async def test_delete_succeeds_when_blob_already_gone(db_session: AsyncSession, notifier, storage):
    user, _ = await make_user(db_session, notifier)
    record = await file_service.upload_file(
        db_session, storage, user["id"], IncomingFile("x.txt", "text/plain", b"x")
    )
    await storage.delete(record["filename"])

    deleted = await file_service.delete_file(db_session, storage, user["id"], record["id"])
    assert deleted["id"] == record["id"]
    assert (await db_session.execute(select(File))).scalars().all() == []


@pytest.mark.asyncio
async def test_oversized_upload_is_rejected(db_session: AsyncSession, storage, monkeypatch):
    monkeypatch.setattr(file_service.settings, "MAX_UPLOAD_BYTES", 4)
    with pytest.raises(ValidationFailure):
        await file_service.upload_file(
            db_session, storage, None, IncomingFile("big.bin", None, b"12345")
        )
    assert list(storage.root.iterdir()) == []


@pytest.mark.asyncio
async def test_failed_insert_removes_written_blobs(db_session: AsyncSession, storage, monkeypatch):
    async def failing_commit():
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(db_session, "commit", failing_commit)
    with pytest.raises(RuntimeError):
        await file_service.upload_files(
            db_session, storage, None,
            [IncomingFile("a.txt", None, b"a"), IncomingFile("b.txt", None, b"b")],
        )
    assert list(storage.root.iterdir()) == []


class ChunkedUpload:
    """Stands in for an UploadFile; records how much was read."""

    def __init__(self, data: bytes, filename: str = "blob.bin", content_type: str = "text/plain"):
        self.filename = filename
        self.content_type = content_type
        self._data = data
        self.bytes_read = 0

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data)
        chunk = self._data[self.bytes_read:self.bytes_read + size]
        self.bytes_read += len(chunk)
        return chunk


@pytest.mark.asyncio
async def test_read_upload_collects_every_chunk(monkeypatch):
    monkeypatch.setattr(mutations, "_UPLOAD_CHUNK_BYTES", 3)
    upload = ChunkedUpload(b"hello world")

    incoming = await mutations.read_upload(upload)

    assert incoming == IncomingFile("blob.bin", "text/plain", b"hello world")


@pytest.mark.asyncio
async def test_read_upload_stops_once_over_the_limit(monkeypatch):
    monkeypatch.setattr(mutations, "_UPLOAD_CHUNK_BYTES", 4)
    monkeypatch.setattr(file_service.settings, "MAX_UPLOAD_BYTES", 6)
    upload = ChunkedUpload(b"x" * 1000)

    with pytest.raises(ValidationFailure):
        await mutations.read_upload(upload)
    assert upload.bytes_read == 8


@pytest.mark.asyncio
async def test_oversized_multipart_upload_returns_validation_error(async_client: AsyncClient, monkeypatch):
    monkeypatch.setattr(file_service.settings, "MAX_UPLOAD_BYTES", 4)
    body = await _upload(
        async_client,
        {"0": ("big.txt", b"too large", "text/plain")},
        UPLOAD,
        {"file": None},
        {"0": ["variables.file"]},
    )
    assert error_codes(body) == ["BAD_USER_INPUT"]
