"""
File service: uploaded blobs and the metadata records that link them to
an (optional) owner.

Uploads may be anonymous.  Deleting requires the caller to own the file;
anonymous files have no owner and can therefore never be deleted through
the API.

Failure handling
----------------
- Blob written, record insert fails: the blob is removed again and the
  original error propagates.
- Record deleted, blob removal fails: logged, the delete still succeeds.
  The primary effect (the record) is gone and the blob is unreachable.
"""
import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quillgraph.config import settings
from quillgraph.errors import ValidationFailure
from quillgraph.models import File
from quillgraph.services.base import get_owned, isoformat
from quillgraph.storage import FileStorage

logger = logging.getLogger(__name__)

_DEFAULT_MIMETYPE = "application/octet-stream"


@dataclass(frozen=True)
class IncomingFile:
    filename: str | None
    mimetype: str | None
    data: bytes


def file_to_dict(record: File) -> dict:
    return {
        "id": record.id,
        "filename": record.filename,
        "mimetype": record.mimetype,
        "size": record.size,
        "url": record.url,
        "user_id": record.user_id,
        "created_at": isoformat(record.created_at),
    }


def check_size(size: int) -> None:
    if size > settings.MAX_UPLOAD_BYTES:
        raise ValidationFailure(
            f"File exceeds the {settings.MAX_UPLOAD_BYTES} byte upload limit"
        )


async def _discard_blobs(storage: FileStorage, names: list[str]) -> None:
    for name in names:
        try:
            await storage.delete(name)
        except OSError as exc:
            logger.warning("Failed to remove orphaned blob %s: %s", name, exc)


async def upload_files(
    db: AsyncSession,
    storage: FileStorage,
    user_id: str | None,
    files: list[IncomingFile],
) -> list[dict]:
    """Store every blob and insert all records in one commit."""
    for incoming in files:
        check_size(len(incoming.data))

    written: list[str] = []
    records: list[File] = []
    try:
        for incoming in files:
            name = storage.unique_name(incoming.filename)
            await storage.write(name, incoming.data)
            written.append(name)
            record = File(
                filename=name,
                mimetype=incoming.mimetype or _DEFAULT_MIMETYPE,
                size=len(incoming.data),
                url=storage.url_for(name),
                user_id=user_id or None,
            )
            db.add(record)
            records.append(record)
        await db.commit()
    except Exception:
        await db.rollback()
        await _discard_blobs(storage, written)
        raise

    logger.info("Stored %d upload(s) for %s", len(records), user_id or "anonymous")
    return [file_to_dict(r) for r in records]


async def upload_file(
    db: AsyncSession,
    storage: FileStorage,
    user_id: str | None,
    incoming: IncomingFile,
) -> dict:
    (record,) = await upload_files(db, storage, user_id, [incoming])
    return record


async def delete_file(
    db: AsyncSession,
    storage: FileStorage,
    caller_id: str,
    file_id: str,
) -> dict:
    record = await get_owned(db, File, file_id, "user_id", caller_id, "File")
    data = file_to_dict(record)

    await db.delete(record)
    await db.commit()

    try:
        await storage.delete(record.filename)
    except OSError as exc:
        logger.warning("Failed to delete blob %s from storage: %s", record.filename, exc)
    return data


async def list_files_for_user(db: AsyncSession, user_id: str) -> list[dict]:
    q = (
        select(File)
        .where(File.user_id == user_id)
        .order_by(File.created_at.desc(), File.id.desc())
    )
    return [file_to_dict(f) for f in (await db.execute(q)).scalars().all()]
