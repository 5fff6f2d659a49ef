"""Helpers shared by the per-aggregate service modules."""
from datetime import datetime
from typing import Any, TypeVar

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quillgraph.errors import NotFoundOrForbidden
from quillgraph.notifier import ChangeEvent, ChangeNotifier, MutationKind, Topic

M = TypeVar("M")


def isoformat(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


async def get_owned(
    db: AsyncSession,
    model: type[M],
    record_id: str,
    owner_attr: str,
    user_id: str,
    label: str,
) -> M:
    """
    Load *record_id* and return it only if ``record.<owner_attr> == user_id``.

    A missing record and a record owned by someone else raise the same
    ``NotFoundOrForbidden`` with the same message.
    """
    record = await db.get(model, record_id)
    if record is None or getattr(record, owner_attr) != user_id:
        raise NotFoundOrForbidden(f"{label} not found or access denied")
    return record


async def exists(db: AsyncSession, model: type, record_id: str) -> bool:
    q = select(model.id).where(model.id == record_id)
    return (await db.execute(q)).scalar_one_or_none() is not None


def apply_changes(record: Any, data: BaseModel) -> dict:
    """
    Copy the fields explicitly set on *data* onto *record*.

    Explicit nulls are skipped: every updatable column is NOT NULL except
    ``Review.comment``, which callers clear with an empty string.
    """
    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    for name, value in changes.items():
        setattr(record, name, value)
    return changes


def notify(
    notifier: ChangeNotifier,
    topic: Topic,
    mutation: MutationKind,
    node: dict,
    published: bool = True,
) -> None:
    """Publish a change event unless the written record is unpublished."""
    if published:
        notifier.publish(ChangeEvent(topic=topic, mutation=mutation, node=node))
