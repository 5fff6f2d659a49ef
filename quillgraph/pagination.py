"""
Offset / cursor pagination over any ordered, filterable record source.

``paginate`` is written against the small ``PageSource`` capability
interface rather than against a model, so the same algorithm serves every
entity kind (and an in-memory list in tests).  ``QuerySource`` is the
SQLAlchemy implementation used by the services.

Ordering is ``created_at DESC, id DESC``.  The id tiebreak keeps page
boundaries stable when several rows share a timestamp.

Cursor semantics
----------------
A cursor is the id of the last record the client has seen.  The next page
starts strictly after it.  A cursor that does not resolve to a record inside
the filtered set (deleted, unpublished, or never existed) yields an empty
page instead of an error: there is no position to anchor on.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Protocol, Sequence, TypeVar

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from quillgraph.errors import ValidationFailure

T = TypeVar("T")
U = TypeVar("U")

DEFAULT_TAKE = 10


@dataclass(frozen=True)
class PageRequest:
    skip: int = 0
    take: int = DEFAULT_TAKE
    cursor: str | None = None

    def __post_init__(self) -> None:
        if self.skip < 0:
            raise ValidationFailure("skip must be >= 0")
        if self.take < 0:
            raise ValidationFailure("take must be >= 0")

    @property
    def offset(self) -> int:
        """Rows to skip; ignored once a cursor is given."""
        return 0 if self.cursor else self.skip


@dataclass(frozen=True)
class Edge(Generic[T]):
    node: T
    cursor: str


@dataclass(frozen=True)
class PageInfo:
    has_next_page: bool
    has_previous_page: bool
    start_cursor: str | None = None
    end_cursor: str | None = None


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[Edge[T]]
    page_info: PageInfo
    total_count: int

    @property
    def nodes(self) -> list[T]:
        return [edge.node for edge in self.items]

    def map(self, fn: Callable[[T], U]) -> Page[U]:
        """Return the same page with every node passed through *fn*."""
        return Page(
            items=[Edge(node=fn(edge.node), cursor=edge.cursor) for edge in self.items],
            page_info=self.page_info,
            total_count=self.total_count,
        )


class PageSource(Protocol[T]):
    """What ``paginate`` needs from a record source bound to one filter."""

    async def count(self) -> int: ...

    async def fetch(self, *, limit: int, offset: int = 0, after: str | None = None) -> Sequence[T]: ...

    def cursor_of(self, item: T) -> str: ...


async def paginate(source: PageSource[T], request: PageRequest | None = None) -> Page[T]:
    request = request or PageRequest()

    total_count = await source.count()

    rows = list(
        await source.fetch(limit=request.take + 1, offset=request.offset, after=request.cursor)
    )
    has_next_page = len(rows) > request.take
    rows = rows[: request.take]

    items = [Edge(node=row, cursor=source.cursor_of(row)) for row in rows]
    return Page(
        items=items,
        page_info=PageInfo(
            has_next_page=has_next_page,
            # Only offset mode tracks a previous page; cursor mode reports False.
            has_previous_page=request.cursor is None and request.skip > 0,
            start_cursor=items[0].cursor if items else None,
            end_cursor=items[-1].cursor if items else None,
        ),
        total_count=total_count,
    )


class QuerySource(Generic[T]):
    """
    ``PageSource`` over a mapped model filtered by SQLAlchemy *criteria*.

    The model must expose ``id`` and ``created_at`` columns.
    """

    def __init__(self, db: AsyncSession, model: type[T], *criteria: Any) -> None:
        self.db = db
        self.model = model
        self.criteria = criteria

    async def count(self) -> int:
        q = select(func.count()).select_from(self.model).where(*self.criteria)
        return (await self.db.execute(q)).scalar_one()

    async def fetch(self, *, limit: int, offset: int = 0, after: str | None = None) -> Sequence[T]:
        model = self.model
        q = (
            select(model)
            .where(*self.criteria)
            .order_by(model.created_at.desc(), model.id.desc())
            .limit(limit)
        )

        if after is not None:
            anchor_q = select(model.created_at, model.id).where(model.id == after, *self.criteria)
            anchor = (await self.db.execute(anchor_q)).one_or_none()
            if anchor is None:
                return []
            q = q.where(
                or_(
                    model.created_at < anchor.created_at,
                    and_(model.created_at == anchor.created_at, model.id < anchor.id),
                )
            )
        elif offset:
            q = q.offset(offset)

        return (await self.db.execute(q)).scalars().all()

    def cursor_of(self, item: T) -> str:
        return item.id
