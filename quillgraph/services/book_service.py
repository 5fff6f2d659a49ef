"""Book service: same publish/draft rules as posts, without the COUNT feed."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quillgraph.cache import cache
from quillgraph.config import settings
from quillgraph.models import Book
from quillgraph.notifier import ChangeNotifier, MutationKind, Topic
from quillgraph.pagination import Page, PageRequest, QuerySource, paginate
from quillgraph.schemas import BookCreate, BookUpdate
from quillgraph.services.base import apply_changes, get_owned, isoformat, notify

CACHE_KIND = "books"


def book_to_dict(book: Book) -> dict:
    return {
        "id": book.id,
        "title": book.title,
        "description": book.description,
        "published": book.published,
        "author_id": book.author_id,
        "created_at": isoformat(book.created_at),
        "updated_at": isoformat(book.updated_at),
    }


async def get_book(db: AsyncSession, book_id: str, viewer_id: str = "") -> dict | None:
    cache_key = cache.detail_key(CACHE_KIND, book_id)
    data = await cache.get(cache_key)
    if data is None:
        book = await db.get(Book, book_id)
        if book is None:
            return None
        data = book_to_dict(book)
        await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)

    if not data["published"] and data["author_id"] != viewer_id:
        return None
    return data


async def list_published_books(db: AsyncSession, request: PageRequest | None = None) -> Page[dict]:
    page = await paginate(QuerySource(db, Book, Book.published.is_(True)), request)
    return page.map(book_to_dict)


async def list_published_books_for_author(db: AsyncSession, author_id: str) -> list[dict]:
    q = (
        select(Book)
        .where(Book.author_id == author_id, Book.published.is_(True))
        .order_by(Book.created_at.desc(), Book.id.desc())
    )
    return [book_to_dict(b) for b in (await db.execute(q)).scalars().all()]


async def create_book(
    db: AsyncSession, notifier: ChangeNotifier, author_id: str, data: BookCreate
) -> dict:
    book = Book(
        title=data.title,
        description=data.description,
        published=data.published,
        author_id=author_id,
    )
    db.add(book)
    await db.commit()

    node = book_to_dict(book)
    notify(notifier, Topic.BOOK, MutationKind.CREATED, node, published=book.published)
    return node


async def update_book(
    db: AsyncSession,
    notifier: ChangeNotifier,
    caller_id: str,
    book_id: str,
    data: BookUpdate,
) -> dict:
    book = await get_owned(db, Book, book_id, "author_id", caller_id, "Book")

    apply_changes(book, data)
    await db.commit()
    await cache.invalidate(CACHE_KIND, book_id)

    node = book_to_dict(book)
    notify(notifier, Topic.BOOK, MutationKind.UPDATED, node, published=book.published)
    return node


async def delete_book(
    db: AsyncSession, notifier: ChangeNotifier, caller_id: str, book_id: str
) -> dict:
    book = await get_owned(db, Book, book_id, "author_id", caller_id, "Book")
    node = book_to_dict(book)

    await db.delete(book)
    await db.commit()
    await cache.invalidate(CACHE_KIND, book_id)

    notify(notifier, Topic.BOOK, MutationKind.DELETED, node, published=node["published"])
    return node
