"""
Search service: case-insensitive substring search over published posts
(title, content) and published books (title, description).
"""
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from quillgraph.models import Book, Post
from quillgraph.services.book_service import book_to_dict
from quillgraph.services.post_service import post_to_dict

SEARCH_LIMIT = 50


async def search(db: AsyncSession, text: str, limit: int = SEARCH_LIMIT) -> list[tuple[str, dict]]:
    """
    Return ``(kind, record)`` pairs, posts first then books, newest first
    within each kind.  ``kind`` is ``"post"`` or ``"book"``.
    """
    text = text.strip()
    if not text:
        return []

    posts_q = (
        select(Post)
        .where(
            Post.published.is_(True),
            or_(Post.title.icontains(text, autoescape=True), Post.content.icontains(text, autoescape=True)),
        )
        .order_by(Post.created_at.desc(), Post.id.desc())
        .limit(limit)
    )
    books_q = (
        select(Book)
        .where(
            Book.published.is_(True),
            or_(Book.title.icontains(text, autoescape=True), Book.description.icontains(text, autoescape=True)),
        )
        .order_by(Book.created_at.desc(), Book.id.desc())
        .limit(limit)
    )

    posts = (await db.execute(posts_q)).scalars().all()
    books = (await db.execute(books_q)).scalars().all()
    return [("post", post_to_dict(p)) for p in posts] + [("book", book_to_dict(b)) for b in books]
