"""
User service: accounts, login and token issuing.

A user owns itself: update and delete go through the same ownership check
as every other aggregate, with ``User.id`` as the owner field.  USER events
are always published since users have no ``published`` flag.

Email uniqueness is checked up front so the common case returns a clean
``ValidationFailure``; the unique constraint still guards against races and
is translated the same way.
"""
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from quillgraph.cache import cache
from quillgraph.errors import InvalidCredential, ValidationFailure
from quillgraph.models import Book, Post, User
from quillgraph.notifier import ChangeNotifier, MutationKind, Topic
from quillgraph.pagination import Page, PageRequest, QuerySource, paginate
from quillgraph.schemas import UserCreate, UserLogin, UserUpdate
from quillgraph.security import hash_password, issue_token, verify_password
from quillgraph.services import book_service, post_service
from quillgraph.services.base import get_owned, isoformat, notify
from quillgraph.services.book_service import book_to_dict
from quillgraph.services.post_service import post_to_dict

_DUPLICATE_EMAIL = "A user with this email already exists"


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def user_to_dict(user: User) -> dict:
    """Serialise a User; the password hash never leaves this module."""
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "created_at": isoformat(user.created_at),
        "updated_at": isoformat(user.updated_at),
    }


async def _email_taken(db: AsyncSession, email: str) -> bool:
    q = select(User.id).where(User.email == email)
    return (await db.execute(q)).scalar_one_or_none() is not None


async def _commit_unique(db: AsyncSession) -> None:
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ValidationFailure(_DUPLICATE_EMAIL)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_user(db: AsyncSession, user_id: str) -> dict | None:
    user = await db.get(User, user_id)
    return user_to_dict(user) if user else None


async def get_users_by_ids(db: AsyncSession, user_ids: Sequence[str]) -> list[dict | None]:
    """Batch lookup used by the author DataLoader; result follows *user_ids*."""
    if not user_ids:
        return []
    q = select(User).where(User.id.in_(set(user_ids)))
    found = {u.id: user_to_dict(u) for u in (await db.execute(q)).scalars().all()}
    return [found.get(user_id) for user_id in user_ids]


async def list_users(db: AsyncSession, request: PageRequest | None = None) -> Page[dict]:
    page = await paginate(QuerySource(db, User), request)
    return page.map(user_to_dict)


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_user(db: AsyncSession, notifier: ChangeNotifier, data: UserCreate) -> dict:
    """Register a user and return ``{"user": ..., "token": ...}``."""
    email = data.email.lower()
    if await _email_taken(db, email):
        raise ValidationFailure(_DUPLICATE_EMAIL)

    user = User(email=email, name=data.name, password=hash_password(data.password))
    db.add(user)
    await _commit_unique(db)

    node = user_to_dict(user)
    notify(notifier, Topic.USER, MutationKind.CREATED, node)
    return {"user": node, "token": issue_token(user.id)}


async def login(db: AsyncSession, data: UserLogin) -> dict:
    """
    Exchange email + password for a token.

    Unknown email and wrong password raise the same error.
    """
    q = select(User).where(User.email == data.email.lower())
    user = (await db.execute(q)).scalar_one_or_none()
    if user is None or not verify_password(data.password, user.password):
        raise InvalidCredential("Invalid credentials")
    return {"user": user_to_dict(user), "token": issue_token(user.id)}


async def update_user(
    db: AsyncSession,
    notifier: ChangeNotifier,
    caller_id: str,
    user_id: str,
    data: UserUpdate,
) -> dict:
    user = await get_owned(db, User, user_id, "id", caller_id, "User")

    changes = data.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in changes:
        email = changes["email"].lower()
        if email != user.email and await _email_taken(db, email):
            raise ValidationFailure(_DUPLICATE_EMAIL)
        user.email = email
    if "name" in changes:
        user.name = changes["name"]
    if "password" in changes:
        user.password = hash_password(changes["password"])

    await _commit_unique(db)

    node = user_to_dict(user)
    notify(notifier, Topic.USER, MutationKind.UPDATED, node)
    return node


async def delete_user(
    db: AsyncSession,
    notifier: ChangeNotifier,
    caller_id: str,
    user_id: str,
) -> dict:
    """
    Delete the caller's account; owned posts, books, comments and reviews cascade.

    The cascade runs in the database, so the owned posts and books are read
    first: their cache entries are dropped and their DELETED events are
    published here, as ``delete_post`` / ``delete_book`` would.
    """
    user = await get_owned(db, User, user_id, "id", caller_id, "User")
    node = user_to_dict(user)

    posts_q = select(Post).where(Post.author_id == user_id)
    books_q = select(Book).where(Book.author_id == user_id)
    posts = [post_to_dict(p) for p in (await db.execute(posts_q)).scalars().all()]
    books = [book_to_dict(b) for b in (await db.execute(books_q)).scalars().all()]

    await db.delete(user)
    await db.commit()

    for post in posts:
        await cache.invalidate(post_service.CACHE_KIND, post["id"])
    for book in books:
        await cache.invalidate(book_service.CACHE_KIND, book["id"])

    notify(notifier, Topic.USER, MutationKind.DELETED, node)
    for post in posts:
        notify(notifier, Topic.POST, MutationKind.DELETED, post, published=post["published"])
    for book in books:
        notify(notifier, Topic.BOOK, MutationKind.DELETED, book, published=book["published"])
    if any(post["published"] for post in posts):
        await post_service.publish_count(db, notifier, MutationKind.DELETED)
    return node
