"""Review service: 1 to 5 star ratings of books, owned through ``Review.user_id``."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quillgraph.errors import ValidationFailure
from quillgraph.models import Book, Review
from quillgraph.notifier import ChangeNotifier, MutationKind, Topic
from quillgraph.pagination import Page, PageRequest, QuerySource, paginate
from quillgraph.schemas import ReviewCreate, ReviewUpdate
from quillgraph.services.base import apply_changes, exists, get_owned, isoformat, notify


def review_to_dict(review: Review) -> dict:
    return {
        "id": review.id,
        "comment": review.comment,
        "rating": review.rating,
        "published": review.published,
        "book_id": review.book_id,
        "user_id": review.user_id,
        "created_at": isoformat(review.created_at),
        "updated_at": isoformat(review.updated_at),
    }


async def _list_published(db: AsyncSession, *criteria) -> list[dict]:
    q = (
        select(Review)
        .where(Review.published.is_(True), *criteria)
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    return [review_to_dict(r) for r in (await db.execute(q)).scalars().all()]


async def list_published_reviews(
    db: AsyncSession, request: PageRequest | None = None
) -> Page[dict]:
    page = await paginate(QuerySource(db, Review, Review.published.is_(True)), request)
    return page.map(review_to_dict)


async def list_reviews_for_book(db: AsyncSession, book_id: str) -> list[dict]:
    return await _list_published(db, Review.book_id == book_id)


async def list_reviews_by_user(db: AsyncSession, user_id: str) -> list[dict]:
    return await _list_published(db, Review.user_id == user_id)


async def create_review(
    db: AsyncSession, notifier: ChangeNotifier, user_id: str, data: ReviewCreate
) -> dict:
    if not await exists(db, Book, data.book_id):
        raise ValidationFailure("Book not found")

    review = Review(
        comment=data.comment,
        rating=data.rating,
        published=data.published,
        book_id=data.book_id,
        user_id=user_id,
    )
    db.add(review)
    await db.commit()

    node = review_to_dict(review)
    notify(notifier, Topic.REVIEW, MutationKind.CREATED, node, published=review.published)
    return node


async def update_review(
    db: AsyncSession,
    notifier: ChangeNotifier,
    caller_id: str,
    review_id: str,
    data: ReviewUpdate,
) -> dict:
    review = await get_owned(db, Review, review_id, "user_id", caller_id, "Review")

    apply_changes(review, data)
    await db.commit()

    node = review_to_dict(review)
    notify(notifier, Topic.REVIEW, MutationKind.UPDATED, node, published=review.published)
    return node


async def delete_review(
    db: AsyncSession, notifier: ChangeNotifier, caller_id: str, review_id: str
) -> dict:
    review = await get_owned(db, Review, review_id, "user_id", caller_id, "Review")
    node = review_to_dict(review)

    await db.delete(review)
    await db.commit()

    notify(notifier, Topic.REVIEW, MutationKind.DELETED, node, published=node["published"])
    return node
