"""
Comment service: comments left by users on posts.

Creating a comment on a post id that does not exist is a validation error
rather than a not-found: the caller supplied a bad reference in the input.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quillgraph.errors import ValidationFailure
from quillgraph.models import Comment, Post
from quillgraph.notifier import ChangeNotifier, MutationKind, Topic
from quillgraph.pagination import Page, PageRequest, QuerySource, paginate
from quillgraph.schemas import CommentCreate, CommentUpdate
from quillgraph.services.base import apply_changes, exists, get_owned, isoformat, notify


def comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "content": comment.content,
        "published": comment.published,
        "post_id": comment.post_id,
        "author_id": comment.author_id,
        "created_at": isoformat(comment.created_at),
        "updated_at": isoformat(comment.updated_at),
    }


async def _list_published(db: AsyncSession, *criteria) -> list[dict]:
    q = (
        select(Comment)
        .where(Comment.published.is_(True), *criteria)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    return [comment_to_dict(c) for c in (await db.execute(q)).scalars().all()]


async def list_published_comments(
    db: AsyncSession, request: PageRequest | None = None
) -> Page[dict]:
    page = await paginate(QuerySource(db, Comment, Comment.published.is_(True)), request)
    return page.map(comment_to_dict)


async def list_comments_for_post(db: AsyncSession, post_id: str) -> list[dict]:
    return await _list_published(db, Comment.post_id == post_id)


async def list_comments_by_author(db: AsyncSession, author_id: str) -> list[dict]:
    return await _list_published(db, Comment.author_id == author_id)


async def create_comment(
    db: AsyncSession, notifier: ChangeNotifier, author_id: str, data: CommentCreate
) -> dict:
    if not await exists(db, Post, data.post_id):
        raise ValidationFailure("Post not found")

    comment = Comment(
        content=data.content,
        published=data.published,
        post_id=data.post_id,
        author_id=author_id,
    )
    db.add(comment)
    await db.commit()

    node = comment_to_dict(comment)
    notify(notifier, Topic.COMMENT, MutationKind.CREATED, node, published=comment.published)
    return node


async def update_comment(
    db: AsyncSession,
    notifier: ChangeNotifier,
    caller_id: str,
    comment_id: str,
    data: CommentUpdate,
) -> dict:
    comment = await get_owned(db, Comment, comment_id, "author_id", caller_id, "Comment")

    apply_changes(comment, data)
    await db.commit()

    node = comment_to_dict(comment)
    notify(notifier, Topic.COMMENT, MutationKind.UPDATED, node, published=comment.published)
    return node


async def delete_comment(
    db: AsyncSession, notifier: ChangeNotifier, caller_id: str, comment_id: str
) -> dict:
    comment = await get_owned(db, Comment, comment_id, "author_id", caller_id, "Comment")
    node = comment_to_dict(comment)

    await db.delete(comment)
    await db.commit()

    notify(notifier, Topic.COMMENT, MutationKind.DELETED, node, published=node["published"])
    return node
