"""
Post service: business logic for the Post aggregate.

Design notes
------------
- Public listings only include ``published`` posts; ``list_posts_by_author``
  backs "my posts" and includes drafts.
- A draft is visible through ``get_post`` to its author only.  Anyone else
  gets ``None``, exactly as for a missing id.
- POST events are published only when the written post is published.
- Whenever the number of published posts can have changed, a COUNT event
  carrying the new total is published as well.
- Detail reads go through the cache-aside pattern; writes invalidate the
  entry of the post they touch.
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from quillgraph.cache import cache
from quillgraph.config import settings
from quillgraph.models import Post
from quillgraph.notifier import ChangeNotifier, MutationKind, Topic
from quillgraph.pagination import Page, PageRequest, QuerySource, paginate
from quillgraph.schemas import PostCreate, PostUpdate
from quillgraph.services.base import apply_changes, get_owned, isoformat, notify

CACHE_KIND = "posts"


def post_to_dict(post: Post) -> dict:
    return {
        "id": post.id,
        "title": post.title,
        "content": post.content,
        "published": post.published,
        "author_id": post.author_id,
        "created_at": isoformat(post.created_at),
        "updated_at": isoformat(post.updated_at),
    }


async def count_published_posts(db: AsyncSession) -> int:
    q = select(func.count()).select_from(Post).where(Post.published.is_(True))
    return (await db.execute(q)).scalar_one()


async def publish_count(db: AsyncSession, notifier: ChangeNotifier, mutation: MutationKind) -> None:
    count = await count_published_posts(db)
    notify(notifier, Topic.COUNT, mutation, {"count": count})


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_post(db: AsyncSession, post_id: str, viewer_id: str = "") -> dict | None:
    """Return the post, or None when it is missing or a draft of someone else."""
    cache_key = cache.detail_key(CACHE_KIND, post_id)
    data = await cache.get(cache_key)
    if data is None:
        post = await db.get(Post, post_id)
        if post is None:
            return None
        data = post_to_dict(post)
        await cache.set(cache_key, data, ttl=settings.CACHE_TTL_DETAIL)

    if not data["published"] and data["author_id"] != viewer_id:
        return None
    return data


async def list_published_posts(db: AsyncSession, request: PageRequest | None = None) -> Page[dict]:
    page = await paginate(QuerySource(db, Post, Post.published.is_(True)), request)
    return page.map(post_to_dict)


async def list_posts_by_author(
    db: AsyncSession, author_id: str, request: PageRequest | None = None
) -> Page[dict]:
    """All posts of *author_id*, drafts included."""
    page = await paginate(QuerySource(db, Post, Post.author_id == author_id), request)
    return page.map(post_to_dict)


async def list_published_posts_for_author(db: AsyncSession, author_id: str) -> list[dict]:
    q = (
        select(Post)
        .where(Post.author_id == author_id, Post.published.is_(True))
        .order_by(Post.created_at.desc(), Post.id.desc())
    )
    return [post_to_dict(p) for p in (await db.execute(q)).scalars().all()]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_post(
    db: AsyncSession, notifier: ChangeNotifier, author_id: str, data: PostCreate
) -> dict:
    post = Post(
        title=data.title,
        content=data.content,
        published=data.published,
        author_id=author_id,
    )
    db.add(post)
    await db.commit()

    node = post_to_dict(post)
    notify(notifier, Topic.POST, MutationKind.CREATED, node, published=post.published)
    if post.published:
        await publish_count(db, notifier, MutationKind.CREATED)
    return node


async def update_post(
    db: AsyncSession,
    notifier: ChangeNotifier,
    caller_id: str,
    post_id: str,
    data: PostUpdate,
) -> dict:
    post = await get_owned(db, Post, post_id, "author_id", caller_id, "Post")
    was_published = post.published

    apply_changes(post, data)
    await db.commit()
    await cache.invalidate(CACHE_KIND, post_id)

    node = post_to_dict(post)
    notify(notifier, Topic.POST, MutationKind.UPDATED, node, published=post.published)
    if post.published != was_published:
        await publish_count(db, notifier, MutationKind.UPDATED)
    return node


async def delete_post(
    db: AsyncSession, notifier: ChangeNotifier, caller_id: str, post_id: str
) -> dict:
    post = await get_owned(db, Post, post_id, "author_id", caller_id, "Post")
    node = post_to_dict(post)

    await db.delete(post)
    await db.commit()
    await cache.invalidate(CACHE_KIND, post_id)

    notify(notifier, Topic.POST, MutationKind.DELETED, node, published=node["published"])
    if node["published"]:
        await publish_count(db, notifier, MutationKind.DELETED)
    return node
