"""
GraphQL object types.

Types are built from the plain dicts the services return.  Scalar fields
are copied; relation fields are resolvers that each run their own query
when selected.  Single-user relations (``author``, ``user``) go through the
per-request DataLoader so that a page of posts costs one user query rather
than one per post.
"""
from typing import Annotated, Generic, Optional, TypeVar, Union

import strawberry
from strawberry.types import Info

from quillgraph import pagination
from quillgraph.notifier import MutationKind
from quillgraph.services import (
    book_service,
    comment_service,
    file_service,
    post_service,
    review_service,
)

T = TypeVar("T")

MutationType = strawberry.enum(MutationKind, name="MutationType")


def _viewer_id(info: Info) -> str:
    return info.context.identity(require_auth=False).user_id


async def _load_user(info: Info, user_id: Optional[str]) -> Optional["User"]:
    if not user_id:
        return None
    data = await info.context.user_loader.load(user_id)
    return User.from_dict(data) if data else None


# ---------------------------------------------------------------------------
# User
# ---------------------------------------------------------------------------

@strawberry.type
class User:
    id: strawberry.ID
    email: str
    name: str
    created_at: str
    updated_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "User":
        return cls(
            id=data["id"],
            email=data["email"],
            name=data["name"],
            created_at=data["created_at"],
            updated_at=data.get("updated_at"),
        )

    @strawberry.field
    async def posts(self, info: Info) -> list["Post"]:
        async with info.context.session() as db:
            rows = await post_service.list_published_posts_for_author(db, self.id)
        return [Post.from_dict(row) for row in rows]

    @strawberry.field
    async def books(self, info: Info) -> list["Book"]:
        async with info.context.session() as db:
            rows = await book_service.list_published_books_for_author(db, self.id)
        return [Book.from_dict(row) for row in rows]

    @strawberry.field
    async def comments(self, info: Info) -> list["Comment"]:
        async with info.context.session() as db:
            rows = await comment_service.list_comments_by_author(db, self.id)
        return [Comment.from_dict(row) for row in rows]

    @strawberry.field
    async def reviews(self, info: Info) -> list["Review"]:
        async with info.context.session() as db:
            rows = await review_service.list_reviews_by_user(db, self.id)
        return [Review.from_dict(row) for row in rows]

    @strawberry.field
    async def files(self, info: Info) -> list["File"]:
        async with info.context.session() as db:
            rows = await file_service.list_files_for_user(db, self.id)
        return [File.from_dict(row) for row in rows]


# ---------------------------------------------------------------------------
# Post
# ---------------------------------------------------------------------------

@strawberry.type
class Post:
    id: strawberry.ID
    title: str
    content: str
    published: bool
    created_at: str
    updated_at: Optional[str] = None
    author_id: strawberry.Private[str] = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Post":
        return cls(
            id=data["id"],
            title=data["title"],
            content=data["content"],
            published=data["published"],
            created_at=data["created_at"],
            updated_at=data.get("updated_at"),
            author_id=data["author_id"],
        )

    @strawberry.field
    async def author(self, info: Info) -> Optional[User]:
        return await _load_user(info, self.author_id)

    @strawberry.field
    async def comments(self, info: Info) -> list["Comment"]:
        async with info.context.session() as db:
            rows = await comment_service.list_comments_for_post(db, self.id)
        return [Comment.from_dict(row) for row in rows]


# ---------------------------------------------------------------------------
# Book
# ---------------------------------------------------------------------------

@strawberry.type
class Book:
    id: strawberry.ID
    title: str
    description: str
    published: bool
    created_at: str
    updated_at: Optional[str] = None
    author_id: strawberry.Private[str] = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Book":
        return cls(
            id=data["id"],
            title=data["title"],
            description=data["description"],
            published=data["published"],
            created_at=data["created_at"],
            updated_at=data.get("updated_at"),
            author_id=data["author_id"],
        )

    @strawberry.field
    async def author(self, info: Info) -> Optional[User]:
        return await _load_user(info, self.author_id)

    @strawberry.field
    async def reviews(self, info: Info) -> list["Review"]:
        async with info.context.session() as db:
            rows = await review_service.list_reviews_for_book(db, self.id)
        return [Review.from_dict(row) for row in rows]


# ---------------------------------------------------------------------------
# Comment
# ---------------------------------------------------------------------------

@strawberry.type
class Comment:
    id: strawberry.ID
    content: str
    published: bool
    created_at: str
    updated_at: Optional[str] = None
    post_id: strawberry.Private[str] = ""
    author_id: strawberry.Private[str] = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Comment":
        return cls(
            id=data["id"],
            content=data["content"],
            published=data["published"],
            created_at=data["created_at"],
            updated_at=data.get("updated_at"),
            post_id=data["post_id"],
            author_id=data["author_id"],
        )

    @strawberry.field
    async def author(self, info: Info) -> Optional[User]:
        return await _load_user(info, self.author_id)

    @strawberry.field
    async def post(self, info: Info) -> Optional[Post]:
        async with info.context.session() as db:
            data = await post_service.get_post(db, self.post_id, viewer_id=_viewer_id(info))
        return Post.from_dict(data) if data else None


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

@strawberry.type
class Review:
    id: strawberry.ID
    rating: int
    published: bool
    created_at: str
    comment: Optional[str] = None
    updated_at: Optional[str] = None
    book_id: strawberry.Private[str] = ""
    user_id: strawberry.Private[str] = ""

    @classmethod
    def from_dict(cls, data: dict) -> "Review":
        return cls(
            id=data["id"],
            comment=data.get("comment"),
            rating=data["rating"],
            published=data["published"],
            created_at=data["created_at"],
            updated_at=data.get("updated_at"),
            book_id=data["book_id"],
            user_id=data["user_id"],
        )

    @strawberry.field
    async def author(self, info: Info) -> Optional[User]:
        return await _load_user(info, self.user_id)

    @strawberry.field
    async def book(self, info: Info) -> Optional[Book]:
        async with info.context.session() as db:
            data = await book_service.get_book(db, self.book_id, viewer_id=_viewer_id(info))
        return Book.from_dict(data) if data else None


# ---------------------------------------------------------------------------
# File
# ---------------------------------------------------------------------------

@strawberry.type
class File:
    id: strawberry.ID
    filename: str
    mimetype: str
    size: int
    url: str
    created_at: str
    user_id: strawberry.Private[Optional[str]] = None

    @classmethod
    def from_dict(cls, data: dict) -> "File":
        return cls(
            id=data["id"],
            filename=data["filename"],
            mimetype=data["mimetype"],
            size=data["size"],
            url=data["url"],
            created_at=data["created_at"],
            user_id=data.get("user_id"),
        )

    @strawberry.field
    async def user(self, info: Info) -> Optional[User]:
        return await _load_user(info, self.user_id)


SearchResult = Annotated[Union[Post, Book], strawberry.union("SearchResult")]


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------

@strawberry.type
class PageInfo:
    has_next_page: bool
    has_previous_page: bool
    start_cursor: Optional[str] = None
    end_cursor: Optional[str] = None


@strawberry.type
class Edge(Generic[T]):
    node: T
    cursor: str


@strawberry.type
class Connection(Generic[T]):
    data: list[Edge[T]]
    page_info: PageInfo
    total_count: int


def to_connection(page: pagination.Page[dict], node_type) -> Connection:
    """Wrap a service ``Page`` of dicts into the GraphQL connection shape."""
    info = page.page_info
    return Connection(
        data=[Edge(node=node_type.from_dict(edge.node), cursor=edge.cursor) for edge in page.items],
        page_info=PageInfo(
            has_next_page=info.has_next_page,
            has_previous_page=info.has_previous_page,
            start_cursor=info.start_cursor,
            end_cursor=info.end_cursor,
        ),
        total_count=page.total_count,
    )


# ---------------------------------------------------------------------------
# Mutation / subscription payloads
# ---------------------------------------------------------------------------

@strawberry.type
class AuthPayload:
    user: User
    token: str


@strawberry.type
class ChangePayload(Generic[T]):
    mutation: MutationType
    node: T


@strawberry.type
class CountPayload:
    mutation: MutationType
    count: int
