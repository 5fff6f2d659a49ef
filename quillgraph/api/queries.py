from typing import Optional

import strawberry
from strawberry.types import Info

from quillgraph.api.inputs import PaginationInput, page_request
from quillgraph.api.types import (
    Book,
    Comment,
    Connection,
    Post,
    Review,
    SearchResult,
    User,
    to_connection,
)
from quillgraph.services import (
    book_service,
    comment_service,
    post_service,
    review_service,
    search_service,
    user_service,
)


@strawberry.type
class Query:
    # --- Users ---

    @strawberry.field
    async def me(self, info: Info) -> Optional[User]:
        identity = info.context.identity(require_auth=True)
        async with info.context.session() as db:
            data = await user_service.get_user(db, identity.user_id)
        return User.from_dict(data) if data else None

    @strawberry.field
    async def users(
        self, info: Info, pagination: Optional[PaginationInput] = None
    ) -> Connection[User]:
        async with info.context.session() as db:
            page = await user_service.list_users(db, page_request(pagination))
        return to_connection(page, User)

    @strawberry.field
    async def user(self, info: Info, id: strawberry.ID) -> Optional[User]:
        async with info.context.session() as db:
            data = await user_service.get_user(db, id)
        return User.from_dict(data) if data else None

    # --- Posts ---

    @strawberry.field
    async def posts(
        self, info: Info, pagination: Optional[PaginationInput] = None
    ) -> Connection[Post]:
        async with info.context.session() as db:
            page = await post_service.list_published_posts(db, page_request(pagination))
        return to_connection(page, Post)

    @strawberry.field
    async def post(self, info: Info, id: strawberry.ID) -> Optional[Post]:
        viewer = info.context.identity(require_auth=False)
        async with info.context.session() as db:
            data = await post_service.get_post(db, id, viewer_id=viewer.user_id)
        return Post.from_dict(data) if data else None

    @strawberry.field
    async def my_posts(
        self, info: Info, pagination: Optional[PaginationInput] = None
    ) -> Connection[Post]:
        identity = info.context.identity(require_auth=True)
        async with info.context.session() as db:
            page = await post_service.list_posts_by_author(
                db, identity.user_id, page_request(pagination)
            )
        return to_connection(page, Post)

    # --- Books ---

    @strawberry.field
    async def books(
        self, info: Info, pagination: Optional[PaginationInput] = None
    ) -> Connection[Book]:
        async with info.context.session() as db:
            page = await book_service.list_published_books(db, page_request(pagination))
        return to_connection(page, Book)

    @strawberry.field
    async def book(self, info: Info, id: strawberry.ID) -> Optional[Book]:
        viewer = info.context.identity(require_auth=False)
        async with info.context.session() as db:
            data = await book_service.get_book(db, id, viewer_id=viewer.user_id)
        return Book.from_dict(data) if data else None

    # --- Comments / reviews ---

    @strawberry.field
    async def comments(
        self, info: Info, pagination: Optional[PaginationInput] = None
    ) -> Connection[Comment]:
        async with info.context.session() as db:
            page = await comment_service.list_published_comments(db, page_request(pagination))
        return to_connection(page, Comment)

    @strawberry.field
    async def reviews(
        self, info: Info, pagination: Optional[PaginationInput] = None
    ) -> Connection[Review]:
        async with info.context.session() as db:
            page = await review_service.list_published_reviews(db, page_request(pagination))
        return to_connection(page, Review)

    # --- Search ---

    @strawberry.field
    async def search(self, info: Info, query: str) -> list[SearchResult]:
        async with info.context.session() as db:
            hits = await search_service.search(db, query)
        return [Post.from_dict(data) if kind == "post" else Book.from_dict(data) for kind, data in hits]
