"""
Subscription resolvers.

Each resolver registers on the change bus *before* its first ``yield`` and
holds the registration in an ``async with`` block, so a client disconnect
(which cancels the generator) unregisters it right away.
"""
from typing import AsyncGenerator

import strawberry
from strawberry.types import Info

from quillgraph.api.types import Book, ChangePayload, Comment, CountPayload, Post, Review, User
from quillgraph.errors import ValidationFailure
from quillgraph.models import Book as BookModel
from quillgraph.models import Post as PostModel
from quillgraph.notifier import Topic
from quillgraph.services.base import exists


async def _require(info: Info, model: type, record_id: str, label: str) -> None:
    async with info.context.session() as db:
        if not await exists(db, model, record_id):
            raise ValidationFailure(f"{label} not found")


@strawberry.type
class Subscription:
    @strawberry.subscription
    async def post(self, info: Info) -> AsyncGenerator[ChangePayload[Post], None]:
        async with info.context.notifier.subscribe(Topic.POST) as events:
            async for event in events:
                yield ChangePayload(mutation=event.mutation, node=Post.from_dict(event.node))

    @strawberry.subscription
    async def book(self, info: Info) -> AsyncGenerator[ChangePayload[Book], None]:
        async with info.context.notifier.subscribe(Topic.BOOK) as events:
            async for event in events:
                yield ChangePayload(mutation=event.mutation, node=Book.from_dict(event.node))

    @strawberry.subscription
    async def comment(
        self, info: Info, post_id: strawberry.ID
    ) -> AsyncGenerator[ChangePayload[Comment], None]:
        await _require(info, PostModel, post_id, "Post")
        async with info.context.notifier.subscribe(Topic.COMMENT) as events:
            async for event in events:
                if event.node.get("post_id") != post_id:
                    continue
                yield ChangePayload(mutation=event.mutation, node=Comment.from_dict(event.node))

    @strawberry.subscription
    async def review(
        self, info: Info, book_id: strawberry.ID
    ) -> AsyncGenerator[ChangePayload[Review], None]:
        await _require(info, BookModel, book_id, "Book")
        async with info.context.notifier.subscribe(Topic.REVIEW) as events:
            async for event in events:
                if event.node.get("book_id") != book_id:
                    continue
                yield ChangePayload(mutation=event.mutation, node=Review.from_dict(event.node))

    @strawberry.subscription
    async def user(self, info: Info) -> AsyncGenerator[ChangePayload[User], None]:
        info.context.identity(require_auth=True)
        async with info.context.notifier.subscribe(Topic.USER) as events:
            async for event in events:
                yield ChangePayload(mutation=event.mutation, node=User.from_dict(event.node))

    @strawberry.subscription
    async def count(self, info: Info) -> AsyncGenerator[CountPayload, None]:
        """Published post count, pushed whenever it may have changed."""
        async with info.context.notifier.subscribe(Topic.COUNT) as events:
            async for event in events:
                yield CountPayload(mutation=event.mutation, count=event.node["count"])
