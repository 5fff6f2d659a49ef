"""
GraphQL input types and their conversion to validated pydantic models.

Update inputs default every field to ``UNSET`` so that only the fields a
client actually sent reach the service (``model_dump(exclude_unset=True)``).
"""
from typing import Optional, TypeVar

import strawberry
from pydantic import BaseModel, ValidationError

from quillgraph.config import settings
from quillgraph.errors import ValidationFailure
from quillgraph.pagination import PageRequest

S = TypeVar("S", bound=BaseModel)


@strawberry.input
class PaginationInput:
    skip: int = 0
    take: int = 10
    cursor: Optional[str] = None


@strawberry.input
class UserCreateInput:
    email: str
    password: str
    name: str


@strawberry.input
class UserUpdateInput:
    email: Optional[str] = strawberry.UNSET
    password: Optional[str] = strawberry.UNSET
    name: Optional[str] = strawberry.UNSET


@strawberry.input
class LoginInput:
    email: str
    password: str


@strawberry.input
class PostCreateInput:
    title: str
    content: str
    published: bool = False


@strawberry.input
class PostUpdateInput:
    title: Optional[str] = strawberry.UNSET
    content: Optional[str] = strawberry.UNSET
    published: Optional[bool] = strawberry.UNSET


@strawberry.input
class BookCreateInput:
    title: str
    description: str
    published: bool = False


@strawberry.input
class BookUpdateInput:
    title: Optional[str] = strawberry.UNSET
    description: Optional[str] = strawberry.UNSET
    published: Optional[bool] = strawberry.UNSET


@strawberry.input
class CommentCreateInput:
    content: str
    post_id: strawberry.ID
    published: bool = False


@strawberry.input
class CommentUpdateInput:
    content: Optional[str] = strawberry.UNSET
    published: Optional[bool] = strawberry.UNSET


@strawberry.input
class ReviewCreateInput:
    rating: int
    book_id: strawberry.ID
    comment: Optional[str] = None
    published: bool = False


@strawberry.input
class ReviewUpdateInput:
    comment: Optional[str] = strawberry.UNSET
    rating: Optional[int] = strawberry.UNSET
    published: Optional[bool] = strawberry.UNSET


def _describe(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )


def parse_input(schema: type[S], data: object) -> S:
    """Validate a strawberry input against *schema*, dropping UNSET fields."""
    values = {name: value for name, value in vars(data).items() if value is not strawberry.UNSET}
    try:
        return schema(**values)
    except ValidationError as exc:
        raise ValidationFailure(_describe(exc)) from exc


def page_request(pagination: Optional[PaginationInput]) -> PageRequest:
    """Build a ``PageRequest``, clamping ``take`` to ``MAX_PAGE_SIZE``."""
    if pagination is None:
        return PageRequest(take=settings.DEFAULT_PAGE_SIZE)
    return PageRequest(
        skip=pagination.skip,
        take=min(pagination.take, settings.MAX_PAGE_SIZE),
        cursor=pagination.cursor or None,
    )
