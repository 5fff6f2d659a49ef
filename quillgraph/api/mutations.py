"""
Mutation resolvers.

Each resolver resolves the caller's identity (required everywhere except
the upload mutations), validates its input and delegates to one service
call.  Publishing change events is the service's job.
"""

import strawberry
from strawberry.file_uploads import Upload
from strawberry.types import Info

from quillgraph.api.inputs import (
    BookCreateInput,
    BookUpdateInput,
    CommentCreateInput,
    CommentUpdateInput,
    LoginInput,
    PostCreateInput,
    PostUpdateInput,
    ReviewCreateInput,
    ReviewUpdateInput,
    UserCreateInput,
    UserUpdateInput,
    parse_input,
)
from quillgraph.api.types import AuthPayload, Book, Comment, File, Post, Review, User
from quillgraph.schemas import (
    BookCreate,
    BookUpdate,
    CommentCreate,
    CommentUpdate,
    PostCreate,
    PostUpdate,
    ReviewCreate,
    ReviewUpdate,
    UserCreate,
    UserLogin,
    UserUpdate,
)
from quillgraph.services import (
    book_service,
    comment_service,
    file_service,
    post_service,
    review_service,
    user_service,
)

_UPLOAD_CHUNK_BYTES = 64 * 1024


def _auth_payload(result: dict) -> AuthPayload:
    return AuthPayload(user=User.from_dict(result["user"]), token=result["token"])


async def read_upload(upload: Upload) -> file_service.IncomingFile:
    """Read *upload* in chunks, failing as soon as it passes the size limit."""
    chunks = []
    size = 0
    while True:
        chunk = await upload.read(_UPLOAD_CHUNK_BYTES)
        if not chunk:
            break
        size += len(chunk)
        file_service.check_size(size)
        chunks.append(chunk)
    return file_service.IncomingFile(
        filename=getattr(upload, "filename", None),
        mimetype=getattr(upload, "content_type", None),
        data=b"".join(chunks),
    )


@strawberry.type
class Mutation:
    # --- Users / auth ---

    @strawberry.mutation
    async def create_user(self, info: Info, data: UserCreateInput) -> AuthPayload:
        payload = parse_input(UserCreate, data)
        async with info.context.session() as db:
            result = await user_service.create_user(db, info.context.notifier, payload)
        return _auth_payload(result)

    @strawberry.mutation
    async def login(self, info: Info, data: LoginInput) -> AuthPayload:
        payload = parse_input(UserLogin, data)
        async with info.context.session() as db:
            result = await user_service.login(db, payload)
        return _auth_payload(result)

    @strawberry.mutation
    async def update_user(self, info: Info, id: strawberry.ID, data: UserUpdateInput) -> User:
        identity = info.context.identity(require_auth=True)
        payload = parse_input(UserUpdate, data)
        async with info.context.session() as db:
            result = await user_service.update_user(
                db, info.context.notifier, identity.user_id, id, payload
            )
        return User.from_dict(result)

    @strawberry.mutation
    async def delete_user(self, info: Info, id: strawberry.ID) -> User:
        identity = info.context.identity(require_auth=True)
        async with info.context.session() as db:
            result = await user_service.delete_user(db, info.context.notifier, identity.user_id, id)
        return User.from_dict(result)

    # --- Posts ---

    @strawberry.mutation
    async def create_post(self, info: Info, data: PostCreateInput) -> Post:
        identity = info.context.identity(require_auth=True)
        payload = parse_input(PostCreate, data)
        async with info.context.session() as db:
            result = await post_service.create_post(
                db, info.context.notifier, identity.user_id, payload
            )
        return Post.from_dict(result)

    @strawberry.mutation
    async def update_post(self, info: Info, id: strawberry.ID, data: PostUpdateInput) -> Post:
        identity = info.context.identity(require_auth=True)
        payload = parse_input(PostUpdate, data)
        async with info.context.session() as db:
            result = await post_service.update_post(
                db, info.context.notifier, identity.user_id, id, payload
            )
        return Post.from_dict(result)

    @strawberry.mutation
    async def delete_post(self, info: Info, id: strawberry.ID) -> Post:
        identity = info.context.identity(require_auth=True)
        async with info.context.session() as db:
            result = await post_service.delete_post(db, info.context.notifier, identity.user_id, id)
        return Post.from_dict(result)

    # --- Books ---

    @strawberry.mutation
    async def create_book(self, info: Info, data: BookCreateInput) -> Book:
        identity = info.context.identity(require_auth=True)
        payload = parse_input(BookCreate, data)
        async with info.context.session() as db:
            result = await book_service.create_book(
                db, info.context.notifier, identity.user_id, payload
            )
        return Book.from_dict(result)

    @strawberry.mutation
    async def update_book(self, info: Info, id: strawberry.ID, data: BookUpdateInput) -> Book:
        identity = info.context.identity(require_auth=True)
        payload = parse_input(BookUpdate, data)
        async with info.context.session() as db:
            result = await book_service.update_book(
                db, info.context.notifier, identity.user_id, id, payload
            )
        return Book.from_dict(result)

    @strawberry.mutation
    async def delete_book(self, info: Info, id: strawberry.ID) -> Book:
        identity = info.context.identity(require_auth=True)
        async with info.context.session() as db:
            result = await book_service.delete_book(db, info.context.notifier, identity.user_id, id)
        return Book.from_dict(result)

    # --- Comments ---

    @strawberry.mutation
    async def create_comment(self, info: Info, data: CommentCreateInput) -> Comment:
        identity = info.context.identity(require_auth=True)
        payload = parse_input(CommentCreate, data)
        async with info.context.session() as db:
            result = await comment_service.create_comment(
                db, info.context.notifier, identity.user_id, payload
            )
        return Comment.from_dict(result)

    @strawberry.mutation
    async def update_comment(
        self, info: Info, id: strawberry.ID, data: CommentUpdateInput
    ) -> Comment:
        identity = info.context.identity(require_auth=True)
        payload = parse_input(CommentUpdate, data)
        async with info.context.session() as db:
            result = await comment_service.update_comment(
                db, info.context.notifier, identity.user_id, id, payload
            )
        return Comment.from_dict(result)

    @strawberry.mutation
    async def delete_comment(self, info: Info, id: strawberry.ID) -> Comment:
        identity = info.context.identity(require_auth=True)
        async with info.context.session() as db:
            result = await comment_service.delete_comment(
                db, info.context.notifier, identity.user_id, id
            )
        return Comment.from_dict(result)

    # --- Reviews ---

    @strawberry.mutation
    async def create_review(self, info: Info, data: ReviewCreateInput) -> Review:
        identity = info.context.identity(require_auth=True)
        payload = parse_input(ReviewCreate, data)
        async with info.context.session() as db:
            result = await review_service.create_review(
                db, info.context.notifier, identity.user_id, payload
            )
        return Review.from_dict(result)

    @strawberry.mutation
    async def update_review(
        self, info: Info, id: strawberry.ID, data: ReviewUpdateInput
    ) -> Review:
        identity = info.context.identity(require_auth=True)
        payload = parse_input(ReviewUpdate, data)
        async with info.context.session() as db:
            result = await review_service.update_review(
                db, info.context.notifier, identity.user_id, id, payload
            )
        return Review.from_dict(result)

    @strawberry.mutation
    async def delete_review(self, info: Info, id: strawberry.ID) -> Review:
        identity = info.context.identity(require_auth=True)
        async with info.context.session() as db:
            result = await review_service.delete_review(
                db, info.context.notifier, identity.user_id, id
            )
        return Review.from_dict(result)

    # --- Files ---

    @strawberry.mutation
    async def upload_file(self, info: Info, file: Upload) -> File:
        identity = info.context.identity(require_auth=False)
        incoming = await read_upload(file)
        async with info.context.session() as db:
            result = await file_service.upload_file(
                db, info.context.storage, identity.user_id or None, incoming
            )
        return File.from_dict(result)

    @strawberry.mutation
    async def upload_multiple_files(self, info: Info, files: list[Upload]) -> list[File]:
        identity = info.context.identity(require_auth=False)
        incoming = [await read_upload(upload) for upload in files]
        async with info.context.session() as db:
            results = await file_service.upload_files(
                db, info.context.storage, identity.user_id or None, incoming
            )
        return [File.from_dict(result) for result in results]

    @strawberry.mutation
    async def delete_file(self, info: Info, id: strawberry.ID) -> File:
        identity = info.context.identity(require_auth=True)
        async with info.context.session() as db:
            result = await file_service.delete_file(db, info.context.storage, identity.user_id, id)
        return File.from_dict(result)
