"""GraphQL context: per-resolver sessions, the change bus, blob storage and the caller's credential."""
from contextlib import AbstractAsyncContextManager
from typing import Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.requests import HTTPConnection
from strawberry.dataloader import DataLoader
from strawberry.fastapi import BaseContext

from quillgraph.database import get_session_factory, session_scope
from quillgraph.notifier import ChangeNotifier
from quillgraph.security import Identity, bearer_token, verify_token
from quillgraph.services import user_service
from quillgraph.storage import FileStorage


class GraphQLContext(BaseContext):
    """
    Context passed to every GraphQL resolver.

    The credential is read lazily: public queries never look at it, so a
    stale token only fails the operations that actually resolve an
    identity.  Over websockets the token comes from the ``connection_init``
    payload (``{"Authorization": "Bearer ..."}``) or the upgrade headers.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        notifier: ChangeNotifier,
        storage: FileStorage,
        authorization: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.session_factory = session_factory
        self.notifier = notifier
        self.storage = storage
        self._authorization = authorization
        # No caching: a websocket context lives as long as the connection.
        self.user_loader: DataLoader[str, Optional[dict]] = DataLoader(
            load_fn=self._load_users, cache=False
        )

    def session(self) -> AbstractAsyncContextManager[AsyncSession]:
        return session_scope(self.session_factory)

    @property
    def authorization(self) -> Optional[str]:
        if self._authorization is not None:
            return self._authorization
        params = getattr(self, "connection_params", None)
        if isinstance(params, dict):
            value = params.get("Authorization") or params.get("authorization")
            if value:
                return value
        if self.request is not None:
            return self.request.headers.get("authorization")
        return None

    def identity(self, require_auth: bool = True) -> Identity:
        return verify_token(bearer_token(self.authorization), require_auth)

    async def _load_users(self, user_ids: list[str]) -> list[Optional[dict]]:
        async with self.session() as db:
            return await user_service.get_users_by_ids(db, user_ids)


async def get_context(
    connection: HTTPConnection,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> GraphQLContext:
    state = connection.app.state
    return GraphQLContext(
        session_factory=session_factory,
        notifier=state.notifier,
        storage=state.storage,
    )
