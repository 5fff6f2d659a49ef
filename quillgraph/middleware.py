import logging
import time
from contextvars import ContextVar

from sqlalchemy import event
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)


class QueryCounter:
    __slots__ = ("count",)

    def __init__(self) -> None:
        self.count = 0


# graphql-core gathers sibling resolvers as child tasks, each running in a
# copy of the request context.  The variable therefore holds a mutable
# counter: every copy points at the same object, so increments made in a
# child task are visible to the middleware.
query_counter_var: ContextVar[QueryCounter | None] = ContextVar("query_counter", default=None)


def install_query_counter(engine) -> None:
    """
    Count every SQL statement issued on *engine* into the current request's
    ``QueryCounter``.

    Lazy relation fields each run their own query, so the count reported in
    ``X-Query-Count`` is the quickest way to spot an N+1 pattern in a
    GraphQL selection.  Must be called once per engine.
    """
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _count_query(conn, cursor, statement, parameters, context, executemany):
        counter = query_counter_var.get()
        if counter is not None:
            counter.count += 1


class TimingMiddleware:
    """
    Pure ASGI middleware adding ``X-Response-Time-Ms`` and ``X-Query-Count``
    to HTTP responses.

    WebSocket scopes (GraphQL subscriptions) are long-lived and carry no
    response headers, so they are passed straight through.  Requests slower
    than ``slow_ms`` are logged at warning level.
    """

    def __init__(self, app: ASGIApp, slow_ms: float = 1000.0) -> None:
        self.app = app
        self.slow_ms = slow_ms

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        counter = QueryCounter()
        query_counter_var.set(counter)
        start = time.perf_counter()

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                duration_ms = round((time.perf_counter() - start) * 1000, 2)
                headers = list(message.get("headers", []))
                headers.append((b"x-response-time-ms", str(duration_ms).encode()))
                headers.append((b"x-query-count", str(counter.count).encode()))
                message["headers"] = headers
                if duration_ms >= self.slow_ms:
                    logger.warning(
                        "Slow request %s %s: %.2fms, %d queries",
                        scope.get("method"), scope.get("path"), duration_ms, counter.count,
                    )
            await send(message)

        await self.app(scope, receive, send_wrapper)
