"""
GraphQL schema and its FastAPI router.

Expected errors (``ApiError`` subclasses) reach clients as ordinary GraphQL
errors carrying ``extensions.code``; they are logged at INFO.  Anything
else is logged with a traceback by strawberry's error logger.
"""
import logging
from typing import Optional

import strawberry
from graphql import GraphQLError
from strawberry.fastapi import GraphQLRouter
from strawberry.types import ExecutionContext
from strawberry.utils.logging import StrawberryLogger

from quillgraph.api.context import get_context
from quillgraph.api.mutations import Mutation
from quillgraph.api.queries import Query
from quillgraph.api.subscriptions import Subscription
from quillgraph.errors import ApiError

logger = logging.getLogger(__name__)


class QuillSchema(strawberry.Schema):
    def process_errors(
        self,
        errors: list[GraphQLError],
        execution_context: Optional[ExecutionContext] = None,
    ) -> None:
        for error in errors:
            if isinstance(error.original_error, ApiError):
                logger.info("%s: %s", error.original_error.code, error.message)
            else:
                StrawberryLogger.error(error, execution_context)


schema = QuillSchema(query=Query, mutation=Mutation, subscription=Subscription)


def create_graphql_router() -> GraphQLRouter:
    """GraphQL over HTTP (incl. multipart uploads) and websockets at one path."""
    return GraphQLRouter(
        schema,
        context_getter=get_context,
        multipart_uploads_enabled=True,
        graphql_ide="graphiql",
    )


__all__ = ["schema", "create_graphql_router"]
