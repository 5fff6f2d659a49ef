"""Shared helpers for GraphQL endpoint and service tests."""
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from quillgraph.notifier import ChangeNotifier
from quillgraph.schemas import UserCreate
from quillgraph.services import user_service


async def gql(
    client: AsyncClient,
    query: str,
    variables: dict | None = None,
    token: str | None = None,
) -> dict:
    """POST a GraphQL operation and return the decoded body."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    response = await client.post(
        "/graphql", json={"query": query, "variables": variables or {}}, headers=headers
    )
    assert response.status_code == 200, response.text
    return response.json()


def error_codes(body: dict) -> list[str]:
    return [err.get("extensions", {}).get("code") for err in body.get("errors") or []]


async def make_user(
    db: AsyncSession,
    notifier: ChangeNotifier,
    email: str = "alice@example.com",
    name: str = "Alice",
    password: str = "secret123",
) -> tuple[dict, str]:
    """Create a user through the service and return ``(user, token)``."""
    result = await user_service.create_user(
        db, notifier, UserCreate(email=email, name=name, password=password)
    )
    return result["user"], result["token"]
