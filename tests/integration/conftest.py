"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.
"""

import uuid
from collections.abc import Awaitable, Callable

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.main import app

Headers = dict[str, str]


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client — keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def login_as(client: AsyncClient) -> Callable[[str], Awaitable[Headers]]:
    """Register a fresh user with the given role and return its Bearer headers."""

    async def _login(role: str) -> Headers:
        username = f"{role.lower()}_{uuid.uuid4().hex[:10]}"
        password = "TestPass123!"
        reg_resp = await client.post("/api/v1/auth/register", json={
            "username": username,
            "email": f"{username}@unilag.edu.ng",
            "password": password,
            "role": role,
        })
        assert reg_resp.status_code == 201, reg_resp.text
        login_resp = await client.post("/api/v1/auth/login", json={
            "username": username,
            "password": password,
        })
        token = login_resp.json()["data"]["access_token"]
        return {"Authorization": f"Bearer {token}"}

    return _login
