"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Identities come from the upstream auth service, so users and listings are
inserted directly and tokens are minted with the shared secret.
"""

import json
import uuid
from collections.abc import Awaitable, Callable

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import text

from src.cm_common.database import engine
from src.cm_gateway.auth.jwt_handler import create_access_token
from src.cm_wallet.application.webhook import SIGNATURE_HEADER, sign_payload
from src.main import app

_INSERT_USER = text("""
    INSERT INTO users (id, username, email, campus, role)
    VALUES (:id, :id, :email, :campus, :role)
""")
_INSERT_PRODUCT = text("""
    INSERT INTO products (id, seller_id, title, price, campus, platform_purchase_enabled)
    VALUES (:id, :seller_id, :title, :price, :campus, TRUE)
""")


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped async HTTP client that keeps the engine pool alive."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def make_user() -> Callable[..., Awaitable[tuple[str, dict[str, str]]]]:
    """Insert a fresh user; returns (user_id, auth headers)."""

    async def _make(campus: str = "unilag", role: str = "user") -> tuple[str, dict[str, str]]:
        user_id = f"it_{uuid.uuid4().hex[:12]}"
        async with engine.begin() as conn:
            await conn.execute(
                _INSERT_USER,
                {"id": user_id, "email": f"{user_id}@example.com", "campus": campus, "role": role},
            )
        return user_id, {"Authorization": f"Bearer {create_access_token(user_id)}"}

    return _make


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def make_product() -> Callable[..., Awaitable[str]]:
    async def _make(seller_id: str, price: int, campus: str = "unilag") -> str:
        product_id = f"prd_{uuid.uuid4().hex[:12]}"
        async with engine.begin() as conn:
            await conn.execute(
                _INSERT_PRODUCT,
                {
                    "id": product_id,
                    "seller_id": seller_id,
                    "title": f"Listing {product_id}",
                    "price": price,
                    "campus": campus,
                },
            )
        return product_id

    return _make


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def fund(client: AsyncClient) -> Callable[[dict[str, str], int], Awaitable[None]]:
    """Top up through the real deposit + signed gateway webhook path."""

    async def _fund(headers: dict[str, str], amount: int) -> None:
        resp = await client.post("/api/v1/wallet/deposit", json={"amount": amount}, headers=headers)
        assert resp.status_code == 201, resp.text
        reference = resp.json()["data"]["reference"]
        body = json.dumps({"event": "charge.success", "data": {"reference": reference}}).encode()
        resp = await client.post(
            "/api/v1/wallet/webhook", content=body, headers={SIGNATURE_HEADER: sign_payload(body)}
        )
        assert resp.status_code == 200, resp.text

    return _fund
