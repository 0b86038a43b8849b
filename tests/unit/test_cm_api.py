"""HTTP surface: response envelope, error mapping and auth guards.

Services are swapped for ones backed by the in-memory fakes, and the session
and caller dependencies are overridden, so no database is needed.
"""

import json
from collections.abc import Callable, Iterator

import pytest
from httpx import AsyncClient

from src.cm_cart.application.aggregator import CartAggregator
from src.cm_cart.domain.models import Cart, CartItem
from src.cm_common.database import get_db_session
from src.cm_gateway.auth.dependencies import get_current_user
from src.cm_gateway.user.models import CurrentUser
from src.cm_gig.api import router as gig_api
from src.cm_gig.application.service import GigApplicationService
from src.cm_order.api import router as order_api
from src.cm_order.application.escrow import EscrowService
from src.cm_order.application.factory import OrderFactory
from src.cm_wallet.api import router as wallet_api
from src.cm_wallet.application.ledger import WalletLedger
from src.cm_wallet.application.service import WalletApplicationService
from src.cm_wallet.application.webhook import SIGNATURE_HEADER, sign_payload
from src.main import app
from tests.unit.fakes import (
    FakeBidRepository,
    FakeCartRepository,
    FakeFeeScheduleRepository,
    FakeGigRepository,
    FakeNotifier,
    FakeOrderRepository,
    FakeProductReader,
    FakeSession,
    FakeTransactionRepository,
    FakeWalletRepository,
    add_product,
    balance,
    fund,
    make_user,
)


@pytest.fixture
def db() -> FakeSession:
    return FakeSession()


@pytest.fixture
def login(db: FakeSession) -> Iterator[Callable[[CurrentUser], None]]:
    app.dependency_overrides[get_db_session] = lambda: db

    def _login(user: CurrentUser) -> None:
        app.dependency_overrides[get_current_user] = lambda: user

    yield _login
    app.dependency_overrides.clear()


@pytest.fixture
def ledger() -> WalletLedger:
    return WalletLedger(FakeWalletRepository(), FakeTransactionRepository())


def _cart_with_two_sellers(db: FakeSession) -> None:
    add_product(db, "p1", "s1", 4000)
    add_product(db, "p2", "s2", 3000)
    cart = Cart(id=db.state.new_id(), user_id="buyer")
    db.state.carts["buyer"] = cart
    for pid, price in (("p1", 4000), ("p2", 3000)):
        item = CartItem(
            id=db.state.new_id(), cart_id=cart.id, product_id=pid, quantity=1, price=price
        )
        db.state.cart_items[item.id] = item


@pytest.fixture
def fake_factory(
    monkeypatch: pytest.MonkeyPatch, ledger: WalletLedger
) -> OrderFactory:
    carts = FakeCartRepository()
    factory = OrderFactory(
        orders=FakeOrderRepository(),
        carts=carts,
        aggregator=CartAggregator(carts=carts, products=FakeProductReader()),
        fees=FakeFeeScheduleRepository(),
        ledger=ledger,
        notifier=FakeNotifier(),
    )
    monkeypatch.setattr(order_api, "_factory", factory)
    return factory


@pytest.fixture
def fake_escrow(monkeypatch: pytest.MonkeyPatch, ledger: WalletLedger) -> EscrowService:
    escrow = EscrowService(orders=FakeOrderRepository(), ledger=ledger, notifier=FakeNotifier())
    monkeypatch.setattr(order_api, "_escrow", escrow)
    return escrow


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "version": "0.1.0"}
        assert resp.headers["X-Request-ID"].startswith("req_")

    @pytest.mark.asyncio
    async def test_inbound_request_id_is_echoed(self, client: AsyncClient) -> None:
        resp = await client.get("/health", headers={"X-Request-ID": "edge-42"})
        assert resp.headers["X-Request-ID"] == "edge-42"


class TestAuth:
    @pytest.mark.asyncio
    async def test_missing_token(self, client: AsyncClient, login: Callable) -> None:
        resp = await client.get("/api/v1/orders")
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_admin_routes_reject_users(self, client: AsyncClient, login: Callable) -> None:
        login(make_user("buyer"))
        resp = await client.get("/api/v1/admin/invariants")
        assert resp.status_code == 403
        assert resp.json()["code"] == 1002


class TestCheckoutEndpoint:
    @pytest.mark.asyncio
    async def test_checkout_returns_one_order_per_seller(
        self, client: AsyncClient, login: Callable, db: FakeSession, fake_factory: OrderFactory
    ) -> None:
        fund(db, "buyer", 10_000)
        _cart_with_two_sellers(db)
        db.seed()
        login(make_user("buyer"))

        resp = await client.post("/api/v1/orders", json={"delivery_method": "campus_delivery"})

        assert resp.status_code == 201
        body = resp.json()
        assert body["code"] == 0
        assert body["data"]["total_orders"] == 2
        assert body["data"]["grand_total"] == 7350
        assert balance(db, "buyer") == 2650

    @pytest.mark.asyncio
    async def test_insufficient_funds_carries_remediation(
        self, client: AsyncClient, login: Callable, db: FakeSession, fake_factory: OrderFactory
    ) -> None:
        fund(db, "buyer", 5000)
        _cart_with_two_sellers(db)
        db.seed()
        login(make_user("buyer"))

        resp = await client.post("/api/v1/orders", json={})

        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == 2001
        assert body["data"]["remediation"] == "deposit"
        assert body["data"]["shortfall"] == 2350

    @pytest.mark.asyncio
    async def test_unknown_delivery_method(
        self, client: AsyncClient, login: Callable, fake_factory: OrderFactory
    ) -> None:
        login(make_user("buyer"))
        resp = await client.post("/api/v1/orders", json={"delivery_method": "drone"})
        assert resp.status_code == 422


class TestOrderEscrowEndpoints:
    @pytest.mark.asyncio
    async def test_confirm_delivery_without_body_releases_escrow(
        self,
        client: AsyncClient,
        login: Callable,
        db: FakeSession,
        fake_factory: OrderFactory,
        fake_escrow: EscrowService,
    ) -> None:
        fund(db, "buyer", 10_000)
        _cart_with_two_sellers(db)
        db.seed()
        login(make_user("buyer"))
        resp = await client.post("/api/v1/orders", json={})
        order = next(o for o in resp.json()["data"]["orders"] if o["seller_id"] == "s1")

        login(make_user("s1"))
        for step in ("preparing", "ready_for_pickup", "in_transit", "delivered"):
            resp = await client.put(
                f"/api/v1/orders/{order['id']}/delivery-status", json={"delivery_status": step}
            )
            assert resp.status_code == 200

        login(make_user("buyer"))
        resp = await client.put(f"/api/v1/orders/{order['id']}/confirm-delivery")

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["escrow_released"] is True
        assert data["buyer_notes"] is None
        assert balance(db, "s1") == 4000

    @pytest.mark.asyncio
    async def test_confirm_delivery_keeps_buyer_notes(
        self,
        client: AsyncClient,
        login: Callable,
        db: FakeSession,
        fake_factory: OrderFactory,
        fake_escrow: EscrowService,
    ) -> None:
        fund(db, "buyer", 10_000)
        _cart_with_two_sellers(db)
        db.seed()
        login(make_user("buyer"))
        resp = await client.post("/api/v1/orders", json={})
        order = next(o for o in resp.json()["data"]["orders"] if o["seller_id"] == "s2")

        login(make_user("s2"))
        for step in ("preparing", "ready_for_pickup", "in_transit", "delivered"):
            await client.put(
                f"/api/v1/orders/{order['id']}/delivery-status", json={"delivery_status": step}
            )

        login(make_user("buyer"))
        resp = await client.put(
            f"/api/v1/orders/{order['id']}/confirm-delivery", json={"buyer_notes": "all good"}
        )

        assert resp.status_code == 200
        assert resp.json()["data"]["buyer_notes"] == "all good"
        assert balance(db, "s2") == 3000


class TestGigEndpoints:
    @pytest.mark.asyncio
    async def test_cancel_open_gig_without_body(
        self,
        client: AsyncClient,
        login: Callable,
        db: FakeSession,
        ledger: WalletLedger,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        service = GigApplicationService(
            FakeGigRepository(), FakeBidRepository(), ledger, FakeNotifier()
        )
        monkeypatch.setattr(gig_api, "_service", service)
        login(make_user("client"))
        resp = await client.post("/api/v1/gigs", json={"title": "Flyer", "budget": 2000})
        gig_id = resp.json()["data"]["id"]

        resp = await client.put(f"/api/v1/gigs/{gig_id}/cancel")

        assert resp.status_code == 200
        assert resp.json()["data"]["status"] == "cancelled"

    @pytest.mark.asyncio
    async def test_post_bid_accept_complete(
        self,
        client: AsyncClient,
        login: Callable,
        db: FakeSession,
        ledger: WalletLedger,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        service = GigApplicationService(
            FakeGigRepository(), FakeBidRepository(), ledger, FakeNotifier()
        )
        monkeypatch.setattr(gig_api, "_service", service)
        fund(db, "client", 10_000)
        db.seed()

        login(make_user("client"))
        resp = await client.post("/api/v1/gigs", json={"title": "Logo", "budget": 6000})
        assert resp.status_code == 201
        gig_id = resp.json()["data"]["id"]

        login(make_user("alice"))
        resp = await client.post(f"/api/v1/gigs/{gig_id}/bids", json={"amount": 5000})
        assert resp.status_code == 201
        bid_id = resp.json()["data"]["id"]

        login(make_user("client"))
        resp = await client.put(f"/api/v1/bids/{bid_id}/accept")
        assert resp.status_code == 200
        assert resp.json()["data"]["payment_status"] == "in_escrow"

        resp = await client.put(f"/api/v1/gigs/{gig_id}/complete")
        assert resp.status_code == 200
        assert balance(db, "alice") == 4500

        resp = await client.put(f"/api/v1/gigs/{gig_id}/cancel", json={})
        assert resp.status_code == 409
        assert resp.json()["code"] == 4003


class TestWebhookEndpoint:
    @pytest.mark.asyncio
    async def test_signature_checked_on_raw_body(
        self,
        client: AsyncClient,
        login: Callable,
        db: FakeSession,
        ledger: WalletLedger,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        monkeypatch.setattr(
            wallet_api, "_service", WalletApplicationService(ledger, FakeNotifier())
        )
        tx = await ledger.deposit(db, "u1", 5000)
        db.seed()
        body = json.dumps({"event": "charge.success", "data": {"reference": tx.reference}}).encode()

        resp = await client.post(
            "/api/v1/wallet/webhook", content=body, headers={SIGNATURE_HEADER: "bad"}
        )
        assert resp.status_code == 401
        assert balance(db, "u1") == 0

        resp = await client.post(
            "/api/v1/wallet/webhook", content=body, headers={SIGNATURE_HEADER: sign_payload(body)}
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["applied"] is True
        assert balance(db, "u1") == 5000


class TestDatabaseErrors:
    @pytest.mark.asyncio
    async def test_serialization_failure_is_retryable(self) -> None:
        from unittest.mock import MagicMock

        from sqlalchemy.exc import DBAPIError

        from src.main import db_error_handler

        orig = Exception("could not serialize access due to concurrent update")
        orig.sqlstate = "40001"  # type: ignore[attr-defined]
        request = MagicMock()
        request.method = "POST"
        request.url.path = "/api/v1/orders"

        resp = await db_error_handler(request, DBAPIError("UPDATE wallets", {}, orig))

        assert resp.status_code == 409
        body = json.loads(resp.body)
        assert body["code"] == 9002
        assert body["data"] == {"retryable": True}

    @pytest.mark.asyncio
    async def test_other_database_errors_are_opaque(self) -> None:
        from unittest.mock import MagicMock

        from sqlalchemy.exc import DBAPIError

        from src.main import db_error_handler

        orig = Exception("relation does not exist")
        orig.sqlstate = "42P01"  # type: ignore[attr-defined]
        request = MagicMock()
        request.method = "GET"
        request.url.path = "/api/v1/wallet"

        resp = await db_error_handler(request, DBAPIError("SELECT 1", {}, orig))

        assert resp.status_code == 500
        body = json.loads(resp.body)
        assert body["code"] == 9003
        assert "relation" not in body["message"]


class TestFeePreview:
    @pytest.mark.asyncio
    async def test_preview_uses_caller_campus(
        self, client: AsyncClient, login: Callable, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        from src.cm_fee.api import router as fee_api
        from src.cm_fee.domain.models import FeeSchedule

        monkeypatch.setattr(
            fee_api,
            "_schedules",
            FakeFeeScheduleRepository(
                FeeSchedule(500, 50, 1000, campus_discounts={"unilag": 2000})
            ),
        )
        login(make_user("buyer"))

        resp = await client.get("/api/v1/fees/preview", params={"amount": 4000})

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["campus"] == "unilag"
        assert data["platform_fee"] == 160
        assert data["total"] == 4160
