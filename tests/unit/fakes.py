"""In-memory doubles for the repository Protocols.

Repositories are stateless and keep their rows on ``db.state`` so that
FakeSession can emulate a transaction: ``commit`` snapshots the state and
``rollback`` restores the last snapshot, exactly like an aborted unit of work.
"""

import copy
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from src.cm_cart.domain.models import Cart, CartItem, Product
from src.cm_common.datetime_utils import utc_now
from src.cm_fee.domain.models import FeeSchedule
from src.cm_gateway.user.models import CurrentUser
from src.cm_gig.domain.models import Bid, Gig
from src.cm_order.domain.models import Order, OrderDraft, OrderItem, OrderQuery
from src.cm_order.domain.snapshot import ProductSnapshot
from src.cm_wallet.domain.models import Transaction, TransactionFilter, Wallet


def _v(value: Any) -> Any:
    return getattr(value, "value", value)


@dataclass
class StoreState:
    next_id: int = 1
    wallets: dict[str, Wallet] = field(default_factory=dict)
    transactions: list[Transaction] = field(default_factory=list)
    products: dict[str, Product] = field(default_factory=dict)
    carts: dict[str, Cart] = field(default_factory=dict)
    cart_items: dict[int, CartItem] = field(default_factory=dict)
    orders: dict[int, Order] = field(default_factory=dict)
    order_items: dict[int, list[OrderItem]] = field(default_factory=dict)
    gigs: dict[int, Gig] = field(default_factory=dict)
    bids: dict[int, Bid] = field(default_factory=dict)

    def new_id(self) -> int:
        value = self.next_id
        self.next_id += 1
        return value


class FakeSession:
    def __init__(self) -> None:
        self.state = StoreState()
        self._committed = copy.deepcopy(self.state)
        self.commits = 0
        self.rollbacks = 0

    async def commit(self) -> None:
        self.commits += 1
        self._committed = copy.deepcopy(self.state)

    async def rollback(self) -> None:
        self.rollbacks += 1
        self.state = copy.deepcopy(self._committed)

    def seed(self) -> None:
        """Make the current state the committed baseline."""
        self._committed = copy.deepcopy(self.state)


class FakeNotifier:
    def __init__(self) -> None:
        self.published: list[tuple[str, list[str], dict[str, Any]]] = []

    async def publish(self, event: str, recipients: list[str], payload: dict[str, Any]) -> bool:
        self.published.append((event, list(recipients), dict(payload)))
        return True

    def events(self) -> list[str]:
        return [event for event, _, _ in self.published]


# ---------------------------------------------------------------------------
# Wallets and transactions
# ---------------------------------------------------------------------------


class FakeWalletRepository:
    async def get(self, db: Any, user_id: str) -> Wallet | None:
        wallet = db.state.wallets.get(user_id)
        return copy.copy(wallet) if wallet else None

    async def get_or_create(self, db: Any, user_id: str) -> Wallet:
        if user_id not in db.state.wallets:
            db.state.wallets[user_id] = Wallet(
                id=db.state.new_id(), user_id=user_id, balance=0, pending_balance=0
            )
        return copy.copy(db.state.wallets[user_id])

    async def lock_for_update(self, db: Any, user_id: str) -> Wallet | None:
        return await self.get(db, user_id)

    def _row(self, db: Any, user_id: str, *, unlocked: bool) -> Wallet | None:
        wallet = db.state.wallets.get(user_id)
        if wallet is None or (unlocked and wallet.is_locked):
            return None
        return wallet

    def _bump(self, wallet: Wallet) -> Wallet:
        wallet.version += 1
        wallet.last_transaction_at = utc_now()
        return copy.copy(wallet)

    async def apply_debit(self, db: Any, user_id: str, amount: int) -> Wallet | None:
        wallet = self._row(db, user_id, unlocked=True)
        if wallet is None or wallet.balance < amount:
            return None
        wallet.balance -= amount
        wallet.total_spent += amount
        return self._bump(wallet)

    async def apply_credit(self, db: Any, user_id: str, amount: int) -> Wallet | None:
        wallet = self._row(db, user_id, unlocked=True)
        if wallet is None:
            return None
        wallet.balance += amount
        wallet.total_earned += amount
        return self._bump(wallet)

    async def apply_refund(self, db: Any, user_id: str, amount: int) -> Wallet | None:
        wallet = self._row(db, user_id, unlocked=True)
        if wallet is None:
            return None
        wallet.balance += amount
        wallet.total_spent = max(wallet.total_spent - amount, 0)
        return self._bump(wallet)

    async def apply_deposit(self, db: Any, user_id: str, amount: int) -> Wallet | None:
        wallet = self._row(db, user_id, unlocked=False)
        if wallet is None:
            return None
        wallet.balance += amount
        return self._bump(wallet)

    async def move_to_pending(self, db: Any, user_id: str, amount: int) -> Wallet | None:
        wallet = self._row(db, user_id, unlocked=True)
        if wallet is None or wallet.balance < amount:
            return None
        wallet.balance -= amount
        wallet.pending_balance += amount
        return self._bump(wallet)

    async def clear_pending(self, db: Any, user_id: str, amount: int) -> Wallet | None:
        wallet = self._row(db, user_id, unlocked=False)
        if wallet is None or wallet.pending_balance < amount:
            return None
        wallet.pending_balance -= amount
        wallet.last_withdrawal = utc_now()
        return self._bump(wallet)

    async def return_pending(self, db: Any, user_id: str, amount: int) -> Wallet | None:
        wallet = self._row(db, user_id, unlocked=False)
        if wallet is None or wallet.pending_balance < amount:
            return None
        wallet.pending_balance -= amount
        wallet.balance += amount
        return self._bump(wallet)

    async def set_lock(
        self, db: Any, user_id: str, locked: bool, reason: str | None
    ) -> Wallet | None:
        wallet = db.state.wallets.get(user_id)
        if wallet is None:
            return None
        wallet.is_locked = locked
        wallet.locked_reason = reason
        wallet.version += 1
        return copy.copy(wallet)

    async def mark_reconciled(self, db: Any, user_id: str) -> None:
        wallet = db.state.wallets.get(user_id)
        if wallet is not None:
            wallet.last_reconciled_at = utc_now()


class FakeTransactionRepository:
    async def append(
        self,
        db: Any,
        *,
        user_id: str,
        wallet_id: int,
        type: str,
        amount: int,
        status: str,
        reference: str | None = None,
        fee: int = 0,
        order_id: int | None = None,
        gig_id: int | None = None,
        description: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Transaction:
        if reference is not None and any(
            t.reference == reference for t in db.state.transactions
        ):
            raise ValueError(f"duplicate reference {reference}")
        now = utc_now()
        tx = Transaction(
            id=db.state.new_id(),
            user_id=user_id,
            wallet_id=wallet_id,
            type=_v(type),
            amount=amount,
            status=_v(status),
            reference=reference,
            fee=fee,
            order_id=order_id,
            gig_id=gig_id,
            description=description,
            metadata=dict(metadata or {}),
            created_at=now,
            settled_at=now if _v(status) == "completed" else None,
        )
        db.state.transactions.append(tx)
        return copy.copy(tx)

    async def get_by_reference(
        self, db: Any, reference: str, for_update: bool = False
    ) -> Transaction | None:
        for tx in db.state.transactions:
            if tx.reference == reference:
                return copy.copy(tx)
        return None

    async def mark_status(
        self, db: Any, transaction_id: int, to_status: str
    ) -> Transaction | None:
        for tx in db.state.transactions:
            if tx.id == transaction_id and tx.status == "pending":
                tx.status = _v(to_status)
                if tx.status == "completed":
                    tx.settled_at = utc_now()
                return copy.copy(tx)
        return None

    async def sum_completed(self, db: Any, user_id: str) -> int:
        return sum(
            t.amount for t in db.state.transactions
            if t.user_id == user_id and t.status == "completed"
        )

    def _filtered(self, db: Any, user_id: str, filters: TransactionFilter) -> list[Transaction]:
        rows = [t for t in db.state.transactions if t.user_id == user_id]
        if filters.type:
            rows = [t for t in rows if t.type == _v(filters.type)]
        if filters.status:
            rows = [t for t in rows if t.status == _v(filters.status)]
        if filters.since:
            rows = [t for t in rows if t.created_at and t.created_at >= filters.since]
        if filters.until:
            rows = [t for t in rows if t.created_at and t.created_at <= filters.until]
        return sorted(rows, key=lambda t: t.id, reverse=True)

    async def list_for_user(
        self, db: Any, user_id: str, filters: TransactionFilter, limit: int, offset: int
    ) -> list[Transaction]:
        rows = self._filtered(db, user_id, filters)[offset:offset + limit]
        return [copy.copy(t) for t in rows]

    async def count_for_user(self, db: Any, user_id: str, filters: TransactionFilter) -> int:
        return len(self._filtered(db, user_id, filters))

    async def count_by_status(self, db: Any, user_id: str) -> dict[str, int]:
        counts: dict[str, int] = {}
        for t in db.state.transactions:
            if t.user_id == user_id:
                counts[t.status] = counts.get(t.status, 0) + 1
        return counts

    async def sum_released_since(self, db: Any, user_id: str, since: datetime) -> int:
        return sum(
            t.amount for t in db.state.transactions
            if t.user_id == user_id and t.type == "release" and t.status == "completed"
            and t.created_at is not None and t.created_at >= since
        )

    async def list_for_order(self, db: Any, order_id: int) -> list[Transaction]:
        return [copy.copy(t) for t in db.state.transactions if t.order_id == order_id]


# ---------------------------------------------------------------------------
# Carts, products and fees
# ---------------------------------------------------------------------------


class FakeCartRepository:
    async def get_cart(self, db: Any, user_id: str) -> Cart | None:
        cart = db.state.carts.get(user_id)
        return copy.copy(cart) if cart else None

    async def get_or_create_cart(self, db: Any, user_id: str) -> Cart:
        if user_id not in db.state.carts:
            db.state.carts[user_id] = Cart(id=db.state.new_id(), user_id=user_id)
        return copy.copy(db.state.carts[user_id])

    async def list_items(self, db: Any, cart_id: int) -> list[CartItem]:
        return [
            copy.copy(i) for i in sorted(db.state.cart_items.values(), key=lambda i: i.id)
            if i.cart_id == cart_id
        ]

    async def get_item(self, db: Any, item_id: int) -> CartItem | None:
        item = db.state.cart_items.get(item_id)
        return copy.copy(item) if item else None

    async def upsert_item(
        self, db: Any, cart_id: int, product_id: str, quantity: int, price: int
    ) -> CartItem:
        for item in db.state.cart_items.values():
            if item.cart_id == cart_id and item.product_id == product_id:
                item.quantity = quantity
                item.price = price
                return copy.copy(item)
        item = CartItem(
            id=db.state.new_id(), cart_id=cart_id, product_id=product_id,
            quantity=quantity, price=price,
        )
        db.state.cart_items[item.id] = item
        return copy.copy(item)

    async def update_quantity(self, db: Any, item_id: int, quantity: int) -> CartItem | None:
        item = db.state.cart_items.get(item_id)
        if item is None:
            return None
        item.quantity = quantity
        return copy.copy(item)

    async def delete_items(self, db: Any, item_ids: list[int]) -> int:
        removed = 0
        for item_id in item_ids:
            if db.state.cart_items.pop(item_id, None) is not None:
                removed += 1
        return removed

    async def clear(self, db: Any, cart_id: int) -> int:
        ids = [i.id for i in db.state.cart_items.values() if i.cart_id == cart_id]
        return await self.delete_items(db, ids)


class FakeProductReader:
    async def get(self, db: Any, product_id: str) -> Product | None:
        return db.state.products.get(product_id)

    async def get_many(self, db: Any, product_ids: list[str]) -> dict[str, Product]:
        return {
            pid: db.state.products[pid] for pid in product_ids if pid in db.state.products
        }


class FakeFeeScheduleRepository:
    def __init__(self, schedule: FeeSchedule | None = None) -> None:
        self.schedule = schedule or FeeSchedule(
            base_percentage_bps=500, minimum_fee=50, maximum_fee=1000
        )

    async def get_active(self, db: Any) -> FeeSchedule:
        return self.schedule


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------


class FakeOrderRepository:
    async def order_number_exists(self, db: Any, order_number: str) -> bool:
        return any(o.order_number == order_number for o in db.state.orders.values())

    async def create_order(self, db: Any, draft: OrderDraft, order_number: str) -> Order:
        order = Order(
            id=db.state.new_id(),
            order_number=order_number,
            buyer_id=draft.buyer_id,
            seller_id=draft.seller_id,
            campus=draft.campus,
            subtotal=draft.subtotal,
            platform_fee=draft.platform_fee,
            total_amount=draft.total_amount,
            delivery_method=draft.delivery_method,
            delivery_address=draft.delivery_address,
            notes=draft.notes,
            created_at=utc_now(),
        )
        db.state.orders[order.id] = order
        db.state.order_items[order.id] = []
        return copy.copy(order)

    async def add_item(
        self,
        db: Any,
        order_id: int,
        product_id: str,
        quantity: int,
        price: int,
        snapshot: ProductSnapshot,
    ) -> OrderItem:
        item = OrderItem(
            id=db.state.new_id(), order_id=order_id, product_id=product_id,
            quantity=quantity, price=price, product_snapshot=snapshot,
        )
        db.state.order_items[order_id].append(item)
        return item

    async def get(self, db: Any, order_id: int) -> Order | None:
        order = db.state.orders.get(order_id)
        return copy.copy(order) if order else None

    async def lock_for_update(self, db: Any, order_id: int) -> Order | None:
        return await self.get(db, order_id)

    async def list_items(self, db: Any, order_id: int) -> list[OrderItem]:
        return list(db.state.order_items.get(order_id, []))

    def _matching(self, db: Any, query: OrderQuery) -> list[Order]:
        key = "seller_id" if query.role == "seller" else "buyer_id"
        rows = [o for o in db.state.orders.values() if getattr(o, key) == query.user_id]
        if query.status:
            rows = [o for o in rows if o.status == query.status]
        return sorted(rows, key=lambda o: o.id, reverse=True)

    async def list_for_user(self, db: Any, query: OrderQuery) -> list[Order]:
        start = (query.page - 1) * query.limit
        return [copy.copy(o) for o in self._matching(db, query)[start:start + query.limit]]

    async def count_for_user(self, db: Any, query: OrderQuery) -> int:
        return len(self._matching(db, query))

    async def update_delivery(
        self, db: Any, order_id: int, delivery_status: str, status: str,
        seller_notes: str | None,
    ) -> Order:
        order = db.state.orders[order_id]
        order.delivery_status = _v(delivery_status)
        order.status = _v(status)
        if seller_notes is not None:
            order.seller_notes = seller_notes
        if order.delivery_status == "delivered":
            order.delivery_confirmed_at = utc_now()
        return copy.copy(order)

    async def mark_released(
        self, db: Any, order_id: int, confirmed_by_buyer: bool, buyer_notes: str | None
    ) -> Order:
        order = db.state.orders[order_id]
        assert not order.escrow_released
        now = utc_now()
        if confirmed_by_buyer:
            order.delivery_status = "confirmed_by_buyer"
            order.buyer_confirmed_at = now
            if buyer_notes is not None:
                order.buyer_notes = buyer_notes
        order.status = "completed"
        order.escrow_released = True
        order.escrow_released_at = now
        return copy.copy(order)

    async def mark_cancelled(self, db: Any, order_id: int, reason: str) -> Order:
        order = db.state.orders[order_id]
        assert not order.escrow_released and order.status not in ("completed", "cancelled")
        order.status = "cancelled"
        order.cancel_reason = reason
        return copy.copy(order)

    async def mark_disputed(self, db: Any, order_id: int, reason: str) -> Order:
        order = db.state.orders[order_id]
        order.status = "disputed"
        order.dispute_reason = reason
        return copy.copy(order)


# ---------------------------------------------------------------------------
# Gigs and bids
# ---------------------------------------------------------------------------


class FakeGigRepository:
    async def create_gig(
        self, db: Any, client_id: str, title: str, description: str | None,
        budget: int, campus: str | None,
    ) -> Gig:
        gig = Gig(
            id=db.state.new_id(), client_id=client_id, title=title,
            description=description, budget=budget, campus=campus,
            created_at=utc_now(),
        )
        db.state.gigs[gig.id] = gig
        return copy.copy(gig)

    async def get(self, db: Any, gig_id: int) -> Gig | None:
        gig = db.state.gigs.get(gig_id)
        return copy.copy(gig) if gig else None

    async def lock_for_update(self, db: Any, gig_id: int) -> Gig | None:
        return await self.get(db, gig_id)

    def _update(self, db: Any, gig_id: int, **changes: Any) -> Gig:
        db.state.gigs[gig_id] = replace(db.state.gigs[gig_id], **changes)
        return copy.copy(db.state.gigs[gig_id])

    async def mark_escrowed(
        self, db: Any, gig_id: int, freelancer_id: str, bid_id: int, amount: int
    ) -> Gig:
        return self._update(
            db, gig_id, status="in_progress", payment_status="in_escrow",
            freelancer_id=freelancer_id, accepted_bid_id=bid_id, escrow_amount=amount,
        )

    async def mark_released(self, db: Any, gig_id: int, commission: int) -> Gig:
        return self._update(
            db, gig_id, status="completed", payment_status="released",
            platform_fee=commission, escrow_released_at=utc_now(),
        )

    async def mark_refunded(self, db: Any, gig_id: int, reason: str | None) -> Gig:
        return self._update(
            db, gig_id, status="cancelled", payment_status="refunded", cancel_reason=reason
        )

    async def mark_cancelled(self, db: Any, gig_id: int, reason: str | None) -> Gig:
        return self._update(db, gig_id, status="cancelled", cancel_reason=reason)


class FakeBidRepository:
    async def create_bid(
        self, db: Any, gig_id: int, freelancer_id: str, amount: int, proposal: str | None
    ) -> Bid:
        bid = Bid(
            id=db.state.new_id(), gig_id=gig_id, freelancer_id=freelancer_id,
            amount=amount, proposal=proposal, created_at=utc_now(),
        )
        db.state.bids[bid.id] = bid
        return copy.copy(bid)

    async def get(self, db: Any, bid_id: int) -> Bid | None:
        bid = db.state.bids.get(bid_id)
        return copy.copy(bid) if bid else None

    async def lock_for_update(self, db: Any, bid_id: int) -> Bid | None:
        return await self.get(db, bid_id)

    async def has_pending_bid(self, db: Any, gig_id: int, freelancer_id: str) -> bool:
        return any(
            b.gig_id == gig_id and b.freelancer_id == freelancer_id and b.status == "pending"
            for b in db.state.bids.values()
        )

    async def list_for_gig(self, db: Any, gig_id: int) -> list[Bid]:
        return [copy.copy(b) for b in db.state.bids.values() if b.gig_id == gig_id]

    async def mark_accepted(self, db: Any, bid_id: int) -> Bid:
        bid = db.state.bids[bid_id]
        bid.status = "accepted"
        return copy.copy(bid)

    async def reject_pending(
        self, db: Any, gig_id: int, except_bid_id: int | None = None
    ) -> int:
        rejected = 0
        for bid in db.state.bids.values():
            if bid.gig_id == gig_id and bid.status == "pending" and bid.id != except_bid_id:
                bid.status = "rejected"
                rejected += 1
        return rejected


# ---------------------------------------------------------------------------
# Scenario builders
# ---------------------------------------------------------------------------


def make_user(user_id: str, campus: str = "unilag", role: str = "user") -> CurrentUser:
    return CurrentUser(
        id=user_id, username=user_id, email=f"{user_id}@example.com", campus=campus, role=role
    )


def add_product(
    db: FakeSession,
    product_id: str,
    seller_id: str,
    price: int | None,
    *,
    campus: str = "unilag",
    enabled: bool = True,
    deleted: bool = False,
) -> Product:
    product = Product(
        id=product_id,
        seller_id=seller_id,
        title=f"Listing {product_id}",
        price=price,
        campus=campus,
        category="books",
        platform_purchase_enabled=enabled,
        is_deleted=deleted,
    )
    db.state.products[product_id] = product
    return product


def fund(db: FakeSession, user_id: str, amount: int) -> Wallet:
    """Credit a wallet through a completed deposit row, keeping the ledger balanced."""
    wallet = db.state.wallets.get(user_id)
    if wallet is None:
        wallet = Wallet(id=db.state.new_id(), user_id=user_id, balance=0, pending_balance=0)
        db.state.wallets[user_id] = wallet
    wallet.balance += amount
    db.state.transactions.append(
        Transaction(
            id=db.state.new_id(),
            user_id=user_id,
            wallet_id=wallet.id,
            type="deposit",
            amount=amount,
            status="completed",
            reference=f"seed_{user_id}_{db.state.next_id}",
            created_at=utc_now(),
            settled_at=utc_now(),
        )
    )
    return wallet


def holdings(db: FakeSession, user_id: str) -> int:
    wallet = db.state.wallets[user_id]
    return wallet.balance + wallet.pending_balance


def ledger_sum(db: FakeSession, user_id: str) -> int:
    return sum(
        t.amount for t in db.state.transactions
        if t.user_id == user_id and t.status == "completed"
    )


def balance(db: FakeSession, user_id: str) -> int:
    wallet = db.state.wallets.get(user_id)
    return wallet.balance if wallet else 0
