"""OrderRepository — orders and order_items via raw SQL.

State transitions are plain UPDATEs on a row the caller has already locked
with ``lock_for_update``; legality is decided by the domain state machine
before any of these run.
"""

import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.enums import DeliveryStatus, OrderStatus
from src.cm_common.errors import InternalError, OrderNotFoundError
from src.cm_order.domain.models import Order, OrderDraft, OrderItem, OrderQuery
from src.cm_order.domain.snapshot import ProductSnapshot

_ORDER_COLUMNS = """
    id, order_number, buyer_id, seller_id, campus, subtotal, platform_fee,
    total_amount, status, delivery_status, delivery_method, delivery_address,
    notes, buyer_notes, seller_notes, cancel_reason, dispute_reason,
    escrow_released, escrow_released_at, buyer_confirmed_at,
    delivery_confirmed_at, created_at, updated_at
"""

_ITEM_COLUMNS = "id, order_id, product_id, quantity, price, product_snapshot"

_ORDER_NUMBER_EXISTS_SQL = text(
    "SELECT 1 FROM orders WHERE order_number = :order_number"
)

_INSERT_ORDER_SQL = text(f"""
    INSERT INTO orders
        (order_number, buyer_id, seller_id, campus, subtotal, platform_fee,
         total_amount, status, delivery_status, delivery_method,
         delivery_address, notes)
    VALUES
        (:order_number, :buyer_id, :seller_id, :campus, :subtotal, :platform_fee,
         :total_amount, 'pending', 'pending', :delivery_method,
         :delivery_address, :notes)
    RETURNING {_ORDER_COLUMNS}
""")

_INSERT_ITEM_SQL = text(f"""
    INSERT INTO order_items (order_id, product_id, quantity, price, product_snapshot)
    VALUES (:order_id, :product_id, :quantity, :price, CAST(:snapshot AS JSONB))
    RETURNING {_ITEM_COLUMNS}
""")

_GET_ORDER_SQL = text(f"SELECT {_ORDER_COLUMNS} FROM orders WHERE id = :id")

_LOCK_ORDER_SQL = text(f"SELECT {_ORDER_COLUMNS} FROM orders WHERE id = :id FOR UPDATE")

_LIST_ITEMS_SQL = text(
    f"SELECT {_ITEM_COLUMNS} FROM order_items WHERE order_id = :order_id ORDER BY id"
)

_USER_FILTER = """
    WHERE (CASE WHEN :role = 'seller' THEN seller_id ELSE buyer_id END) = :user_id
      AND (CAST(:status AS VARCHAR) IS NULL OR status = :status)
"""

_LIST_ORDERS_SQL = text(f"""
    SELECT {_ORDER_COLUMNS}
    FROM orders
    {_USER_FILTER}
    ORDER BY created_at DESC, id DESC
    LIMIT :limit OFFSET :offset
""")

_COUNT_ORDERS_SQL = text(f"SELECT COUNT(*) AS n FROM orders {_USER_FILTER}")

_UPDATE_DELIVERY_SQL = text(f"""
    UPDATE orders
    SET delivery_status = :delivery_status,
        status = :status,
        seller_notes = COALESCE(:seller_notes, seller_notes),
        delivery_confirmed_at = CASE
            WHEN :delivery_status = 'delivered' THEN NOW()
            ELSE delivery_confirmed_at
        END
    WHERE id = :id
    RETURNING {_ORDER_COLUMNS}
""")

_MARK_RELEASED_BY_BUYER_SQL = text(f"""
    UPDATE orders
    SET delivery_status = 'confirmed_by_buyer',
        status = 'completed',
        buyer_notes = COALESCE(:buyer_notes, buyer_notes),
        buyer_confirmed_at = NOW(),
        escrow_released = TRUE,
        escrow_released_at = NOW()
    WHERE id = :id AND NOT escrow_released
    RETURNING {_ORDER_COLUMNS}
""")

_MARK_RELEASED_BY_ADMIN_SQL = text(f"""
    UPDATE orders
    SET status = 'completed',
        escrow_released = TRUE,
        escrow_released_at = NOW()
    WHERE id = :id AND NOT escrow_released
    RETURNING {_ORDER_COLUMNS}
""")

_MARK_CANCELLED_SQL = text(f"""
    UPDATE orders
    SET status = 'cancelled',
        cancel_reason = :reason
    WHERE id = :id AND NOT escrow_released AND status NOT IN ('completed', 'cancelled')
    RETURNING {_ORDER_COLUMNS}
""")

_MARK_DISPUTED_SQL = text(f"""
    UPDATE orders
    SET status = 'disputed',
        dispute_reason = :reason
    WHERE id = :id AND NOT escrow_released
    RETURNING {_ORDER_COLUMNS}
""")


def _row_to_order(row: Any) -> Order:
    return Order(
        id=row.id,
        order_number=row.order_number,
        buyer_id=row.buyer_id,
        seller_id=row.seller_id,
        campus=row.campus,
        subtotal=row.subtotal,
        platform_fee=row.platform_fee,
        total_amount=row.total_amount,
        status=row.status,
        delivery_status=row.delivery_status,
        delivery_method=row.delivery_method,
        delivery_address=row.delivery_address,
        notes=row.notes,
        buyer_notes=row.buyer_notes,
        seller_notes=row.seller_notes,
        cancel_reason=row.cancel_reason,
        dispute_reason=row.dispute_reason,
        escrow_released=row.escrow_released,
        escrow_released_at=row.escrow_released_at,
        buyer_confirmed_at=row.buyer_confirmed_at,
        delivery_confirmed_at=row.delivery_confirmed_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_item(row: Any) -> OrderItem:
    snapshot = row.product_snapshot
    if isinstance(snapshot, str):
        snapshot = json.loads(snapshot)
    return OrderItem(
        id=row.id,
        order_id=row.order_id,
        product_id=row.product_id,
        quantity=row.quantity,
        price=row.price,
        product_snapshot=ProductSnapshot.from_dict(snapshot),
    )


def _query_params(query: OrderQuery) -> dict[str, Any]:
    return {"user_id": query.user_id, "role": query.role, "status": query.status}


class OrderRepository:
    async def order_number_exists(self, db: AsyncSession, order_number: str) -> bool:
        row = (
            await db.execute(_ORDER_NUMBER_EXISTS_SQL, {"order_number": order_number})
        ).fetchone()
        return row is not None

    async def create_order(
        self, db: AsyncSession, draft: OrderDraft, order_number: str
    ) -> Order:
        row = (
            await db.execute(
                _INSERT_ORDER_SQL,
                {
                    "order_number": order_number,
                    "buyer_id": draft.buyer_id,
                    "seller_id": draft.seller_id,
                    "campus": draft.campus,
                    "subtotal": draft.subtotal,
                    "platform_fee": draft.platform_fee,
                    "total_amount": draft.total_amount,
                    "delivery_method": draft.delivery_method,
                    "delivery_address": draft.delivery_address,
                    "notes": draft.notes,
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Order insert returned no rows")
        return _row_to_order(row)

    async def add_item(
        self,
        db: AsyncSession,
        order_id: int,
        product_id: str,
        quantity: int,
        price: int,
        snapshot: ProductSnapshot,
    ) -> OrderItem:
        row = (
            await db.execute(
                _INSERT_ITEM_SQL,
                {
                    "order_id": order_id,
                    "product_id": product_id,
                    "quantity": quantity,
                    "price": price,
                    "snapshot": json.dumps(snapshot.to_dict()),
                },
            )
        ).fetchone()
        if row is None:
            raise InternalError("Order item insert returned no rows")
        return _row_to_item(row)

    async def get(self, db: AsyncSession, order_id: int) -> Order | None:
        row = (await db.execute(_GET_ORDER_SQL, {"id": order_id})).fetchone()
        return _row_to_order(row) if row else None

    async def lock_for_update(self, db: AsyncSession, order_id: int) -> Order | None:
        row = (await db.execute(_LOCK_ORDER_SQL, {"id": order_id})).fetchone()
        return _row_to_order(row) if row else None

    async def list_items(self, db: AsyncSession, order_id: int) -> list[OrderItem]:
        rows = (await db.execute(_LIST_ITEMS_SQL, {"order_id": order_id})).fetchall()
        return [_row_to_item(row) for row in rows]

    async def list_for_user(self, db: AsyncSession, query: OrderQuery) -> list[Order]:
        params = _query_params(query) | {
            "limit": query.limit,
            "offset": (query.page - 1) * query.limit,
        }
        rows = (await db.execute(_LIST_ORDERS_SQL, params)).fetchall()
        return [_row_to_order(row) for row in rows]

    async def count_for_user(self, db: AsyncSession, query: OrderQuery) -> int:
        row = (await db.execute(_COUNT_ORDERS_SQL, _query_params(query))).fetchone()
        return int(row.n) if row else 0

    async def _transition(self, db: AsyncSession, sql: Any, params: dict[str, Any]) -> Order:
        row = (await db.execute(sql, params)).fetchone()
        if row is None:
            raise OrderNotFoundError(params["id"])
        return _row_to_order(row)

    async def update_delivery(
        self,
        db: AsyncSession,
        order_id: int,
        delivery_status: str,
        status: str,
        seller_notes: str | None,
    ) -> Order:
        return await self._transition(
            db,
            _UPDATE_DELIVERY_SQL,
            {
                "id": order_id,
                "delivery_status": DeliveryStatus(delivery_status).value,
                "status": OrderStatus(status).value,
                "seller_notes": seller_notes,
            },
        )

    async def mark_released(
        self,
        db: AsyncSession,
        order_id: int,
        confirmed_by_buyer: bool,
        buyer_notes: str | None,
    ) -> Order:
        if confirmed_by_buyer:
            return await self._transition(
                db, _MARK_RELEASED_BY_BUYER_SQL, {"id": order_id, "buyer_notes": buyer_notes}
            )
        return await self._transition(db, _MARK_RELEASED_BY_ADMIN_SQL, {"id": order_id})

    async def mark_cancelled(self, db: AsyncSession, order_id: int, reason: str) -> Order:
        return await self._transition(db, _MARK_CANCELLED_SQL, {"id": order_id, "reason": reason})

    async def mark_disputed(self, db: AsyncSession, order_id: int, reason: str) -> Order:
        return await self._transition(db, _MARK_DISPUTED_SQL, {"id": order_id, "reason": reason})
