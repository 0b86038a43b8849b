"""EscrowService — every order state transition after checkout.

Each mutator locks the order row, asks the state machine whether the move is
legal, writes the new state and moves money through WalletLedger, then commits.
Notifications go out only after the commit and never fail the transition.

Release pays the seller the subtotal and the platform wallet the fee.
Cancellation refunds the buyer the full total: the fee is earned only on
release, and once released it is never returned.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.enums import DeliveryStatus, OrderStatus, TransactionType
from src.cm_common.errors import (
    AlreadySettledError,
    NotAuthorizedError,
    OrderNotFoundError,
    OutOfOrderTransitionError,
    ReasonRequiredError,
)
from src.cm_common.references import fee_reference, refund_reference, release_reference
from src.cm_gateway.user.models import CurrentUser
from src.cm_notify.dispatcher import NotificationDispatcher
from src.cm_order.domain.models import Order
from src.cm_order.domain.repository import OrderRepositoryProtocol
from src.cm_order.domain.state_machine import (
    TERMINAL_STATUSES,
    validate_delivery_transition,
    validate_seller_advance,
    validate_status_transition,
)
from src.cm_order.infrastructure.persistence import OrderRepository
from src.cm_wallet.application.ledger import WalletLedger
from src.cm_wallet.domain.models import PLATFORM_FEE_USER_ID

logger = logging.getLogger(__name__)


class EscrowService:
    def __init__(
        self,
        orders: OrderRepositoryProtocol | None = None,
        ledger: WalletLedger | None = None,
        notifier: NotificationDispatcher | None = None,
    ) -> None:
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()
        self._ledger = ledger or WalletLedger()
        self._notifier = notifier or NotificationDispatcher()

    async def _locked(self, db: AsyncSession, order_id: int) -> Order:
        order = await self._orders.lock_for_update(db, order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def _notify(self, event: str, order: Order, recipients: list[str], **extra: Any) -> None:
        await self._notifier.publish(
            event,
            recipients,
            {"order_id": order.id, "order_number": order.order_number, **extra},
        )

    # ------------------------------------------------------------------
    # Seller delivery progress
    # ------------------------------------------------------------------

    async def advance_delivery(
        self,
        db: AsyncSession,
        order_id: int,
        seller: CurrentUser,
        new_status: DeliveryStatus | str,
        seller_notes: str | None = None,
    ) -> Order:
        target = DeliveryStatus(new_status).value
        try:
            order = await self._locked(db, order_id)
            if order.seller_id != seller.id:
                raise NotAuthorizedError("update delivery for this order")
            delivery, status = validate_seller_advance(
                order.status, order.delivery_status, order.escrow_released, target
            )
            order = await self._orders.update_delivery(
                db, order_id, delivery.value, status.value, seller_notes
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order %s delivery -> %s", order.order_number, target)
        await self._notify(
            "order.delivery_updated", order, [order.buyer_id],
            delivery_status=target, seller_notes=seller_notes,
        )
        return order

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    async def _release(
        self,
        db: AsyncSession,
        order: Order,
        *,
        confirmed_by_buyer: bool,
        buyer_notes: str | None = None,
        override_by: str | None = None,
        note: str | None = None,
    ) -> Order:
        released = await self._orders.mark_released(
            db, order.id, confirmed_by_buyer, buyer_notes
        )
        metadata: dict[str, Any] = {"order_number": order.order_number, "override": False}
        if override_by is not None:
            metadata |= {"override": True, "admin_id": override_by, "note": note}
        await self._ledger.credit(
            db,
            order.seller_id,
            order.subtotal,
            TransactionType.RELEASE,
            reference=release_reference(order.order_number),
            order_id=order.id,
            description=f"Payment released for order {order.order_number}",
            metadata=metadata,
        )
        if order.platform_fee > 0:
            await self._ledger.credit(
                db,
                PLATFORM_FEE_USER_ID,
                order.platform_fee,
                TransactionType.FEE,
                reference=fee_reference(order.order_number),
                order_id=order.id,
                description=f"Platform fee for order {order.order_number}",
                metadata={"order_number": order.order_number, "buyer_id": order.buyer_id},
            )
        return released

    async def confirm_delivery(
        self,
        db: AsyncSession,
        order_id: int,
        buyer: CurrentUser,
        buyer_notes: str | None = None,
    ) -> Order:
        """Buyer confirms receipt; releases escrow. Repeating it is a no-op."""
        try:
            order = await self._locked(db, order_id)
            if order.buyer_id != buyer.id:
                raise NotAuthorizedError("confirm delivery for this order")
            if order.escrow_released:
                await db.commit()
                logger.info("Order %s already released, confirm ignored", order.order_number)
                return order
            if order.status in (OrderStatus.CANCELLED, OrderStatus.DISPUTED):
                raise OutOfOrderTransitionError(
                    order.status, DeliveryStatus.CONFIRMED_BY_BUYER.value
                )
            validate_delivery_transition(
                order.delivery_status, DeliveryStatus.CONFIRMED_BY_BUYER.value
            )
            validate_status_transition(order.status, OrderStatus.COMPLETED.value)
            released = await self._release(
                db, order, confirmed_by_buyer=True, buyer_notes=buyer_notes
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Order %s released: seller=%s amount=%d fee=%d",
            order.order_number, order.seller_id, order.subtotal, order.platform_fee,
        )
        await self._notify(
            "order.completed", released, [released.seller_id], amount=released.subtotal
        )
        return released

    # ------------------------------------------------------------------
    # Cancellation and disputes
    # ------------------------------------------------------------------

    async def _refund(
        self, db: AsyncSession, order: Order, reason: str, metadata: dict[str, Any]
    ) -> Order:
        cancelled = await self._orders.mark_cancelled(db, order.id, reason)
        await self._ledger.refund(
            db,
            order.buyer_id,
            order.total_amount,
            reference=refund_reference(order.order_number),
            order_id=order.id,
            description=f"Refund for cancelled order {order.order_number}",
            metadata={"order_number": order.order_number, "reason": reason, **metadata},
        )
        return cancelled

    async def cancel_order(
        self, db: AsyncSession, order_id: int, actor: CurrentUser, reason: str
    ) -> Order:
        if not reason or not reason.strip():
            raise ReasonRequiredError("cancel an order")
        reason = reason.strip()
        try:
            order = await self._locked(db, order_id)
            role = order.party_role(actor.id)
            if role is None:
                raise NotAuthorizedError("cancel this order")
            if order.escrow_released or OrderStatus(order.status) in TERMINAL_STATUSES:
                raise AlreadySettledError(f"Order {order.order_number}")
            validate_status_transition(order.status, OrderStatus.CANCELLED.value)
            cancelled = await self._refund(db, order, reason, {"cancelled_by": role})
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info(
            "Order %s cancelled by %s, refunded %d to buyer=%s",
            order.order_number, role, order.total_amount, order.buyer_id,
        )
        other = order.seller_id if role == "buyer" else order.buyer_id
        await self._notify(
            "order.cancelled", cancelled, [other], cancelled_by=role, reason=reason
        )
        return cancelled

    async def open_dispute(
        self, db: AsyncSession, order_id: int, buyer: CurrentUser, reason: str
    ) -> Order:
        if not reason or not reason.strip():
            raise ReasonRequiredError("open a dispute")
        reason = reason.strip()
        try:
            order = await self._locked(db, order_id)
            if order.buyer_id != buyer.id:
                raise NotAuthorizedError("dispute this order")
            if order.escrow_released or OrderStatus(order.status) in TERMINAL_STATUSES:
                raise AlreadySettledError(f"Order {order.order_number}")
            validate_status_transition(order.status, OrderStatus.DISPUTED.value)
            disputed = await self._orders.mark_disputed(db, order_id, reason)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.info("Order %s disputed by buyer=%s", order.order_number, buyer.id)
        await self._notify("order.disputed", disputed, [order.seller_id], reason=reason)
        return disputed

    # ------------------------------------------------------------------
    # Admin override
    # ------------------------------------------------------------------

    async def admin_release(
        self, db: AsyncSession, order_id: int, admin: CurrentUser, note: str | None = None
    ) -> Order:
        """Release a disputed or delivered order to the seller."""
        try:
            order = await self._locked(db, order_id)
            if order.escrow_released:
                await db.commit()
                return order
            if order.status == OrderStatus.CANCELLED:
                raise AlreadySettledError(f"Order {order.order_number}")
            if order.status not in (OrderStatus.DISPUTED, OrderStatus.DELIVERED):
                raise OutOfOrderTransitionError(order.status, OrderStatus.COMPLETED.value)
            released = await self._release(
                db, order, confirmed_by_buyer=False, override_by=admin.id, note=note
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.warning(
            "Order %s released by admin=%s override note=%r",
            order.order_number, admin.id, note,
        )
        await self._notify(
            "order.completed", released, [released.buyer_id, released.seller_id],
            override=True,
        )
        return released

    async def admin_refund(
        self, db: AsyncSession, order_id: int, admin: CurrentUser, note: str | None = None
    ) -> Order:
        """Resolve a dispute in the buyer's favour with a full refund."""
        try:
            order = await self._locked(db, order_id)
            if order.escrow_released or OrderStatus(order.status) in TERMINAL_STATUSES:
                raise AlreadySettledError(f"Order {order.order_number}")
            if order.status != OrderStatus.DISPUTED:
                raise OutOfOrderTransitionError(order.status, OrderStatus.CANCELLED.value)
            cancelled = await self._refund(
                db, order, note or "Refunded after dispute review",
                {"override": True, "admin_id": admin.id},
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        logger.warning("Order %s refunded by admin=%s", order.order_number, admin.id)
        await self._notify(
            "order.cancelled", cancelled, [cancelled.buyer_id, cancelled.seller_id],
            override=True,
        )
        return cancelled
