"""OrderFactory — turns a buyer's cart into escrow-backed orders, one per seller.

Checkout is one unit of work on the injected session:

  1. lock the buyer's wallet row (FOR UPDATE)
  2. aggregate the cart by seller (price at add time)
  3. load the fee schedule once; fee and total per seller group
  4. compare the grand total with the balance before writing anything
  5. per group: order number, order row, item rows with product snapshots,
     one escrow debit referencing the order
  6. delete exactly the cart items that were consumed
  7. commit, then notify

Any error rolls back the whole unit: no orders, no debits, cart untouched.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from src.cm_cart.application.aggregator import CartAggregator
from src.cm_cart.domain.models import SellerGroup
from src.cm_cart.domain.repository import CartRepositoryProtocol
from src.cm_cart.infrastructure.persistence import CartRepository
from src.cm_common.enums import DeliveryMethod, TransactionType
from src.cm_common.errors import InsufficientFundsError, OrderNumberExhaustedError
from src.cm_common.references import escrow_reference, generate_order_number
from src.cm_fee.domain.calculator import calculate_platform_fee
from src.cm_fee.domain.models import FeeSchedule
from src.cm_fee.domain.repository import FeeScheduleRepositoryProtocol
from src.cm_fee.infrastructure.persistence import FeeScheduleRepository
from src.cm_gateway.user.models import CurrentUser
from src.cm_notify.dispatcher import NotificationDispatcher
from src.cm_order.domain.models import Order, OrderDraft, OrderItem
from src.cm_order.domain.repository import OrderRepositoryProtocol
from src.cm_order.domain.snapshot import ProductSnapshot
from src.cm_order.infrastructure.persistence import OrderRepository
from src.cm_wallet.application.ledger import WalletLedger

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    orders: list[Order]
    items: dict[int, list[OrderItem]] = field(default_factory=dict)

    @property
    def grand_total(self) -> int:
        return sum(o.total_amount for o in self.orders)


class OrderFactory:
    def __init__(
        self,
        orders: OrderRepositoryProtocol | None = None,
        carts: CartRepositoryProtocol | None = None,
        aggregator: CartAggregator | None = None,
        fees: FeeScheduleRepositoryProtocol | None = None,
        ledger: WalletLedger | None = None,
        notifier: NotificationDispatcher | None = None,
        order_numbers: Callable[[], str] = generate_order_number,
    ) -> None:
        self._orders: OrderRepositoryProtocol = orders or OrderRepository()
        self._carts: CartRepositoryProtocol = carts or CartRepository()
        self._aggregator = aggregator or CartAggregator(carts=self._carts)
        self._fees: FeeScheduleRepositoryProtocol = fees or FeeScheduleRepository()
        self._ledger = ledger or WalletLedger()
        self._notifier = notifier or NotificationDispatcher()
        self._order_numbers = order_numbers

    @staticmethod
    def draft_for(
        buyer: CurrentUser,
        group: SellerGroup,
        schedule: FeeSchedule,
        delivery_method: DeliveryMethod | str,
        delivery_address: str | None = None,
        notes: str | None = None,
    ) -> OrderDraft:
        campus = buyer.campus or (group.items[0].product.campus if group.items else None)
        subtotal = group.subtotal
        fee = calculate_platform_fee(subtotal, campus, schedule).fee
        return OrderDraft(
            buyer_id=buyer.id,
            seller_id=group.seller_id,
            campus=campus,
            subtotal=subtotal,
            platform_fee=fee,
            delivery_method=DeliveryMethod(delivery_method).value,
            delivery_address=delivery_address,
            notes=notes,
            cart_item_ids=group.cart_item_ids,
        )

    async def _allocate_order_number(self, db: AsyncSession, taken: set[str]) -> str:
        for _ in range(settings.ORDER_NUMBER_MAX_ATTEMPTS):
            candidate = self._order_numbers()
            if candidate in taken:
                continue
            if not await self._orders.order_number_exists(db, candidate):
                taken.add(candidate)
                return candidate
        raise OrderNumberExhaustedError()

    async def checkout(
        self,
        db: AsyncSession,
        buyer: CurrentUser,
        delivery_method: DeliveryMethod | str = DeliveryMethod.PICKUP,
        delivery_address: str | None = None,
        notes: str | None = None,
    ) -> CheckoutResult:
        result = CheckoutResult(orders=[])
        try:
            wallet = await self._ledger.lock_wallet(db, buyer.id)
            groups = await self._aggregator.aggregate(db, buyer.id)
            schedule = await self._fees.get_active(db)
            drafts = [
                self.draft_for(buyer, g, schedule, delivery_method, delivery_address, notes)
                for g in groups
            ]
            grand_total = sum(d.total_amount for d in drafts)
            if wallet.balance < grand_total:
                raise InsufficientFundsError(grand_total, wallet.balance)

            taken: set[str] = set()
            for group, draft in zip(groups, drafts):
                order_number = await self._allocate_order_number(db, taken)
                order = await self._orders.create_order(db, draft, order_number)
                result.items[order.id] = [
                    await self._orders.add_item(
                        db,
                        order.id,
                        line.product_id,
                        line.quantity,
                        line.price,
                        ProductSnapshot.capture(line.product, line.price),
                    )
                    for line in group.items
                ]
                await self._ledger.debit(
                    db,
                    buyer.id,
                    order.total_amount,
                    TransactionType.ESCROW,
                    reference=escrow_reference(order.order_number),
                    order_id=order.id,
                    description=f"Payment held in escrow for order {order.order_number}",
                    metadata={
                        "order_number": order.order_number,
                        "subtotal": order.subtotal,
                        "platform_fee": order.platform_fee,
                    },
                )
                result.orders.append(order)

            await self._carts.delete_items(
                db, [item_id for d in drafts for item_id in d.cart_item_ids]
            )
            await db.commit()
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Checkout buyer=%s orders=%s grand_total=%d",
            buyer.id, [o.order_number for o in result.orders], result.grand_total,
        )
        for order in result.orders:
            await self._notifier.publish(
                "order.created",
                [order.buyer_id, order.seller_id],
                {
                    "order_id": order.id,
                    "order_number": order.order_number,
                    "total_amount": order.total_amount,
                },
            )
        return result
