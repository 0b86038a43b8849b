"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: Auth/Actor
  2xxx: Wallet
  3xxx: Cart
  4xxx: Order/Escrow
  5xxx: Gig/Bid
  9xxx: System

Messages are user-facing: they say what to do next, never which ledger row
was involved. Structured hints for remediation flows go in ``details``.
"""

from typing import Any


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        self.details = details
        super().__init__(message)


# --- 1xxx: Auth/Actor ---

class AccountDisabledError(AppError):
    def __init__(self) -> None:
        super().__init__(1001, "Account is disabled", 403)


class NotAuthorizedError(AppError):
    def __init__(self, action: str) -> None:
        super().__init__(1002, f"You are not allowed to {action}", 403)


# --- 2xxx: Wallet ---

class InsufficientFundsError(AppError):
    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            2001,
            "Insufficient balance, deposit required: "
            f"required {required}, available {available}",
            400,
            details={
                "required": required,
                "available": available,
                "shortfall": max(required - available, 0),
                "remediation": "deposit",
            },
        )
        self.required = required
        self.available = available


class WalletNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(2002, f"Wallet not found for user {user_id}", 404)


class WalletLockedError(AppError):
    def __init__(self) -> None:
        super().__init__(
            2003,
            "Wallet is locked pending manual audit, contact support",
            423,
            details={"remediation": "contact_support"},
        )


class InvalidAmountError(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(2004, f"Invalid amount: {detail}", 422)


class TransactionNotFoundError(AppError):
    def __init__(self, reference: str) -> None:
        super().__init__(2005, f"No payment found for reference {reference}", 404)


class InvalidSignatureError(AppError):
    def __init__(self) -> None:
        super().__init__(2006, "Invalid webhook signature", 401)


class InvalidWebhookPayloadError(AppError):
    def __init__(self) -> None:
        super().__init__(2007, "Malformed webhook payload", 400)


# --- 3xxx: Cart ---

class EmptyCartError(AppError):
    def __init__(self) -> None:
        super().__init__(
            3001, "Cart is empty", 400, details={"remediation": "add_items"}
        )


class StaleCartItemError(AppError):
    def __init__(self, product_ids: list[str]) -> None:
        super().__init__(
            3002,
            "Some cart items are no longer available, remove them to continue",
            400,
            details={"product_ids": product_ids, "remediation": "cart_cleanup"},
        )
        self.product_ids = product_ids


class ProductNotFoundError(AppError):
    def __init__(self, product_id: str) -> None:
        super().__init__(3003, f"Product not found: {product_id}", 404)


class ProductUnavailableError(AppError):
    def __init__(self, product_id: str) -> None:
        super().__init__(
            3004,
            f"Product {product_id} is not available for platform purchase, "
            "contact the seller directly",
            400,
        )


class CartItemNotFoundError(AppError):
    def __init__(self, item_id: int) -> None:
        super().__init__(3005, f"Cart item not found: {item_id}", 404)


# --- 4xxx: Order/Escrow ---

class OrderNotFoundError(AppError):
    def __init__(self, order_id: int) -> None:
        super().__init__(4001, f"Order not found: {order_id}", 404)


class OutOfOrderTransitionError(AppError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            4002,
            f"Cannot move from {current} to {target}",
            409,
            details={"current": current, "target": target},
        )


class AlreadySettledError(AppError):
    def __init__(self, subject: str) -> None:
        super().__init__(
            4003, f"{subject} is already settled and cannot be changed", 409
        )


class OrderNumberExhaustedError(AppError):
    def __init__(self) -> None:
        super().__init__(4004, "Could not allocate a unique order number, retry", 503)


class ReasonRequiredError(AppError):
    def __init__(self, action: str) -> None:
        super().__init__(4005, f"A reason is required to {action}", 422)


# --- 5xxx: Gig/Bid ---

class GigNotFoundError(AppError):
    def __init__(self, gig_id: int) -> None:
        super().__init__(5001, f"Gig not found: {gig_id}", 404)


class BidNotFoundError(AppError):
    def __init__(self, bid_id: int) -> None:
        super().__init__(5002, f"Bid not found: {bid_id}", 404)


class GigNotOpenError(AppError):
    def __init__(self, gig_id: int, status: str) -> None:
        super().__init__(5003, f"Gig {gig_id} is {status}, not open for bids", 409)


class DuplicateBidError(AppError):
    def __init__(self, gig_id: int) -> None:
        super().__init__(5004, f"You already have a pending bid on gig {gig_id}", 409)


# --- 9xxx: System ---

class ReconciliationError(AppError):
    """Ledger and wallet disagree. Fatal: the wallet is locked for audit."""

    def __init__(self, user_id: str, expected: int, actual: int) -> None:
        super().__init__(
            9001,
            f"Ledger reconciliation failed for user {user_id}: "
            f"wallet holds {actual}, ledger sums to {expected}",
            500,
        )
        self.user_id = user_id
        self.expected = expected
        self.actual = actual


class ConcurrentUpdateError(AppError):
    def __init__(self) -> None:
        super().__init__(
            9002,
            "The resource was modified concurrently, retry the request",
            409,
            details={"retryable": True},
        )


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9003, detail, 500)
