"""Global enums — must match DB CHECK constraints exactly (see alembic/versions)."""

from enum import Enum


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    PREPARING = "preparing"
    READY_FOR_PICKUP = "ready_for_pickup"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CONFIRMED_BY_BUYER = "confirmed_by_buyer"


class DeliveryMethod(str, Enum):
    PICKUP = "pickup"
    CAMPUS_DELIVERY = "campus_delivery"
    MEETUP = "meetup"


class TransactionType(str, Enum):
    # External money in/out
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    WITHDRAWAL_FEE = "withdrawal_fee"
    # Escrow lifecycle (order or gig)
    ESCROW = "escrow"
    RELEASE = "release"
    REFUND = "refund"
    # Platform revenue retained on release
    FEE = "fee"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class GigStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class GigPaymentStatus(str, Enum):
    PENDING = "pending"
    IN_ESCROW = "in_escrow"
    RELEASED = "released"
    REFUNDED = "refunded"


class BidStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
