"""Repository Protocols — dependency inversion for testability.

Unit tests inject an in-memory double that conforms to these Protocols.
The infrastructure layer provides the SQL implementation.

Balance mutators return None when their guard fails (wallet missing, locked,
or short of funds); the caller re-reads the wallet to pick the error.
"""

from datetime import datetime
from typing import Any, Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_wallet.domain.models import Transaction, TransactionFilter, Wallet


class WalletRepositoryProtocol(Protocol):
    async def get(self, db: AsyncSession, user_id: str) -> Wallet | None: ...

    async def get_or_create(self, db: AsyncSession, user_id: str) -> Wallet: ...

    async def lock_for_update(self, db: AsyncSession, user_id: str) -> Wallet | None: ...

    async def apply_debit(self, db: AsyncSession, user_id: str, amount: int) -> Wallet | None: ...

    async def apply_credit(self, db: AsyncSession, user_id: str, amount: int) -> Wallet | None: ...

    async def apply_refund(self, db: AsyncSession, user_id: str, amount: int) -> Wallet | None: ...

    async def apply_deposit(self, db: AsyncSession, user_id: str, amount: int) -> Wallet | None: ...

    async def move_to_pending(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> Wallet | None: ...

    async def clear_pending(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> Wallet | None: ...

    async def return_pending(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> Wallet | None: ...

    async def set_lock(
        self, db: AsyncSession, user_id: str, locked: bool, reason: str | None
    ) -> Wallet | None: ...

    async def mark_reconciled(self, db: AsyncSession, user_id: str) -> None: ...


class TransactionRepositoryProtocol(Protocol):
    async def append(
        self,
        db: AsyncSession,
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
    ) -> Transaction: ...

    async def get_by_reference(
        self, db: AsyncSession, reference: str, for_update: bool = False
    ) -> Transaction | None: ...

    async def mark_status(
        self, db: AsyncSession, transaction_id: int, to_status: str
    ) -> Transaction | None: ...

    async def sum_completed(self, db: AsyncSession, user_id: str) -> int: ...

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        filters: TransactionFilter,
        limit: int,
        offset: int,
    ) -> list[Transaction]: ...

    async def count_for_user(
        self, db: AsyncSession, user_id: str, filters: TransactionFilter
    ) -> int: ...

    async def count_by_status(self, db: AsyncSession, user_id: str) -> dict[str, int]: ...

    async def sum_released_since(
        self, db: AsyncSession, user_id: str, since: datetime
    ) -> int: ...

    async def list_for_order(self, db: AsyncSession, order_id: int) -> list[Transaction]: ...
