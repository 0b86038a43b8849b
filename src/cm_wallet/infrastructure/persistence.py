"""WalletRepository / TransactionRepository — SQL implementations of the Protocols.

All balance-mutating operations use atomic PostgreSQL UPDATE ... RETURNING.
A result of 0 rows means a guard failed (missing wallet, locked wallet,
insufficient funds); the ledger re-reads the wallet to raise the right error.

Transaction ownership: the CALLER (application service) commits or rolls back.
"""

import json
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from src.cm_common.datetime_utils import utc_now
from src.cm_common.enums import TransactionStatus, TransactionType
from src.cm_common.errors import InternalError
from src.cm_wallet.domain.models import Transaction, TransactionFilter, Wallet

_WALLET_COLUMNS = """
    id, user_id, balance, pending_balance, total_earned, total_spent,
    is_locked, locked_reason, last_withdrawal, last_transaction_at,
    last_reconciled_at, version, created_at, updated_at
"""

_TX_COLUMNS = """
    id, user_id, wallet_id, type, amount, fee, status, reference, order_id,
    gig_id, description, metadata, created_at, settled_at
"""

# ---------------------------------------------------------------------------
# SQL: wallets
# ---------------------------------------------------------------------------

_GET_WALLET_SQL = text(f"SELECT {_WALLET_COLUMNS} FROM wallets WHERE user_id = :user_id")

_LOCK_WALLET_SQL = text(
    f"SELECT {_WALLET_COLUMNS} FROM wallets WHERE user_id = :user_id FOR UPDATE"
)

_ENSURE_WALLET_SQL = text("""
    INSERT INTO wallets (user_id)
    VALUES (:user_id)
    ON CONFLICT (user_id) DO NOTHING
""")

_DEBIT_SQL = text(f"""
    UPDATE wallets
    SET balance = balance - :amount,
        total_spent = total_spent + :amount,
        last_transaction_at = NOW(),
        version = version + 1
    WHERE user_id = :user_id AND NOT is_locked AND balance >= :amount
    RETURNING {_WALLET_COLUMNS}
""")

_CREDIT_SQL = text(f"""
    UPDATE wallets
    SET balance = balance + :amount,
        total_earned = total_earned + :amount,
        last_transaction_at = NOW(),
        version = version + 1
    WHERE user_id = :user_id AND NOT is_locked
    RETURNING {_WALLET_COLUMNS}
""")

_REFUND_SQL = text(f"""
    UPDATE wallets
    SET balance = balance + :amount,
        total_spent = GREATEST(total_spent - :amount, 0),
        last_transaction_at = NOW(),
        version = version + 1
    WHERE user_id = :user_id AND NOT is_locked
    RETURNING {_WALLET_COLUMNS}
""")

# Money already received externally; applied even while an audit lock is held.
_DEPOSIT_SQL = text(f"""
    UPDATE wallets
    SET balance = balance + :amount,
        last_transaction_at = NOW(),
        version = version + 1
    WHERE user_id = :user_id
    RETURNING {_WALLET_COLUMNS}
""")

_MOVE_TO_PENDING_SQL = text(f"""
    UPDATE wallets
    SET balance = balance - :amount,
        pending_balance = pending_balance + :amount,
        last_transaction_at = NOW(),
        version = version + 1
    WHERE user_id = :user_id AND NOT is_locked AND balance >= :amount
    RETURNING {_WALLET_COLUMNS}
""")

# Settlement re-entry from the payment gateway; not blocked by a lock so an
# audit hold never strands money in pending.
_CLEAR_PENDING_SQL = text(f"""
    UPDATE wallets
    SET pending_balance = pending_balance - :amount,
        last_withdrawal = NOW(),
        last_transaction_at = NOW(),
        version = version + 1
    WHERE user_id = :user_id AND pending_balance >= :amount
    RETURNING {_WALLET_COLUMNS}
""")

_RETURN_PENDING_SQL = text(f"""
    UPDATE wallets
    SET pending_balance = pending_balance - :amount,
        balance = balance + :amount,
        last_transaction_at = NOW(),
        version = version + 1
    WHERE user_id = :user_id AND pending_balance >= :amount
    RETURNING {_WALLET_COLUMNS}
""")

_SET_LOCK_SQL = text(f"""
    UPDATE wallets
    SET is_locked = :locked,
        locked_reason = :reason,
        version = version + 1
    WHERE user_id = :user_id
    RETURNING {_WALLET_COLUMNS}
""")

_MARK_RECONCILED_SQL = text("""
    UPDATE wallets SET last_reconciled_at = NOW() WHERE user_id = :user_id
""")

# ---------------------------------------------------------------------------
# SQL: transactions
# ---------------------------------------------------------------------------

_INSERT_TX_SQL = text(f"""
    INSERT INTO transactions
        (user_id, wallet_id, type, amount, fee, status, reference,
         order_id, gig_id, description, metadata, settled_at)
    VALUES
        (:user_id, :wallet_id, :type, :amount, :fee, :status, :reference,
         :order_id, :gig_id, :description, CAST(:metadata AS JSONB), :settled_at)
    RETURNING {_TX_COLUMNS}
""")

_GET_TX_BY_REFERENCE_SQL = text(
    f"SELECT {_TX_COLUMNS} FROM transactions WHERE reference = :reference"
)

_LOCK_TX_BY_REFERENCE_SQL = text(
    f"SELECT {_TX_COLUMNS} FROM transactions WHERE reference = :reference FOR UPDATE"
)

# Exactly-once: a row leaves 'pending' a single time
_MARK_TX_STATUS_SQL = text(f"""
    UPDATE transactions
    SET status = :to_status,
        settled_at = NOW()
    WHERE id = :id AND status = 'pending'
    RETURNING {_TX_COLUMNS}
""")

_SUM_COMPLETED_SQL = text("""
    SELECT COALESCE(SUM(amount), 0) AS total
    FROM transactions
    WHERE user_id = :user_id AND status = 'completed'
""")

_FILTER_CLAUSE = """
    WHERE user_id = :user_id
      AND (CAST(:type AS VARCHAR) IS NULL OR type = :type)
      AND (CAST(:status AS VARCHAR) IS NULL OR status = :status)
      AND (CAST(:since AS TIMESTAMPTZ) IS NULL OR created_at >= :since)
      AND (CAST(:until AS TIMESTAMPTZ) IS NULL OR created_at <= :until)
"""

_LIST_TX_SQL = text(f"""
    SELECT {_TX_COLUMNS}
    FROM transactions
    {_FILTER_CLAUSE}
    ORDER BY created_at DESC, id DESC
    LIMIT :limit OFFSET :offset
""")

_COUNT_TX_SQL = text(f"SELECT COUNT(*) AS n FROM transactions {_FILTER_CLAUSE}")

_COUNT_BY_STATUS_SQL = text("""
    SELECT status, COUNT(*) AS n
    FROM transactions
    WHERE user_id = :user_id
    GROUP BY status
""")

_SUM_RELEASED_SINCE_SQL = text("""
    SELECT COALESCE(SUM(amount), 0) AS total
    FROM transactions
    WHERE user_id = :user_id
      AND type = 'release'
      AND status = 'completed'
      AND created_at >= :since
""")

_LIST_FOR_ORDER_SQL = text(
    f"SELECT {_TX_COLUMNS} FROM transactions WHERE order_id = :order_id ORDER BY id"
)


def _row_to_wallet(row: Any) -> Wallet:
    return Wallet(
        id=row.id,
        user_id=row.user_id,
        balance=row.balance,
        pending_balance=row.pending_balance,
        total_earned=row.total_earned,
        total_spent=row.total_spent,
        is_locked=row.is_locked,
        locked_reason=row.locked_reason,
        last_withdrawal=row.last_withdrawal,
        last_transaction_at=row.last_transaction_at,
        last_reconciled_at=row.last_reconciled_at,
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_transaction(row: Any) -> Transaction:
    metadata = row.metadata
    if isinstance(metadata, str):
        metadata = json.loads(metadata)
    return Transaction(
        id=row.id,
        user_id=row.user_id,
        wallet_id=row.wallet_id,
        type=row.type,
        amount=row.amount,
        fee=row.fee,
        status=row.status,
        reference=row.reference,
        order_id=row.order_id,
        gig_id=row.gig_id,
        description=row.description,
        metadata=metadata or {},
        created_at=row.created_at,
        settled_at=row.settled_at,
    )


def _filter_params(user_id: str, filters: TransactionFilter) -> dict[str, Any]:
    return {
        "user_id": user_id,
        "type": filters.type,
        "status": filters.status,
        "since": filters.since,
        "until": filters.until,
    }


class WalletRepository:
    """Concrete repository: every balance change is one atomic UPDATE."""

    async def get(self, db: AsyncSession, user_id: str) -> Wallet | None:
        row = (await db.execute(_GET_WALLET_SQL, {"user_id": user_id})).fetchone()
        return _row_to_wallet(row) if row else None

    async def get_or_create(self, db: AsyncSession, user_id: str) -> Wallet:
        await db.execute(_ENSURE_WALLET_SQL, {"user_id": user_id})
        wallet = await self.get(db, user_id)
        if wallet is None:
            raise InternalError(f"Wallet upsert returned nothing for user {user_id}")
        return wallet

    async def lock_for_update(self, db: AsyncSession, user_id: str) -> Wallet | None:
        row = (await db.execute(_LOCK_WALLET_SQL, {"user_id": user_id})).fetchone()
        return _row_to_wallet(row) if row else None

    async def _mutate(
        self, db: AsyncSession, sql: Any, user_id: str, amount: int
    ) -> Wallet | None:
        row = (await db.execute(sql, {"user_id": user_id, "amount": amount})).fetchone()
        return _row_to_wallet(row) if row else None

    async def apply_debit(self, db: AsyncSession, user_id: str, amount: int) -> Wallet | None:
        return await self._mutate(db, _DEBIT_SQL, user_id, amount)

    async def apply_credit(self, db: AsyncSession, user_id: str, amount: int) -> Wallet | None:
        return await self._mutate(db, _CREDIT_SQL, user_id, amount)

    async def apply_refund(self, db: AsyncSession, user_id: str, amount: int) -> Wallet | None:
        return await self._mutate(db, _REFUND_SQL, user_id, amount)

    async def apply_deposit(self, db: AsyncSession, user_id: str, amount: int) -> Wallet | None:
        return await self._mutate(db, _DEPOSIT_SQL, user_id, amount)

    async def move_to_pending(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> Wallet | None:
        return await self._mutate(db, _MOVE_TO_PENDING_SQL, user_id, amount)

    async def clear_pending(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> Wallet | None:
        return await self._mutate(db, _CLEAR_PENDING_SQL, user_id, amount)

    async def return_pending(
        self, db: AsyncSession, user_id: str, amount: int
    ) -> Wallet | None:
        return await self._mutate(db, _RETURN_PENDING_SQL, user_id, amount)

    async def set_lock(
        self, db: AsyncSession, user_id: str, locked: bool, reason: str | None
    ) -> Wallet | None:
        row = (
            await db.execute(
                _SET_LOCK_SQL, {"user_id": user_id, "locked": locked, "reason": reason}
            )
        ).fetchone()
        return _row_to_wallet(row) if row else None

    async def mark_reconciled(self, db: AsyncSession, user_id: str) -> None:
        await db.execute(_MARK_RECONCILED_SQL, {"user_id": user_id})


class TransactionRepository:
    """Append-only access to the transactions table."""

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
    ) -> Transaction:
        result = await db.execute(
            _INSERT_TX_SQL,
            {
                "user_id": user_id,
                "wallet_id": wallet_id,
                "type": TransactionType(type).value,
                "amount": amount,
                "fee": fee,
                "status": TransactionStatus(status).value,
                "reference": reference,
                "order_id": order_id,
                "gig_id": gig_id,
                "description": description,
                "metadata": json.dumps(metadata or {}),
                "settled_at": utc_now() if status == TransactionStatus.COMPLETED else None,
            },
        )
        row = result.fetchone()
        if row is None:
            raise InternalError("Transaction insert returned no rows")
        return _row_to_transaction(row)

    async def get_by_reference(
        self, db: AsyncSession, reference: str, for_update: bool = False
    ) -> Transaction | None:
        sql = _LOCK_TX_BY_REFERENCE_SQL if for_update else _GET_TX_BY_REFERENCE_SQL
        row = (await db.execute(sql, {"reference": reference})).fetchone()
        return _row_to_transaction(row) if row else None

    async def mark_status(
        self, db: AsyncSession, transaction_id: int, to_status: str
    ) -> Transaction | None:
        row = (
            await db.execute(
                _MARK_TX_STATUS_SQL,
                {"id": transaction_id, "to_status": TransactionStatus(to_status).value},
            )
        ).fetchone()
        return _row_to_transaction(row) if row else None

    async def sum_completed(self, db: AsyncSession, user_id: str) -> int:
        row = (await db.execute(_SUM_COMPLETED_SQL, {"user_id": user_id})).fetchone()
        return int(row.total) if row else 0

    async def list_for_user(
        self,
        db: AsyncSession,
        user_id: str,
        filters: TransactionFilter,
        limit: int,
        offset: int,
    ) -> list[Transaction]:
        params = _filter_params(user_id, filters) | {"limit": limit, "offset": offset}
        rows = (await db.execute(_LIST_TX_SQL, params)).fetchall()
        return [_row_to_transaction(row) for row in rows]

    async def count_for_user(
        self, db: AsyncSession, user_id: str, filters: TransactionFilter
    ) -> int:
        row = (await db.execute(_COUNT_TX_SQL, _filter_params(user_id, filters))).fetchone()
        return int(row.n) if row else 0

    async def count_by_status(self, db: AsyncSession, user_id: str) -> dict[str, int]:
        rows = (await db.execute(_COUNT_BY_STATUS_SQL, {"user_id": user_id})).fetchall()
        return {row.status: int(row.n) for row in rows}

    async def sum_released_since(
        self, db: AsyncSession, user_id: str, since: datetime
    ) -> int:
        row = (
            await db.execute(_SUM_RELEASED_SINCE_SQL, {"user_id": user_id, "since": since})
        ).fetchone()
        return int(row.total) if row else 0

    async def list_for_order(self, db: AsyncSession, order_id: int) -> list[Transaction]:
        rows = (await db.execute(_LIST_FOR_ORDER_SQL, {"order_id": order_id})).fetchall()
        return [_row_to_transaction(row) for row in rows]
