# tests/unit/test_cm_global_invariants.py
"""Unit tests for the platform-wide money audit."""
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest


def _scalar(value: int) -> MagicMock:
    row = MagicMock()
    row.scalar_one.return_value = value
    return row


def _rows(*rows: SimpleNamespace) -> MagicMock:
    result = MagicMock()
    result.fetchall.return_value = list(rows)
    return result


@pytest.mark.asyncio
async def test_balanced_platform_returns_empty() -> None:
    from src.cm_admin.domain.global_invariants import verify_global_invariants
    db = AsyncMock()
    # wallets=5800+4000+200, order escrow=3150, gig escrow=5000 -> 18150
    # net external deposits=18150 -> balanced
    db.execute.side_effect = [
        _scalar(10_000), _scalar(3150), _scalar(5000), _scalar(18_150),
        _rows(), _rows(),
    ]
    violations = await verify_global_invariants(db)
    assert violations == []


@pytest.mark.asyncio
async def test_leaked_money_is_reported() -> None:
    from src.cm_admin.domain.global_invariants import verify_global_invariants
    db = AsyncMock()
    db.execute.side_effect = [
        _scalar(10_000), _scalar(0), _scalar(0), _scalar(10_050),  # 50 unaccounted for
        _rows(), _rows(),
    ]
    violations = await verify_global_invariants(db)
    assert len(violations) == 1
    assert violations[0].startswith("Conservation violated")
    assert "net_external=10050" in violations[0]


@pytest.mark.asyncio
async def test_order_total_mismatch_is_reported() -> None:
    from src.cm_admin.domain.global_invariants import verify_order_totals
    db = AsyncMock()
    db.execute.return_value = _rows(
        SimpleNamespace(order_number="ORD-1-001", subtotal=4000, platform_fee=200, total_amount=4100)
    )
    violations = await verify_order_totals(db)
    assert violations == ["Order ORD-1-001: total 4100 != subtotal 4000 + fee 200"]


@pytest.mark.asyncio
async def test_release_without_authority_is_reported() -> None:
    from src.cm_admin.domain.global_invariants import verify_global_invariants
    db = AsyncMock()
    db.execute.side_effect = [
        _scalar(100), _scalar(0), _scalar(0), _scalar(100),
        _rows(),
        _rows(SimpleNamespace(order_number="ORD-1-002")),
    ]
    violations = await verify_global_invariants(db)
    assert violations == [
        "Order ORD-1-002: escrow released without buyer confirmation or override"
    ]


@pytest.mark.asyncio
async def test_admin_service_wraps_result() -> None:
    from src.cm_admin.application.service import AdminService
    db = AsyncMock()
    db.execute.side_effect = [
        _scalar(0), _scalar(0), _scalar(0), _scalar(0), _rows(), _rows(),
    ]
    result = await AdminService(reconciliation=MagicMock(), escrow=MagicMock()).verify_all_invariants(db)
    assert result == {"ok": True, "violations": []}
