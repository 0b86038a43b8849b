"""Tests for cm_common.errors and cm_common.response."""

from src.cm_common.errors import (
    AppError,
    ConcurrentUpdateError,
    InsufficientFundsError,
    OutOfOrderTransitionError,
    ReconciliationError,
    StaleCartItemError,
    WalletLockedError,
)
from src.cm_common.response import ApiResponse, error_response, success_response


class TestErrors:
    def test_insufficient_funds_carries_remediation(self) -> None:
        err = InsufficientFundsError(required=7350, available=5000)
        assert err.code == 2001
        assert err.http_status == 400
        assert err.details == {
            "required": 7350,
            "available": 5000,
            "shortfall": 2350,
            "remediation": "deposit",
        }

    def test_wallet_locked(self) -> None:
        err = WalletLockedError()
        assert err.http_status == 423
        assert err.details == {"remediation": "contact_support"}

    def test_out_of_order(self) -> None:
        err = OutOfOrderTransitionError("pending", "delivered")
        assert err.code == 4002
        assert err.http_status == 409
        assert "pending" in err.message and "delivered" in err.message

    def test_reconciliation_is_fatal(self) -> None:
        err = ReconciliationError("u1", expected=100, actual=101)
        assert err.code == 9001
        assert err.http_status == 500
        assert (err.user_id, err.expected, err.actual) == ("u1", 100, 101)

    def test_concurrent_update_is_retryable(self) -> None:
        err = ConcurrentUpdateError()
        assert err.http_status == 409
        assert err.details == {"retryable": True}

    def test_all_are_app_errors(self) -> None:
        assert isinstance(StaleCartItemError(["p1"]), AppError)


class TestResponse:
    def test_success(self) -> None:
        resp = success_response({"x": 1})
        assert isinstance(resp, ApiResponse)
        assert resp.code == 0 and resp.data == {"x": 1}
        assert resp.request_id.startswith("req_")

    def test_error_with_details(self) -> None:
        resp = error_response(2001, "Insufficient balance", {"remediation": "deposit"})
        assert resp.code == 2001
        assert resp.data == {"remediation": "deposit"}
