"""Tests for cm_common.cents — integer money utilities."""

import pytest

from src.cm_common.cents import bps_of_ceil, bps_of_floor, minor_to_display, validate_amount


class TestValidateAmount:
    def test_positive_ints_pass(self) -> None:
        for amount in [1, 100, 10_000_000]:
            validate_amount(amount)

    @pytest.mark.parametrize("amount", [0, -1, 1.5, "100", True, None])
    def test_rejects_non_positive_or_non_int(self, amount: object) -> None:
        with pytest.raises(ValueError, match="positive integer"):
            validate_amount(amount)  # type: ignore[arg-type]


class TestMinorToDisplay:
    def test_default_symbol(self) -> None:
        assert minor_to_display(650000) == "₦6,500.00"

    def test_custom_symbol(self) -> None:
        assert minor_to_display(4200, symbol="$") == "$42.00"

    def test_negative(self) -> None:
        assert minor_to_display(-1205, symbol="$") == "-$12.05"

    def test_zero(self) -> None:
        assert minor_to_display(0, symbol="$") == "$0.00"


class TestBasisPoints:
    def test_ceiling_rounds_up(self) -> None:
        # 101 * 500 / 10000 = 5.05 -> 6
        assert bps_of_ceil(101, 500) == 6

    def test_ceiling_exact(self) -> None:
        assert bps_of_ceil(4000, 500) == 200

    def test_ceiling_zero_inputs(self) -> None:
        assert bps_of_ceil(0, 500) == 0
        assert bps_of_ceil(4000, 0) == 0

    def test_floor_rounds_down(self) -> None:
        # 199 * 2000 / 10000 = 39.8 -> 39
        assert bps_of_floor(199, 2000) == 39
