"""Unit tests for kobo arithmetic helpers."""

import pytest

from src.cm_common.money import calculate_fee, kobo_to_display, naira


class TestNaira:
    def test_converts_whole_naira(self) -> None:
        assert naira(800) == 80000
        assert naira(0) == 0


class TestKoboToDisplay:
    def test_positive(self) -> None:
        assert kobo_to_display(580000) == "₦5,800.00"

    def test_fractional_kobo(self) -> None:
        assert kobo_to_display(12345) == "₦123.45"

    def test_negative(self) -> None:
        assert kobo_to_display(-474000) == "-₦4,740.00"

    def test_zero(self) -> None:
        assert kobo_to_display(0) == "₦0.00"


class TestCalculateFee:
    def test_exact_ten_percent(self) -> None:
        assert calculate_fee(500000, 1000) == 50000

    def test_rounds_up(self) -> None:
        # 10% of 1 kobo = 0.1 → 1
        assert calculate_fee(1, 1000) == 1
        assert calculate_fee(12345, 1000) == 1235

    @pytest.mark.parametrize("amount,bps", [(0, 1000), (5000, 0)])
    def test_zero_inputs(self, amount: int, bps: int) -> None:
        assert calculate_fee(amount, bps) == 0
