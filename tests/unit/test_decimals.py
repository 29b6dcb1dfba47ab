"""Tests for pv_common.decimals — fixed-point USDP / PV helpers."""

from decimal import Decimal

import pytest

from src.pv_common.decimals import (
    floor_avg_price,
    floor_pv,
    floor_usdp,
    is_pv_precision,
    is_usdp_precision,
    to_decimal,
    usdp_to_display,
)


class TestToDecimal:
    def test_string(self) -> None:
        assert to_decimal("12.34") == Decimal("12.34")

    def test_int(self) -> None:
        assert to_decimal(5) == Decimal(5)

    def test_decimal_passthrough(self) -> None:
        value = Decimal("1.000001")
        assert to_decimal(value) is value

    def test_float_rejected(self) -> None:
        with pytest.raises(TypeError, match="float"):
            to_decimal(0.1)

    def test_garbage_rejected(self) -> None:
        with pytest.raises(ValueError, match="Not a decimal"):
            to_decimal("ten dollars")


class TestFloor:
    def test_usdp_truncates_toward_zero(self) -> None:
        assert floor_usdp(Decimal("99.999")) == Decimal("99.99")
        assert floor_usdp(Decimal("-1.239")) == Decimal("-1.23")

    def test_pv_truncates(self) -> None:
        assert floor_pv(Decimal("73.2050807568")) == Decimal("73.205080")

    def test_avg_price_truncates(self) -> None:
        assert floor_avg_price(Decimal("1.366025403784")) == Decimal("1.36602540")


class TestPrecision:
    def test_usdp(self) -> None:
        assert is_usdp_precision(Decimal("10.25"))
        assert is_usdp_precision(Decimal("10"))
        assert not is_usdp_precision(Decimal("10.251"))

    def test_pv(self) -> None:
        assert is_pv_precision(Decimal("0.000001"))
        assert not is_pv_precision(Decimal("0.0000001"))

    def test_too_many_digits_to_quantize(self) -> None:
        assert not is_usdp_precision(Decimal("1E+30"))
        assert not is_pv_precision(Decimal("12345678901234567890123456789"))


class TestUsdpToDisplay:
    def test_basic(self) -> None:
        assert usdp_to_display(Decimal("6500")) == "$6,500.00"

    def test_zero(self) -> None:
        assert usdp_to_display(Decimal("0")) == "$0.00"

    def test_negative(self) -> None:
        assert usdp_to_display(Decimal("-12")) == "-$12.00"

    def test_cents(self) -> None:
        assert usdp_to_display(Decimal("0.01")) == "$0.01"
