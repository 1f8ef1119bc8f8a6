from decimal import Decimal

import pytest

from keepthisfile.errors import ValidationFailed
from keepthisfile.services.pricing import calculate_price_cents, format_size_mb

MB = 1024 * 1024


@pytest.mark.parametrize("size_bytes, expected_cents", [
    (1, 100),
    (100 * 1024 + 1, 100),
    (5 * MB, 100),
    (20 * MB, 100),
    (21 * MB, 105),
    (100 * MB, 500),
    (1024 * MB, 5120),
])
def test_price(size_bytes, expected_cents):
    assert calculate_price_cents(size_bytes) == expected_cents


def test_price_uses_configured_rates():
    assert calculate_price_cents(5 * MB, min_price_usd=Decimal("0.10"), price_per_mb_usd=Decimal("0.05")) == 25


def test_price_rounds_half_up():
    # 0.04 USD/MB * 0.125 MB is exactly half a cent.
    assert calculate_price_cents(MB // 8, min_price_usd=Decimal("0"), price_per_mb_usd=Decimal("0.04")) == 1


def test_price_never_below_minimum_and_monotonic():
    previous = 0
    for size_bytes in range(1, 200 * MB, 997 * 1024):
        cents = calculate_price_cents(size_bytes)
        assert cents >= 100
        assert cents >= previous
        previous = cents


@pytest.mark.parametrize("size_bytes", [0, -1])
def test_price_rejects_non_positive_size(size_bytes):
    with pytest.raises(ValidationFailed):
        calculate_price_cents(size_bytes)


def test_format_size_mb():
    assert format_size_mb(5 * MB) == "5.00MB"
    assert format_size_mb(150 * 1024) == "0.15MB"
