from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from keepthisfile.config import config
from keepthisfile.errors import ValidationFailed

BYTES_PER_MB = 1024 * 1024


def calculate_price_cents(
    size_bytes: int,
    min_price_usd: Optional[Decimal] = None,
    price_per_mb_usd: Optional[Decimal] = None,
) -> int:
    if size_bytes <= 0:
        raise ValidationFailed("File size must be a positive number of bytes.")

    min_price_usd = config.MIN_PRICE_USD if min_price_usd is None else Decimal(min_price_usd)
    price_per_mb_usd = config.PRICE_PER_MB_USD if price_per_mb_usd is None else Decimal(price_per_mb_usd)

    price_usd = max(min_price_usd, price_per_mb_usd * size_bytes / BYTES_PER_MB)
    return int((price_usd * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_size_mb(size_bytes: int) -> str:
    return f"{size_bytes / BYTES_PER_MB:.2f}MB"
