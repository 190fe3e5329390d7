from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


DEFAULT_CURRENCY = 'USD'


@dataclass(frozen=True, slots=True)
class CurrencyMeta:
    code: str
    exponent: int
    symbol: str


_CURRENCIES: dict[str, CurrencyMeta] = {
    'USD': CurrencyMeta(code='USD', exponent=2, symbol='$'),
    'EUR': CurrencyMeta(code='EUR', exponent=2, symbol='€'),
    'GBP': CurrencyMeta(code='GBP', exponent=2, symbol='£'),
    'NGN': CurrencyMeta(code='NGN', exponent=2, symbol='₦'),
    'JPY': CurrencyMeta(code='JPY', exponent=0, symbol='¥'),
}


def normalize_currency(code: str | None, default: str = DEFAULT_CURRENCY) -> str:
    normalized = (code or '').strip().upper()
    if not normalized:
        return default
    return normalized


def get_currency_meta(code: str | None) -> CurrencyMeta:
    normalized = normalize_currency(code)
    return _CURRENCIES.get(normalized, CurrencyMeta(code=normalized, exponent=2, symbol=normalized))


def minor_to_major(amount_minor: int, currency: str | None = None) -> Decimal:
    meta = get_currency_meta(currency)
    if meta.exponent <= 0:
        return Decimal(amount_minor)
    return Decimal(amount_minor) / (Decimal(10) ** meta.exponent)


def apply_rate(amount_minor: int, rate: Decimal | str) -> int:
    """Scale an amount in minor units by ``rate``, rounding half up to a whole minor unit.

    >>> apply_rate(1000, Decimal('0.73'))
    730
    """
    scaled = Decimal(amount_minor) * Decimal(str(rate))
    return int(scaled.to_integral_value(rounding=ROUND_HALF_UP))


def format_amount(amount_minor: int, currency: str | None = None) -> str:
    """Fixed-point string with the currency's number of decimals, e.g. ``'7.30'``."""
    meta = get_currency_meta(currency)
    major = minor_to_major(amount_minor, meta.code)
    if meta.exponent <= 0:
        return f'{major.quantize(Decimal("1"), rounding=ROUND_HALF_UP):f}'
    return f'{major.quantize(Decimal(10) ** (-meta.exponent), rounding=ROUND_HALF_UP):f}'


def format_money_from_minor(amount_minor: int, currency: str | None = None) -> str:
    meta = get_currency_meta(currency)
    return f'{meta.symbol}{format_amount(amount_minor, meta.code)}'
