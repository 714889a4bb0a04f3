from __future__ import annotations

import math
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP, InvalidOperation
from typing import Any

PEDIDOS_YA_MARGIN = 0.295
RAPPI_MARGIN = 0.20

# Split payments must add up to the cart total within this tolerance.
AMOUNT_TOLERANCE = 0.01


def parse_localized_amount(raw: Any) -> float:
    """
    Parse an es-AR amount such as "1.234,56".

    Dots are thousands separators and the first comma is the decimal mark.
    Anything unparsable returns 0.0; form fields rely on this never raising.
    """
    if raw is None:
        return 0.0
    if isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
        return value if math.isfinite(value) else 0.0

    text = str(raw).strip().replace(".", "").replace(",", ".", 1)
    if not text:
        return 0.0
    try:
        value = float(text)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def _as_finite(amount: Any) -> float:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return 0.0
    return value if math.isfinite(value) else 0.0


def format_currency(amount: Any) -> str:
    """Format like the es-AR locale: "$ 1.234,56"."""
    value = Decimal(str(_as_finite(amount))).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    sign = "-" if value < 0 else ""
    integer, _, cents = f"{abs(value):.2f}".partition(".")
    groups = []
    while len(integer) > 3:
        groups.insert(0, integer[-3:])
        integer = integer[:-3]
    groups.insert(0, integer)
    return f"{sign}$ {'.'.join(groups)},{cents}"


def resale_markup_price(base_price: Any, margin_fraction: float) -> int:
    """
    Price a delivery channel must charge so the store keeps base_price after
    the channel takes margin_fraction. Always rounds up to a whole unit.
    """
    base = _as_finite(base_price)
    if base <= 0:
        return 0
    try:
        divisor = Decimal("1") - Decimal(str(margin_fraction))
        price = Decimal(str(base)) / divisor
    except (InvalidOperation, ZeroDivisionError):
        return 0
    return int(price.to_integral_value(rounding=ROUND_CEILING))


def pedidos_ya_price(base_price: Any) -> int:
    return resale_markup_price(base_price, PEDIDOS_YA_MARGIN)


def rappi_price(base_price: Any) -> int:
    return resale_markup_price(base_price, RAPPI_MARGIN)


def amounts_match(a: float, b: float, tolerance: float = AMOUNT_TOLERANCE) -> bool:
    return abs(float(a) - float(b)) <= tolerance + 1e-9
