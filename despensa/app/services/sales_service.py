"""
Sale recording.

A cart is built by scanning codes against the catalog, then settled either
as a register sale (single or split payment) or as a store-credit charge.
Every function returns a new document; the input is never modified.
"""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple, Union

from despensa.app.clock import utcnow
from despensa.app.domain.state import (
    LedgerState,
    Payment,
    PaymentMethod,
    Product,
    Sale,
    SaleLineItem,
    SinglePayment,
    SplitPayment,
    closing_book,
    logical_business_date,
    uuid_str,
)
from despensa.app.money import amounts_match, parse_localized_amount
from despensa.app.services import credit_service
from despensa.app.services.catalog_service import find_product_by_code
from despensa.app.services.exceptions import (
    LockedStateError,
    NotFoundError,
    PriceOverrideRequired,
    ValidationError,
)

logger = logging.getLogger(__name__)

MAX_OVERRIDE_DIGITS = 10


# -------------------------
# Cart
# -------------------------

@dataclass(frozen=True)
class Cart:
    lines: Tuple[SaleLineItem, ...] = ()

    @property
    def total(self) -> float:
        return sum(line.subtotal for line in self.lines)

    def is_empty(self) -> bool:
        return not self.lines


def validate_override_price(raw: Union[str, float]) -> float:
    """Price typed for a zero-priced product: digits only, at most 10 of them, >= 0."""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        value = float(raw)
        digits = str(int(abs(value))) if math.isfinite(value) else ""
    else:
        cleaned = re.sub(r"[^\d.,]", "", str(raw or ""))
        digits = re.sub(r"\D", "", cleaned)
        if not digits:
            raise ValidationError("Ingresa un número válido.")
        value = parse_localized_amount(cleaned)
    if len(digits) > MAX_OVERRIDE_DIGITS:
        raise ValidationError("Máximo 10 dígitos para el precio.")
    if not math.isfinite(value) or value < 0:
        raise ValidationError("Ingresa un precio válido (>= 0).")
    return value


def add_to_cart(
    cart: Cart,
    products: Sequence[Product],
    code: str,
    *,
    override_price: Optional[Union[str, float]] = None,
) -> Cart:
    """
    Add one unit of the product scanned with `code`.

    Zero-priced products need `override_price`; it prices this line only and
    is never written back to the catalog.
    """
    product = find_product_by_code(products, code)

    price = product.unit_price
    if not price:
        if override_price is None:
            raise PriceOverrideRequired(product.ean, product.name)
        price = validate_override_price(override_price)

    for i, line in enumerate(cart.lines):
        if line.ean == product.ean and line.unit_price == price:
            bumped = line.model_copy(update={"quantity": line.quantity + 1})
            return replace(cart, lines=cart.lines[:i] + (bumped,) + cart.lines[i + 1:])

    line = SaleLineItem(id=uuid_str(), ean=product.ean, name=product.name, unit_price=price, quantity=1)
    return replace(cart, lines=cart.lines + (line,))


def set_line_quantity(cart: Cart, line_id: str, quantity: int) -> Cart:
    qty = max(1, int(quantity or 1))
    return replace(
        cart,
        lines=tuple(
            line.model_copy(update={"quantity": qty}) if line.id == line_id else line
            for line in cart.lines
        ),
    )


def remove_line(cart: Cart, line_id: str) -> Cart:
    return replace(cart, lines=tuple(line for line in cart.lines if line.id != line_id))


# -------------------------
# Settlement
# -------------------------

@dataclass(frozen=True)
class PayWith:
    """Whole cart paid with one register method."""

    method: PaymentMethod


@dataclass(frozen=True)
class PaySplit:
    payments: List[Payment] = field(default_factory=list)


@dataclass(frozen=True)
class PayOnCredit:
    person_name: str


Settlement = Union[PayWith, PaySplit, PayOnCredit]


def _validate_cart(cart: Cart) -> None:
    if cart.is_empty():
        raise ValidationError("Agrega artículos a la venta.")
    for line in cart.lines:
        if not math.isfinite(line.unit_price) or line.unit_price < 0:
            raise ValidationError("Revisa los precios ingresados (no pueden ser negativos).")


def _register_method(method: PaymentMethod) -> PaymentMethod:
    try:
        method = PaymentMethod(method)
    except ValueError:
        raise ValidationError("Método de pago inválido.")
    if method == PaymentMethod.STORE_CREDIT:
        raise ValidationError("El fiado se registra a nombre de una persona, no como pago de caja.")
    return method


def _split_settlement(payments: Sequence[Payment], total: float) -> SplitPayment:
    if not payments:
        raise ValidationError("Indica al menos un pago.")
    for payment in payments:
        _register_method(payment.method)
        if not math.isfinite(payment.amount) or payment.amount <= 0:
            raise ValidationError("Cada pago debe tener un monto mayor a 0.")
    paid = sum(p.amount for p in payments)
    if not amounts_match(paid, total):
        raise ValidationError(
            f"La suma de los pagos ({paid:.2f}) no coincide con el total de la venta ({total:.2f})."
        )
    return SplitPayment(payments=list(payments))


def record_sale(
    state: LedgerState,
    cart: Cart,
    settlement: Settlement,
    now: Optional[datetime] = None,
) -> LedgerState:
    """
    Settle the cart.

    Register settlements add a Sale (newest first) that rides the open
    register until its day is closed. Credit settlements add a charge to the
    person's account and leave the sales untouched.
    """
    _validate_cart(cart)
    now = now or utcnow()

    if isinstance(settlement, PayOnCredit):
        return credit_service.record_charge(state, settlement.person_name, cart.lines, now)

    total = cart.total
    if isinstance(settlement, PaySplit):
        sale_settlement = _split_settlement(settlement.payments, total)
    elif isinstance(settlement, PayWith):
        sale_settlement = SinglePayment(method=_register_method(settlement.method))
    else:
        raise ValidationError("Método de pago inválido.")

    sale = Sale(
        id=uuid_str(),
        timestamp=now,
        line_items=list(cart.lines),
        settlement=sale_settlement,
        total=total,
        business_date=None,
    )
    day = logical_business_date(sale, state.settings)
    if closing_book(state).is_closed(day):
        raise LockedStateError(f"La caja del {day.isoformat()} está cerrada; abre el día antes de vender.")
    logger.info("Recorded sale %s total=%.2f", sale.id, total)
    return state.model_copy(update={"sales": [sale, *state.sales]})


# -------------------------
# Recorded sales
# -------------------------

def _find_sale(state: LedgerState, sale_id: str) -> Sale:
    for sale in state.sales:
        if sale.id == sale_id:
            return sale
    raise NotFoundError("Venta no encontrada")


def sale_is_locked(state: LedgerState, sale: Sale) -> bool:
    return closing_book(state).is_closed(logical_business_date(sale, state.settings))


def _require_unlocked(state: LedgerState, sale: Sale) -> None:
    if sale_is_locked(state, sale):
        day: date = logical_business_date(sale, state.settings)
        raise LockedStateError(f"La caja del {day.isoformat()} está cerrada; la venta no se puede modificar.")


def delete_sale(state: LedgerState, sale_id: str) -> LedgerState:
    sale = _find_sale(state, sale_id)
    _require_unlocked(state, sale)
    return state.model_copy(update={"sales": [s for s in state.sales if s.id != sale_id]})


def change_payment_method(state: LedgerState, sale_id: str, method: PaymentMethod) -> LedgerState:
    """Switch the sale to a single payment of its full total with `method`."""
    sale = _find_sale(state, sale_id)
    _require_unlocked(state, sale)
    new_settlement = SinglePayment(method=_register_method(method))
    sales = [
        s.model_copy(update={"settlement": new_settlement}) if s.id == sale_id else s
        for s in state.sales
    ]
    return state.model_copy(update={"sales": sales})
