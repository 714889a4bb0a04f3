"""
Store-credit (fiado) ledger.

Balances are never stored. They are derived from the account's charges and
payments plus the current catalog, so a catalog price correction reaches open
debt for items charged at a known price, while items charged when the
catalog said 0 keep the price frozen at the register.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from despensa.app.clock import utcnow
from despensa.app.domain.state import (
    Charge,
    ChargeItem,
    CreditAccount,
    CreditPayment,
    CurrentPriceItem,
    FrozenPriceItem,
    LedgerState,
    Product,
    SaleLineItem,
    uuid_str,
)
from despensa.app.services.catalog_service import products_by_ean
from despensa.app.services.exceptions import NotFoundError, UnknownCreditAccountError, ValidationError
from despensa.app.services.permissions import Gate, deletion_gate, settlement_gate

logger = logging.getLogger(__name__)

# Balances at or below this are treated as settled.
SETTLED_EPSILON = 0.0001


def _item_unit_price(item: ChargeItem, catalog: Dict[str, Product]) -> float:
    if isinstance(item, FrozenPriceItem):
        return item.frozen_unit_price
    product = catalog.get(item.ean)
    return float(product.unit_price or 0.0) if product else 0.0


def compute_balance(account: CreditAccount, products: Iterable[Product]) -> float:
    catalog = products_by_ean(products)
    charged = 0.0
    for charge in account.charges:
        for item in charge.items:
            charged += _item_unit_price(item, catalog) * (item.quantity or 0)
    paid = sum(p.amount or 0.0 for p in account.payments)
    return charged - paid


def is_settled(balance: float) -> bool:
    return balance <= SETTLED_EPSILON


def find_account(state: LedgerState, person_name: str) -> Optional[CreditAccount]:
    for account in state.credit_accounts:
        if account.matches(person_name):
            return account
    return None


# -------------------------
# Views
# -------------------------

@dataclass(frozen=True)
class ChargeLine:
    ean: str
    product_name: str
    quantity: int
    unit_price: float
    frozen: bool

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class ChargeDetail:
    charge_id: str
    timestamp: datetime
    lines: List[ChargeLine]

    @property
    def total(self) -> float:
        return sum(line.subtotal for line in self.lines)


@dataclass(frozen=True)
class AccountBalance:
    account_id: str
    person_name: str
    balance: float
    charges: List[ChargeDetail]
    payments: List[CreditPayment]


def _charge_detail(charge: Charge, catalog: Dict[str, Product]) -> ChargeDetail:
    lines = []
    for item in charge.items:
        product = catalog.get(item.ean)
        lines.append(
            ChargeLine(
                ean=item.ean,
                product_name=product.name if product else "(producto eliminado)",
                quantity=item.quantity,
                unit_price=_item_unit_price(item, catalog),
                frozen=isinstance(item, FrozenPriceItem),
            )
        )
    return ChargeDetail(charge_id=charge.id, timestamp=charge.timestamp, lines=lines)


def list_active_accounts(state: LedgerState) -> List[AccountBalance]:
    """Accounts that still owe money; anything settled is absent from the ledger view."""
    catalog = products_by_ean(state.products)
    out: List[AccountBalance] = []
    for account in state.credit_accounts:
        balance = compute_balance(account, state.products)
        if is_settled(balance):
            continue
        out.append(
            AccountBalance(
                account_id=account.id,
                person_name=account.person_name,
                balance=balance,
                charges=[_charge_detail(c, catalog) for c in account.charges],
                payments=list(account.payments),
            )
        )
    return out


# -------------------------
# Mutations
# -------------------------

def _charge_items(lines: Sequence[SaleLineItem], products: Sequence[Product]) -> List[ChargeItem]:
    catalog = products_by_ean(products)
    items: List[ChargeItem] = []
    for line in lines:
        product = catalog.get(line.ean)
        catalog_price = float(product.unit_price or 0.0) if product else 0.0
        if catalog_price == 0:
            items.append(FrozenPriceItem(ean=line.ean, quantity=line.quantity, frozen_unit_price=line.unit_price))
        else:
            items.append(CurrentPriceItem(ean=line.ean, quantity=line.quantity))
    return items


def record_charge(
    state: LedgerState,
    person_name: str,
    lines: Sequence[SaleLineItem],
    now: Optional[datetime] = None,
) -> LedgerState:
    name = (person_name or "").strip()
    if not name:
        raise ValidationError("Debes indicar un nombre para registrar el fiado.")
    if not lines:
        raise ValidationError("Agrega artículos a la venta.")

    charge = Charge(id=uuid_str(), timestamp=now or utcnow(), items=_charge_items(lines, state.products))

    accounts = list(state.credit_accounts)
    existing = find_account(state, name)
    if existing is None:
        accounts.append(CreditAccount(id=uuid_str(), person_name=name, charges=[charge], payments=[]))
    else:
        accounts = [
            a.model_copy(update={"charges": [charge, *a.charges]}) if a.id == existing.id else a
            for a in accounts
        ]
    logger.info("Recorded credit charge %s for %s", charge.id, name)
    return state.model_copy(update={"credit_accounts": accounts})


def record_payment(
    state: LedgerState,
    person_name: str,
    amount: float,
    supplied_secret: Optional[str],
    now: Optional[datetime] = None,
    *,
    gate: Optional[Gate] = None,
) -> LedgerState:
    """
    Register a payment towards a person's debt.

    The account is removed entirely once its balance is settled; its charge
    and payment history goes with it.
    """
    name = (person_name or "").strip()
    if not name:
        raise ValidationError("Ingresa el nombre de la persona.")
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError("Ingresa un monto válido (> 0).")
    if not math.isfinite(value) or value <= 0:
        raise ValidationError("Ingresa un monto válido (> 0).")

    account = find_account(state, name)
    if account is None:
        raise UnknownCreditAccountError("No se encontró esa persona en Fiados.")

    (gate or settlement_gate()).require(supplied_secret)

    payment = CreditPayment(id=uuid_str(), timestamp=now or utcnow(), amount=value)
    updated = account.model_copy(update={"payments": [payment, *account.payments]})

    if is_settled(compute_balance(updated, state.products)):
        logger.info("Credit account %s settled; removing it", account.id)
        accounts = [a for a in state.credit_accounts if a.id != account.id]
    else:
        accounts = [updated if a.id == account.id else a for a in state.credit_accounts]
    return state.model_copy(update={"credit_accounts": accounts})


def delete_account(
    state: LedgerState,
    account_id: str,
    supplied_secret: Optional[str],
    *,
    gate: Optional[Gate] = None,
) -> LedgerState:
    if not any(a.id == account_id for a in state.credit_accounts):
        raise NotFoundError("No se encontró esa persona en Fiados.")
    (gate or deletion_gate()).require(supplied_secret)
    logger.info("Deleting credit account %s with its history", account_id)
    return state.model_copy(
        update={"credit_accounts": [a for a in state.credit_accounts if a.id != account_id]}
    )
