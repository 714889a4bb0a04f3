from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from despensa.app.api.deps import http_error, load_ledger
from despensa.app.clock import store_today
from despensa.app.domain.state import LedgerState, PaymentMethod
from despensa.app.services import catalog_service, credit_service
from despensa.app.services.closing_service import day_summary
from despensa.app.services.exceptions import DespensaError
from despensa.app.services.report_service import historical_summary

router = APIRouter(tags=["reports"])


# -------------------------
# Schemas
# -------------------------

class ClosingOut(BaseModel):
    day: date
    is_closed: bool
    sales_count: int
    by_method: Dict[str, float]
    total_sales: float
    total_purchases: float
    total_expenses: float
    total_outflows: float
    net_for_day: float
    cash_carried_from_previous_day: float
    pedidos_ya_cash_amount: float
    cash_carry_to_next_day: float
    total_available_cash: float


class HistoricalOut(BaseModel):
    valid: bool
    store_name: Optional[str] = None
    logo_url: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    sales_count: int = 0
    by_method: Dict[str, float] = {}
    total_sales: float = 0.0
    total_purchases: float = 0.0
    total_expenses: float = 0.0
    net_general: float = 0.0


class ChargeLineOut(BaseModel):
    ean: str
    product_name: str
    quantity: int
    unit_price: float
    frozen: bool
    subtotal: float


class ChargeOut(BaseModel):
    id: str
    timestamp: datetime
    total: float
    lines: List[ChargeLineOut]


class CreditPaymentOut(BaseModel):
    id: str
    timestamp: datetime
    amount: float


class CreditAccountOut(BaseModel):
    id: str
    person_name: str
    balance: float
    charges: List[ChargeOut]
    payments: List[CreditPaymentOut]


def _methods(by_method: Dict[PaymentMethod, float]) -> Dict[str, float]:
    return {method.value: round(amount, 2) for method, amount in by_method.items()}


# -------------------------
# Routes
# -------------------------

@router.get("/cierre", response_model=ClosingOut)
def get_closing(
    fecha: Optional[date] = Query(default=None),
    state: LedgerState = Depends(load_ledger),
):
    day = fecha or state.settings.current_open_business_date or store_today()
    summary = day_summary(state, day)
    return ClosingOut(
        day=summary.day,
        is_closed=summary.is_closed,
        sales_count=len(summary.sales),
        by_method=_methods(summary.by_method),
        total_sales=summary.total_sales,
        total_purchases=summary.total_purchases,
        total_expenses=summary.total_expenses,
        total_outflows=summary.total_outflows,
        net_for_day=summary.net_for_day,
        cash_carried_from_previous_day=summary.cash_carried_from_previous_day,
        pedidos_ya_cash_amount=summary.pedidos_ya_cash_amount,
        cash_carry_to_next_day=summary.cash_carry_to_next_day,
        total_available_cash=summary.total_available_cash,
    )


@router.get("/resumen-historico", response_model=HistoricalOut)
def get_historical_summary(
    desde: Optional[date] = Query(default=None),
    hasta: Optional[date] = Query(default=None),
    state: LedgerState = Depends(load_ledger),
):
    report = historical_summary(state, desde, hasta)
    if not report.valid:
        return HistoricalOut(valid=False, store_name=report.store_name, logo_url=report.logo_url)
    summary = report.summary
    return HistoricalOut(
        valid=True,
        store_name=report.store_name,
        logo_url=report.logo_url,
        date_from=summary.date_from,
        date_to=summary.date_to,
        sales_count=len(summary.sales),
        by_method=_methods(summary.by_method),
        total_sales=summary.total_sales,
        total_purchases=summary.total_purchases,
        total_expenses=summary.total_expenses,
        net_general=summary.net_general,
    )


@router.get("/fiados", response_model=List[CreditAccountOut])
def get_credit_accounts(state: LedgerState = Depends(load_ledger)):
    out = []
    for account in credit_service.list_active_accounts(state):
        out.append(
            CreditAccountOut(
                id=account.account_id,
                person_name=account.person_name,
                balance=account.balance,
                charges=[
                    ChargeOut(
                        id=charge.charge_id,
                        timestamp=charge.timestamp,
                        total=charge.total,
                        lines=[
                            ChargeLineOut(
                                ean=line.ean,
                                product_name=line.product_name,
                                quantity=line.quantity,
                                unit_price=line.unit_price,
                                frozen=line.frozen,
                                subtotal=line.subtotal,
                            )
                            for line in charge.lines
                        ],
                    )
                    for charge in account.charges
                ],
                payments=[
                    CreditPaymentOut(id=p.id, timestamp=p.timestamp, amount=p.amount)
                    for p in account.payments
                ],
            )
        )
    return out


class PriceLookupOut(BaseModel):
    id: str
    ean: str
    name: str
    unit_price: float
    pedidos_ya_price: int
    rappi_price: int


@router.get("/productos/precio", response_model=PriceLookupOut)
def lookup_price(
    codigo: str = Query(...),
    state: LedgerState = Depends(load_ledger),
):
    try:
        product = catalog_service.find_product_by_code(state.products, codigo)
    except DespensaError as exc:
        raise http_error(exc)
    prices = catalog_service.channel_prices(product)
    return PriceLookupOut(
        id=product.id,
        ean=product.ean,
        name=product.name,
        unit_price=product.unit_price,
        pedidos_ya_price=prices["pedidos_ya"],
        rappi_price=prices["rappi"],
    )
