from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from despensa.app.clock import store_date, utcnow
from despensa.app.money import parse_localized_amount


def uuid_str() -> str:
    return str(uuid.uuid4())


def previous_day(day: date) -> date:
    return day - timedelta(days=1)


def next_day(day: date) -> date:
    return day + timedelta(days=1)


class _Model(BaseModel):
    # Python names are English; the stored JSON keeps the browser app's keys.
    model_config = ConfigDict(populate_by_name=True, frozen=True, coerce_numbers_to_str=True)


# -------------------------
# Catalog
# -------------------------

class Product(_Model):
    id: str = Field(default_factory=uuid_str)
    ean: str
    name: str = Field(default="(sin nombre)", alias="nombre")
    unit_price: float = Field(default=0.0, alias="precio")

    @field_validator("unit_price", mode="before")
    @classmethod
    def _parse_price(cls, value: Any) -> float:
        return parse_localized_amount(value)


# -------------------------
# Sales
# -------------------------

class PaymentMethod(str, Enum):
    CASH = "efectivo"
    CARD_NETWORK_A = "mercadopago"
    CARD_NETWORK_B = "posnet"
    STORE_CREDIT = "fiado"


REGISTER_METHODS = (PaymentMethod.CASH, PaymentMethod.CARD_NETWORK_A, PaymentMethod.CARD_NETWORK_B)


class Payment(_Model):
    method: PaymentMethod = Field(alias="metodo")
    amount: float = Field(alias="monto")


class SinglePayment(_Model):
    kind: Literal["unico"] = Field(default="unico", alias="tipo")
    method: PaymentMethod = Field(alias="metodo")


class SplitPayment(_Model):
    kind: Literal["dividido"] = Field(default="dividido", alias="tipo")
    payments: List[Payment] = Field(alias="pagos")


SaleSettlement = Annotated[Union[SinglePayment, SplitPayment], Field(union_mode="left_to_right")]


class SaleLineItem(_Model):
    id: str = Field(default_factory=uuid_str)
    ean: str
    name: str = Field(default="(sin nombre)", alias="nombre")
    unit_price: float = Field(alias="precio")
    quantity: int = Field(default=1, ge=1, alias="qty")

    @property
    def subtotal(self) -> float:
        return self.unit_price * self.quantity


class Sale(_Model):
    id: str = Field(default_factory=uuid_str)
    timestamp: datetime = Field(default_factory=utcnow, alias="fecha")
    line_items: List[SaleLineItem] = Field(default_factory=list, alias="items")
    settlement: SaleSettlement = Field(alias="pago")
    total: float = 0.0
    # None while the sale rides the open register; stamped when its day closes.
    business_date: Optional[date] = Field(default=None, alias="fechaNegocio")

    @model_validator(mode="before")
    @classmethod
    def _upgrade_flat_payment(cls, data: Any) -> Any:
        """Older documents store `metodo` or `pagos` directly on the sale."""
        if not isinstance(data, dict) or "pago" in data or "settlement" in data:
            return data
        data = dict(data)
        pagos = data.pop("pagos", None)
        metodo = data.pop("metodo", None)
        if isinstance(pagos, list) and pagos:
            data["pago"] = {"tipo": "dividido", "pagos": pagos}
        else:
            data["pago"] = {"tipo": "unico", "metodo": metodo or PaymentMethod.CASH.value}
        if "fechaNegocio" not in data and data.get("fechaCierre"):
            data["fechaNegocio"] = data.pop("fechaCierre")
        return data

    def amount_by_method(self) -> Dict[PaymentMethod, float]:
        if isinstance(self.settlement, SplitPayment):
            out: Dict[PaymentMethod, float] = {}
            for payment in self.settlement.payments:
                out[payment.method] = out.get(payment.method, 0.0) + (payment.amount or 0.0)
            return out
        return {self.settlement.method: self.total or 0.0}


# -------------------------
# Purchases and expenses
# -------------------------

class ExpenseKind(str, Enum):
    PURCHASE = "compra"
    EXPENSE = "gasto"


class Expense(_Model):
    id: str = Field(default_factory=uuid_str)
    timestamp: datetime = Field(default_factory=utcnow, alias="fecha")
    kind: ExpenseKind = Field(alias="tipo")
    supplier_name: str = Field(alias="proveedor")
    description: str = Field(default="", alias="descripcion")
    amount: float = Field(alias="monto")
    business_date: Optional[date] = Field(default=None, alias="fechaNegocio")


# -------------------------
# Store credit
# -------------------------

class FrozenPriceItem(_Model):
    """Charged while the catalog price was 0; keeps the price typed at the register."""

    ean: str
    quantity: int = Field(default=1, alias="qty")
    frozen_unit_price: float = Field(alias="precioUnitario")


class CurrentPriceItem(_Model):
    """Priced from the live catalog every time the balance is computed."""

    ean: str
    quantity: int = Field(default=1, alias="qty")


ChargeItem = Annotated[Union[FrozenPriceItem, CurrentPriceItem], Field(union_mode="left_to_right")]


class Charge(_Model):
    id: str = Field(default_factory=uuid_str)
    timestamp: datetime = Field(default_factory=utcnow, alias="fecha")
    items: List[ChargeItem] = Field(default_factory=list)


class CreditPayment(_Model):
    id: str = Field(default_factory=uuid_str)
    timestamp: datetime = Field(default_factory=utcnow, alias="fecha")
    amount: float = Field(alias="monto")


class CreditAccount(_Model):
    id: str = Field(default_factory=uuid_str)
    person_name: str = Field(alias="nombre")
    charges: List[Charge] = Field(default_factory=list, alias="cargos")
    payments: List[CreditPayment] = Field(default_factory=list, alias="abonos")

    def matches(self, person_name: str) -> bool:
        return self.person_name.strip().lower() == (person_name or "").strip().lower()


# -------------------------
# Closings and settings
# -------------------------

class DayClosing(_Model):
    cash_carry_to_next_day: float = Field(default=0.0, alias="efectivoCajaProxDia")
    pedidos_ya_cash_amount: float = Field(default=0.0, alias="efectivoPedidosYa")
    is_closed: bool = Field(default=False, alias="cerrado")

    @field_validator("cash_carry_to_next_day", "pedidos_ya_cash_amount", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> float:
        return parse_localized_amount(value)


class Settings(_Model):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    current_open_business_date: Optional[date] = Field(default=None, alias="fechaNegocioAbierta")
    store_name: Optional[str] = Field(default=None, alias="nombreDespensa")
    logo_url: Optional[str] = Field(default=None, alias="logoUrl")


# -------------------------
# Document root
# -------------------------

class LedgerState(_Model):
    products: List[Product] = Field(default_factory=list, alias="productos")
    sales: List[Sale] = Field(default_factory=list, alias="ventas")
    expenses: List[Expense] = Field(default_factory=list, alias="gastos")
    suppliers: List[str] = Field(default_factory=list, alias="proveedores")
    closings: Dict[date, DayClosing] = Field(default_factory=dict, alias="cierres")
    credit_accounts: List[CreditAccount] = Field(default_factory=list, alias="fiados")
    settings: Settings = Field(default_factory=Settings)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


def empty_state() -> LedgerState:
    return LedgerState()


def load_state(payload: Optional[Dict[str, Any]]) -> LedgerState:
    if not payload:
        return LedgerState()
    return LedgerState.model_validate(payload)


def dump_state(state: LedgerState) -> Dict[str, Any]:
    return state.model_dump(mode="json", by_alias=True)


# -------------------------
# Business-date helpers
# -------------------------

def logical_business_date(entry: Union[Sale, Expense], settings: Settings) -> date:
    """
    Day a sale or expense counts towards.

    Stamped entries keep their day. Floating entries ride the open register,
    or their wall-clock day when the document never tracked an open date.
    """
    if entry.business_date is not None:
        return entry.business_date
    if settings.current_open_business_date is not None:
        return settings.current_open_business_date
    return store_date(entry.timestamp)


class ClosingBook:
    """Read access to the `cierres` mapping by calendar day."""

    def __init__(self, closings: Dict[date, DayClosing]):
        self._closings = closings

    def get(self, day: date) -> DayClosing:
        return self._closings.get(day) or DayClosing()

    def previous(self, day: date) -> DayClosing:
        return self.get(previous_day(day))

    def has_record(self, day: date) -> bool:
        return day in self._closings

    def is_closed(self, day: date) -> bool:
        return self.get(day).is_closed

    def with_record(self, day: date, record: DayClosing) -> Dict[date, DayClosing]:
        updated = dict(self._closings)
        updated[day] = record
        return updated


def closing_book(state: LedgerState) -> ClosingBook:
    return ClosingBook(state.closings)
