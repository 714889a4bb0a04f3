"""
Daily cash-register closing (cierre de caja).

Each calendar day is Open until closed and may be reopened. Sales and
expenses float with the open register until the day they belong to is
closed; closing stamps them with that day, reopening releases them again.

    total_available_cash = cash sales of the day
                         + cash carried from the previous day's closing
                         + PedidosYa cash
                         - cash left in the register for the next day
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Literal, Optional, Union

from despensa.app.domain.state import (
    REGISTER_METHODS,
    ClosingBook,
    Expense,
    ExpenseKind,
    LedgerState,
    PaymentMethod,
    Sale,
    closing_book,
    logical_business_date,
    next_day,
)
from despensa.app.money import parse_localized_amount
from despensa.app.services.exceptions import LockedStateError, ValidationError

logger = logging.getLogger(__name__)

CashField = Literal["cash_carry_to_next_day", "pedidos_ya_cash_amount"]
CASH_FIELDS = ("cash_carry_to_next_day", "pedidos_ya_cash_amount")


@dataclass(frozen=True)
class DaySummary:
    day: date
    sales: List[Sale]
    expenses: List[Expense]
    by_method: Dict[PaymentMethod, float]
    total_sales: float
    total_purchases: float
    total_expenses: float
    total_outflows: float
    net_for_day: float
    cash_carried_from_previous_day: float
    pedidos_ya_cash_amount: float
    cash_carry_to_next_day: float
    total_available_cash: float
    is_closed: bool

    @property
    def cash_sales(self) -> float:
        return self.by_method.get(PaymentMethod.CASH, 0.0)


def sales_by_method(sales: List[Sale]) -> Dict[PaymentMethod, float]:
    totals: Dict[PaymentMethod, float] = {m: 0.0 for m in REGISTER_METHODS}
    for sale in sales:
        for method, amount in sale.amount_by_method().items():
            totals[method] = totals.get(method, 0.0) + amount
    return totals


def expense_totals(expenses: List[Expense]) -> Dict[ExpenseKind, float]:
    totals = {ExpenseKind.PURCHASE: 0.0, ExpenseKind.EXPENSE: 0.0}
    for expense in expenses:
        totals[expense.kind] += expense.amount or 0.0
    return totals


def entries_for_day(state: LedgerState, day: date):
    sales = [s for s in state.sales if logical_business_date(s, state.settings) == day]
    expenses = [e for e in state.expenses if logical_business_date(e, state.settings) == day]
    return sales, expenses


def is_day_closed(state: LedgerState, day: date) -> bool:
    return closing_book(state).is_closed(day)


def day_summary(state: LedgerState, day: date) -> DaySummary:
    """Recomputed from the document every time; nothing here is stored."""
    sales, expenses = entries_for_day(state, day)
    by_method = sales_by_method(sales)
    totals = expense_totals(expenses)

    total_sales = sum(s.total or 0.0 for s in sales)
    total_purchases = totals[ExpenseKind.PURCHASE]
    total_expenses = totals[ExpenseKind.EXPENSE]
    total_outflows = total_purchases + total_expenses

    book = closing_book(state)
    record = book.get(day)
    carried = book.previous(day).cash_carry_to_next_day
    cash_sales = by_method.get(PaymentMethod.CASH, 0.0)

    return DaySummary(
        day=day,
        sales=sales,
        expenses=expenses,
        by_method=by_method,
        total_sales=total_sales,
        total_purchases=total_purchases,
        total_expenses=total_expenses,
        total_outflows=total_outflows,
        net_for_day=total_sales - total_outflows,
        cash_carried_from_previous_day=carried,
        pedidos_ya_cash_amount=record.pedidos_ya_cash_amount,
        cash_carry_to_next_day=record.cash_carry_to_next_day,
        total_available_cash=(
            cash_sales + carried + record.pedidos_ya_cash_amount - record.cash_carry_to_next_day
        ),
        is_closed=record.is_closed,
    )


def _require_open(state: LedgerState, day: date) -> None:
    if is_day_closed(state, day):
        raise LockedStateError(
            f"La caja del {day.isoformat()} está cerrada; los campos de efectivo no se pueden editar."
        )


def update_cash_field(
    state: LedgerState,
    day: date,
    field: CashField,
    raw_value: Union[str, float, None],
) -> LedgerState:
    if field not in CASH_FIELDS:
        raise ValidationError(f"Campo de cierre desconocido: {field}")
    _require_open(state, day)

    book = closing_book(state)
    record = book.get(day).model_copy(update={field: parse_localized_amount(raw_value)})
    return state.model_copy(update={"closings": book.with_record(day, record)})


def next_business_date(day: date, today: date, book: Optional[ClosingBook] = None) -> date:
    """
    Closing today opens tomorrow; closing any other day reopens on today.

    Days already closed in `book` are skipped so the register never rides a
    closed day.
    """
    candidate = next_day(day) if day == today else today
    if book is not None:
        while book.is_closed(candidate):
            candidate = next_day(candidate)
    return candidate


def _pin(entries, settings, day: date):
    """Stamp floating entries that belong to `day`.

    Documents without an open business date attribute floating entries by
    wall-clock day; those are pinned to that day so moving the open date does
    not drag them along.
    """
    out = []
    for entry in entries:
        if entry.business_date is None:
            attributed = logical_business_date(entry, settings)
            if attributed == day or settings.current_open_business_date is None:
                entry = entry.model_copy(update={"business_date": attributed})
        out.append(entry)
    return out


def _unstamp(entries, day: date):
    return [e.model_copy(update={"business_date": None}) if e.business_date == day else e for e in entries]


def close_day(
    state: LedgerState,
    day: date,
    today: date,
    *,
    cash_carry_to_next_day: Optional[Union[str, float]] = None,
    pedidos_ya_cash_amount: Optional[Union[str, float]] = None,
) -> LedgerState:
    """
    Open -> Closed.

    Snapshots the cash fields (values passed here win over the stored ones),
    pins the floating sales and expenses that belong to `day` and moves the open
    register to the next business date.
    """
    _require_open(state, day)

    book = closing_book(state)
    record = book.get(day)
    update: Dict[str, object] = {"is_closed": True}
    if cash_carry_to_next_day is not None:
        update["cash_carry_to_next_day"] = parse_localized_amount(cash_carry_to_next_day)
    if pedidos_ya_cash_amount is not None:
        update["pedidos_ya_cash_amount"] = parse_localized_amount(pedidos_ya_cash_amount)
    closed = record.model_copy(update=update)
    closings = book.with_record(day, closed)

    # Floating entries are resolved against the open date before the stamp moves it.
    settings = state.settings.model_copy(
        update={"current_open_business_date": next_business_date(day, today, ClosingBook(closings))}
    )
    logger.info("Closing register for %s; next business date %s", day, settings.current_open_business_date)
    return state.model_copy(
        update={
            "closings": closings,
            "sales": _pin(state.sales, state.settings, day),
            "expenses": _pin(state.expenses, state.settings, day),
            "settings": settings,
        }
    )


def reopen_day(state: LedgerState, day: date) -> LedgerState:
    """Closed -> Open. Sales and expenses of `day` ride the register again."""
    book = closing_book(state)
    if not book.is_closed(day):
        raise ValidationError(f"La caja del {day.isoformat()} no está cerrada.")

    reopened = book.get(day).model_copy(update={"is_closed": False})
    settings = state.settings.model_copy(update={"current_open_business_date": day})
    logger.info("Reopening register for %s", day)
    return state.model_copy(
        update={
            "closings": book.with_record(day, reopened),
            "sales": _unstamp(state.sales, day),
            "expenses": _unstamp(state.expenses, day),
            "settings": settings,
        }
    )
