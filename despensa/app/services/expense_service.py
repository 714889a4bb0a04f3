from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import List, Optional, Union

from despensa.app.clock import utcnow
from despensa.app.domain.state import Expense, ExpenseKind, LedgerState, closing_book, logical_business_date, uuid_str
from despensa.app.money import parse_localized_amount
from despensa.app.services.exceptions import LockedStateError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _with_supplier(suppliers: List[str], name: str) -> List[str]:
    if any(s.lower() == name.lower() for s in suppliers):
        return list(suppliers)
    return sorted([*suppliers, name])


def add_expense(
    state: LedgerState,
    kind: Union[ExpenseKind, str],
    supplier_name: str,
    amount: Union[str, float],
    description: str = "",
    now: Optional[datetime] = None,
) -> LedgerState:
    """
    Record a purchase or an expense against the open register.

    Purchases may be negative (supplier credit notes, corrections); expenses
    must be positive. Zero is never accepted.
    """
    try:
        kind = ExpenseKind(kind)
    except ValueError:
        raise ValidationError("Tipo inválido: usa compra o gasto.")

    supplier = (supplier_name or "").strip()
    if not supplier:
        raise ValidationError("Ingresa el proveedor")

    value = parse_localized_amount(amount)
    if not math.isfinite(value) or value == 0:
        raise ValidationError("Ingresa un monto válido")
    if kind == ExpenseKind.EXPENSE and value < 0:
        raise ValidationError("Un gasto debe ser mayor a 0; registra los ajustes negativos como compra.")

    expense = Expense(
        id=uuid_str(),
        timestamp=now or utcnow(),
        kind=kind,
        supplier_name=supplier,
        description=(description or "").strip(),
        amount=value,
        business_date=None,
    )
    day = logical_business_date(expense, state.settings)
    if closing_book(state).is_closed(day):
        raise LockedStateError(f"La caja del {day.isoformat()} está cerrada; el registro no se puede agregar.")
    return state.model_copy(
        update={
            "expenses": [expense, *state.expenses],
            "suppliers": _with_supplier(state.suppliers, supplier),
        }
    )


def delete_expense(state: LedgerState, expense_id: str) -> LedgerState:
    expense = next((e for e in state.expenses if e.id == expense_id), None)
    if expense is None:
        raise NotFoundError("Registro no encontrado")
    day = logical_business_date(expense, state.settings)
    if closing_book(state).is_closed(day):
        raise LockedStateError(f"La caja del {day.isoformat()} está cerrada; el registro no se puede eliminar.")
    logger.info("Deleting %s %s", expense.kind.value, expense.id)
    return state.model_copy(update={"expenses": [e for e in state.expenses if e.id != expense_id]})
