from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, List, Optional

from despensa.app.domain.state import Expense, ExpenseKind, LedgerState, PaymentMethod, Sale, logical_business_date
from despensa.app.services.closing_service import expense_totals, sales_by_method


@dataclass(frozen=True)
class RangeSummary:
    date_from: date
    date_to: date
    sales: List[Sale]
    expenses: List[Expense]
    by_method: Dict[PaymentMethod, float]
    total_sales: float
    total_purchases: float
    total_expenses: float
    net_general: float


@dataclass(frozen=True)
class HistoricalReport:
    """`summary` is only computed for a valid range."""

    valid: bool
    summary: Optional[RangeSummary] = None
    store_name: Optional[str] = None
    logo_url: Optional[str] = None


def historical_summary(
    state: LedgerState,
    date_from: Optional[date],
    date_to: Optional[date],
) -> HistoricalReport:
    branding = {"store_name": state.settings.store_name, "logo_url": state.settings.logo_url}
    if date_from is None or date_to is None or date_from > date_to:
        return HistoricalReport(valid=False, **branding)

    def in_range(entry) -> bool:
        return date_from <= logical_business_date(entry, state.settings) <= date_to

    sales = [s for s in state.sales if in_range(s)]
    expenses = [e for e in state.expenses if in_range(e)]
    totals = expense_totals(expenses)
    total_sales = sum(s.total or 0.0 for s in sales)

    summary = RangeSummary(
        date_from=date_from,
        date_to=date_to,
        sales=sales,
        expenses=expenses,
        by_method=sales_by_method(sales),
        total_sales=total_sales,
        total_purchases=totals[ExpenseKind.PURCHASE],
        total_expenses=totals[ExpenseKind.EXPENSE],
        net_general=total_sales - totals[ExpenseKind.PURCHASE] - totals[ExpenseKind.EXPENSE],
    )
    return HistoricalReport(valid=True, summary=summary, **branding)


def update_branding(
    state: LedgerState,
    *,
    store_name: Optional[str] = None,
    logo_url: Optional[str] = None,
) -> LedgerState:
    update = {}
    if store_name is not None:
        update["store_name"] = store_name.strip()
    if logo_url is not None:
        update["logo_url"] = logo_url.strip()
    if not update:
        return state
    return state.model_copy(update={"settings": state.settings.model_copy(update=update)})
