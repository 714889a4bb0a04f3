"""Ledger document types and business-date helpers."""

from despensa.app.domain.state import (  # noqa: F401
    Charge,
    CreditAccount,
    DayClosing,
    Expense,
    ExpenseKind,
    LedgerState,
    PaymentMethod,
    Product,
    Sale,
    Settings,
    dump_state,
    empty_state,
    load_state,
    logical_business_date,
)
