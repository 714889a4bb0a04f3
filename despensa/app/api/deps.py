# despensa/app/api/deps.py
from __future__ import annotations

from fastapi import Depends, HTTPException, Query
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from despensa.app.db import get_db
from despensa.app.domain.state import LedgerState, load_state
from despensa.app.models import StateDocument, normalize_email
from despensa.app.services.exceptions import DespensaError, LockedStateError, NotFoundError, ValidationError


def require_email(email: str = Query(..., description="Owner of the ledger document")) -> str:
    """Emails are matched case-insensitively and without surrounding spaces."""
    normalized = normalize_email(email)
    if not normalized:
        raise HTTPException(status_code=400, detail="email is required")
    return normalized


def load_ledger(
    email: str = Depends(require_email),
    db: Session = Depends(get_db),
) -> LedgerState:
    row = db.get(StateDocument, email)
    try:
        return load_state(row.payload if row else None)
    except PydanticValidationError as exc:
        raise HTTPException(status_code=422, detail=f"stored document is not readable: {exc.error_count()} errors")


def http_error(exc: DespensaError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=exc.message)
    if isinstance(exc, LockedStateError):
        return HTTPException(status_code=409, detail=exc.message)
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=exc.message)
    return HTTPException(status_code=500, detail=exc.message)
