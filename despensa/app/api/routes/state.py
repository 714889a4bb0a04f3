from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from despensa.app.api.deps import load_ledger, require_email
from despensa.app.db import get_db
from despensa.app.domain.state import LedgerState, load_state
from despensa.app.models import StateDocument, utcnow
from despensa.app.services.ranking_service import RankingResponse, compute_ranking

logger = logging.getLogger(__name__)

router = APIRouter(tags=["estado"])


@router.get("/estado")
def get_state(
    email: str = Depends(require_email),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    row = db.get(StateDocument, email)
    if row is None:
        return {}
    return dict(row.payload or {})


@router.put("/estado")
def put_state(
    document: Dict[str, Any] = Body(...),
    email: str = Depends(require_email),
    db: Session = Depends(get_db),
) -> Dict[str, Any]:
    """Replace the whole document as sent; there are no partial updates."""
    try:
        load_state(document)
    except PydanticValidationError as exc:
        raise HTTPException(status_code=422, detail=f"invalid document: {exc.error_count()} errors")
    payload = dict(document)

    row = db.get(StateDocument, email)
    if row is None:
        row = StateDocument(email=email, payload=payload)
        db.add(row)
    else:
        row.payload = payload
        row.updated_at = utcnow()
    db.commit()
    logger.info("Stored state for %s (%d sales)", email, len(payload.get("ventas") or []))
    return {"ok": True}


@router.get("/ranking-ventas", response_model=RankingResponse, response_model_by_alias=True)
def ranking_ventas(
    desde: Optional[date] = Query(default=None),
    hasta: Optional[date] = Query(default=None),
    state: LedgerState = Depends(load_ledger),
) -> RankingResponse:
    if desde and hasta and desde > hasta:
        raise HTTPException(status_code=400, detail="desde must be on or before hasta")
    return compute_ranking(state, desde, hasta)
