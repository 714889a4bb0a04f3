from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from despensa.app.db import SessionLocal
from despensa.app.models import LocalBackup, normalize_email, utcnow

logger = logging.getLogger(__name__)


class LocalBackupStore:
    """Per-user mirror of the last document loaded from or saved to the remote endpoint."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def read(self, email: str) -> Optional[Dict[str, Any]]:
        db = self._session_factory()
        try:
            row = db.get(LocalBackup, normalize_email(email))
            return dict(row.payload) if row and row.payload is not None else None
        finally:
            db.close()

    def write(self, email: str, payload: Dict[str, Any]) -> None:
        key = normalize_email(email)
        db = self._session_factory()
        try:
            row = db.get(LocalBackup, key)
            if row is None:
                db.add(LocalBackup(email=key, payload=payload, saved_at=utcnow()))
            else:
                row.payload = payload
                row.saved_at = utcnow()
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Writing local backup for %s failed", key)
            raise
        finally:
            db.close()
