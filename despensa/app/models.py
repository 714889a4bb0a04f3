from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from despensa.app.db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


# -------------------------
# Served state
# -------------------------

class StateDocument(Base):
    """Whole ledger document for one user, replaced on every PUT /estado."""

    __tablename__ = "state_documents"

    email: Mapped[str] = mapped_column(String(320), primary_key=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


# -------------------------
# Client mirror
# -------------------------

class LocalBackup(Base):
    """Last document a session loaded or saved, read only when the remote load fails."""

    __tablename__ = "local_backups"

    email: Mapped[str] = mapped_column(String(320), primary_key=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    saved_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
