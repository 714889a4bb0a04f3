"""
Per-user ledger session.

Holds the current document, applies transitions to it and persists it.

    IDLE --start--> LOADING --ok--------------------> READY
                            --failed, backup found--> READY
                            --failed, no backup-----> FAILED --accept_empty/retry_load--> READY

Nothing is written to the state endpoint unless the session is READY for the
current user, so an empty placeholder document can never overwrite remote data
that simply has not arrived yet.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from despensa.app.config import save_debounce_seconds
from despensa.app.domain.state import LedgerState, dump_state, empty_state, load_state
from despensa.app.models import normalize_email
from despensa.app.services.exceptions import DespensaError, StateLoadError, StatePersistError
from despensa.app.store.debounce import Debouncer

logger = logging.getLogger(__name__)


class StateClient(Protocol):
    def get_state(self, email: str) -> dict:
        ...

    def put_state(self, email: str, document: dict) -> None:
        ...


class BackupStore(Protocol):
    def read(self, email: str) -> Optional[dict]:
        ...

    def write(self, email: str, payload: dict) -> None:
        ...


class SessionStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    message: str = ""


class LedgerSession:
    def __init__(
        self,
        client: StateClient,
        backup: Optional[BackupStore] = None,
        *,
        debounce_seconds: Optional[float] = None,
    ):
        self._client = client
        self._backup = backup
        self._lock = threading.RLock()
        self._status = SessionStatus.IDLE
        self._email: Optional[str] = None
        self._generation = 0
        self._state: LedgerState = empty_state()
        delay = save_debounce_seconds() if debounce_seconds is None else debounce_seconds
        self._debouncer = Debouncer(delay, self._save_pending)
        self.last_error: Optional[str] = None

    # -------------------------
    # Read access
    # -------------------------

    @property
    def state(self) -> LedgerState:
        with self._lock:
            return self._state

    @property
    def status(self) -> SessionStatus:
        with self._lock:
            return self._status

    @property
    def email(self) -> Optional[str]:
        with self._lock:
            return self._email

    @property
    def save_pending(self) -> bool:
        return self._debouncer.pending

    # -------------------------
    # Loading
    # -------------------------

    def start(self, email: str) -> SessionStatus:
        """Begin (or switch to) the session for `email` and load its document."""
        key = normalize_email(email)
        if not key:
            raise StateLoadError("Ingresa un email válido.")
        # The leaving user's pending change is saved under its own email.
        self._debouncer.flush()
        with self._lock:
            self._debouncer.cancel()
            self._generation += 1
            generation = self._generation
            self._email = key
            self._status = SessionStatus.LOADING
            self._state = empty_state()
            self.last_error = None
        return self._load(key, generation)

    def retry_load(self) -> SessionStatus:
        with self._lock:
            email = self._email
            if email is None:
                return self._status
            self._generation += 1
            generation = self._generation
            self._status = SessionStatus.LOADING
        return self._load(email, generation)

    def _load(self, email: str, generation: int) -> SessionStatus:
        """
        Fetch and install `email`'s document on the caller's thread.

        A newer start/logout does not interrupt the GET already in flight; its
        result is dropped by the generation check instead. Callers that need
        the request itself aborted call `close()`, which closes the client.
        """
        try:
            payload = self._client.get_state(email)
            state = load_state(payload)
        except (StateLoadError, PydanticValidationError) as exc:
            return self._recover_from_failed_load(email, generation, exc)

        with self._lock:
            if generation != self._generation:
                logger.info("Discarding superseded load for %s", email)
                return self._status
            self._state = state
            self._status = SessionStatus.READY
        self._write_backup(email, dump_state(state))
        return SessionStatus.READY

    def _recover_from_failed_load(self, email: str, generation: int, exc: Exception) -> SessionStatus:
        logger.warning("Loading state for %s failed: %s", email, exc)
        backup = self._read_backup(email)
        with self._lock:
            if generation != self._generation:
                return self._status
            self.last_error = str(exc)
            if backup is not None:
                try:
                    self._state = load_state(backup)
                except PydanticValidationError:
                    logger.warning("Local backup for %s is unreadable; ignoring it", email)
                else:
                    logger.warning("Using local backup for %s", email)
                    self._status = SessionStatus.READY
                    return self._status
            self._state = empty_state()
            self._status = SessionStatus.FAILED
            return self._status

    def accept_empty(self) -> SessionStatus:
        """Explicitly start this user from the current (empty) document and allow saving."""
        with self._lock:
            if self._status != SessionStatus.FAILED:
                return self._status
            self._status = SessionStatus.READY
            self.last_error = None
        self._debouncer.schedule()
        return SessionStatus.READY

    # -------------------------
    # Mutations
    # -------------------------

    def dispatch(self, transition: Callable[..., LedgerState], *args: Any, **kwargs: Any) -> ActionResult:
        """
        Apply `transition(state, *args, **kwargs)`.

        Domain errors are reported in the result and leave the document as it
        was. Successful changes schedule a debounced save.
        """
        with self._lock:
            if self._status not in (SessionStatus.READY, SessionStatus.FAILED):
                return ActionResult(ok=False, message="Todavía se están cargando los datos.")
            try:
                new_state = transition(self._state, *args, **kwargs)
            except DespensaError as exc:
                logger.info("Action %s rejected: %s", getattr(transition, "__name__", transition), exc.message)
                return ActionResult(ok=False, message=exc.message)
            self._state = new_state
            ready = self._status == SessionStatus.READY
        if ready:
            self._debouncer.schedule()
        return ActionResult(ok=True)

    # -------------------------
    # Persistence
    # -------------------------

    def flush(self) -> None:
        """Send a pending save now instead of waiting for the debounce window."""
        self._debouncer.flush()

    def _save_pending(self) -> None:
        with self._lock:
            if self._status != SessionStatus.READY or self._email is None:
                logger.info("Save withheld: session is %s", self._status.value)
                return
            email = self._email
            generation = self._generation
            payload = dump_state(self._state)

        try:
            self._client.put_state(email, payload)
        except StatePersistError as exc:
            # The next change schedules another save.
            logger.warning("Saving state for %s failed: %s", email, exc)
            with self._lock:
                self.last_error = str(exc)

        with self._lock:
            if generation != self._generation:
                return
        self._write_backup(email, payload)

    def _read_backup(self, email: str) -> Optional[dict]:
        if self._backup is None:
            return None
        try:
            return self._backup.read(email)
        except SQLAlchemyError as exc:
            logger.warning("Reading local backup for %s failed: %s", email, exc)
            return None

    def _write_backup(self, email: str, payload: dict) -> None:
        if self._backup is None:
            return
        try:
            self._backup.write(email, payload)
        except SQLAlchemyError as exc:
            logger.warning("Writing local backup for %s failed: %s", email, exc)

    # -------------------------
    # Teardown
    # -------------------------

    def logout(self) -> None:
        """
        End the current user's session.

        A save still waiting in the debounce window is sent first, for this
        user's own document; anything loading afterwards is discarded.
        """
        self._debouncer.flush()
        with self._lock:
            self._debouncer.cancel()
            self._generation += 1
            self._email = None
            self._status = SessionStatus.IDLE
            self._state = empty_state()

    def close(self) -> None:
        self.logout()
        close = getattr(self._client, "close", None)
        if callable(close):
            close()
