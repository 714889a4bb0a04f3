from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from despensa.app.config import fiado_delete_secret, fiado_payment_secret
from despensa.app.services.exceptions import ValidationError


class Gate(Protocol):
    def require(self, supplied: Optional[str]) -> None:
        ...


@dataclass(frozen=True)
class SecretGate:
    """
    Capability check for sensitive credit-ledger actions.

    NOTE:
    - This compares a shared secret, it is not authentication.
    - Call sites depend only on `require`, so a real permission check can
      replace it without touching them.
    """

    action: str
    secret_source: Callable[[], str]

    def require(self, supplied: Optional[str]) -> None:
        expected = self.secret_source()
        if supplied is None or not hmac.compare_digest(str(supplied).encode("utf-8"), expected.encode("utf-8")):
            raise ValidationError(
                f"Contraseña incorrecta o operación cancelada. No se pudo {self.action}."
            )


def settlement_gate() -> Gate:
    return SecretGate(action="registrar el abono", secret_source=fiado_payment_secret)


def deletion_gate() -> Gate:
    return SecretGate(action="eliminar la cuenta", secret_source=fiado_delete_secret)
