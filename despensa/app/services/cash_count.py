from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from typing import Dict, Tuple, Union

from despensa.app.domain.state import LedgerState
from despensa.app.money import parse_localized_amount
from despensa.app.services import closing_service
from despensa.app.services.exceptions import ValidationError

# ARS notes and coins counted at the register.
DENOMINATIONS = (20000, 10000, 2000, 1000, 500, 200, 100, 50, 20, 10)


@dataclass(frozen=True)
class CashTally:
    """Running count of the cash left in the register (arqueo)."""

    counts: Dict[int, int] = field(default_factory=dict)
    partials: Tuple[float, ...] = ()

    def with_count(self, denomination: int, pieces: int) -> "CashTally":
        if denomination not in DENOMINATIONS:
            raise ValidationError(f"Denominación desconocida: {denomination}")
        if pieces < 0:
            raise ValidationError("La cantidad no puede ser negativa.")
        counts = dict(self.counts)
        if pieces:
            counts[denomination] = pieces
        else:
            counts.pop(denomination, None)
        return replace(self, counts=counts)

    def with_partial(self, amount: Union[str, float]) -> "CashTally":
        value = parse_localized_amount(amount)
        if value <= 0:
            raise ValidationError("Ingresa un monto válido (> 0).")
        return replace(self, partials=self.partials + (value,))

    def without_partial(self, index: int) -> "CashTally":
        partials = self.partials[:index] + self.partials[index + 1:]
        return replace(self, partials=partials)

    def total(self) -> float:
        notes = sum(denomination * pieces for denomination, pieces in self.counts.items())
        return float(notes) + sum(self.partials)


def apply_counted_total(state: LedgerState, day: date, tally: CashTally) -> LedgerState:
    """Use the counted total as the cash left for the next day."""
    return closing_service.update_cash_field(state, day, "cash_carry_to_next_day", tally.total())
