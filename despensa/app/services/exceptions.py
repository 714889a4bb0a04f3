"""
Domain exceptions for the ledger services.

Services raise these; the session boundary (and the HTTP routes) turn them
into a user-facing message and leave the document untouched.
"""


class DespensaError(Exception):
    """Base exception for ledger errors."""

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__doc__ or ""


class ValidationError(DespensaError):
    """Invalid user input; nothing was changed."""


class PriceOverrideRequired(ValidationError):
    """The product has catalog price 0 and needs a price typed for this sale."""

    def __init__(self, ean: str, product_name: str):
        super().__init__(f'El producto "{product_name}" tiene precio 0. Ingresa el precio.')
        self.ean = ean
        self.product_name = product_name


class NotFoundError(DespensaError):
    """Lookup by code, name or id found nothing."""


class LockedStateError(DespensaError):
    """The day is closed; its sales and cash fields are read-only."""


class StateLoadError(DespensaError):
    """The remote state could not be loaded."""


class StatePersistError(DespensaError):
    """The remote state could not be saved."""


class UnknownCreditAccountError(NotFoundError, ValidationError):
    """No store-credit account matches that name."""
