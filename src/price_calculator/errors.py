"""
Exception hierarchy shared by the services and the API layer.
"""
from typing import Optional


class PriceCalculatorError(Exception):
    """Base class for all price calculator errors."""


class ValidationFailed(PriceCalculatorError):
    """One or more input fields failed validation."""

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        detail = "; ".join(f"{field}: {msg}" for field, msg in self.errors.items())
        super().__init__(detail or "Validation failed")


class DiscountLimitReached(ValidationFailed):
    """Stacked discount list is already at its cap."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__({"discounts": f"Maksimal {limit} diskon"})


class PersistenceError(PriceCalculatorError):
    """The store could not complete a read or write."""


class RecordNotFound(PersistenceError):
    """No row with the requested id exists."""

    def __init__(self, table: str, record_id: str):
        self.table = table
        self.record_id = record_id
        super().__init__(f"{table} '{record_id}' not found")


class BackupFormatError(PriceCalculatorError):
    """A backup document could not be accepted."""


class AssistantError(PriceCalculatorError):
    """The assistant stream failed."""

    status_code: Optional[int] = None


class RateLimited(AssistantError):
    status_code = 429

    def __init__(self, message: str = "Rate limit exceeded. Please wait a moment and try again."):
        super().__init__(message)


class CreditsExhausted(AssistantError):
    status_code = 402

    def __init__(self, message: str = "AI credits exhausted. Please add credits to continue."):
        super().__init__(message)
