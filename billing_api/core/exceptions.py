"""
Billing engine error taxonomy.

Services raise these; the API layer maps them to HTTP responses
(see billing_api.main). Every error carries the key that failed so the
caller can render a useful message.
"""

from typing import Any, Dict, Optional


class BillingError(Exception):
    """Base class for billing engine errors."""

    code = "billing_error"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(BillingError):
    """Bad input: range, rate, months_ahead ceiling, weights."""

    code = "validation_error"


class InvalidRateError(ValidationError):
    """Tenant has no positive monthly rate configured."""

    code = "invalid_rate"


class InvalidRangeError(ValidationError):
    """End month precedes start month."""

    code = "invalid_range"


class NotFoundError(BillingError):
    """Missing tenant, property, obligation or report."""

    code = "not_found"


class NoPropertyError(NotFoundError):
    code = "no_property"


class ConflictError(BillingError):
    """Idempotent insert could not be confirmed against the store."""

    code = "conflict"


class ReconciliationError(BillingError):
    """Allocated amounts do not sum to the budget."""

    code = "reconciliation_error"
