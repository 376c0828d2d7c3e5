"""Invoice validation before save."""

from invoicing.validation.validator import (
    InvoiceValidationError,
    InvoiceValidator,
)

__all__ = ["InvoiceValidationError", "InvoiceValidator"]
