"""
Exceptions raised by the Invoice Formatter.

Exception Hierarchy:
    InvoiceFormatterError (base)
    ├── ParseError
    ├── RenderStructuralError
    ├── AssetUnavailable
    ├── RasterizationFailure
    │   ├── RenderTimeout
    │   └── RenderUnavailable
    ├── ConfigurationError
    └── MissingIbanError

Missing fields in a source document are not errors: the extractor
returns empty values for them instead.
"""

from typing import Optional


class InvoiceFormatterError(Exception):
    """
    Base exception for all invoice formatter errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ParseError(InvoiceFormatterError):
    """Raw input could not be interpreted as markup at all."""


class RenderStructuralError(InvoiceFormatterError):
    """The renderer was given a record or config with an impossible shape."""


class AssetUnavailable(InvoiceFormatterError):
    """A referenced asset (e.g. the banner image) could not be loaded."""


class RasterizationFailure(InvoiceFormatterError):
    """The PDF rasterizer failed for a rendered document."""


class RenderTimeout(RasterizationFailure):
    """The PDF rasterizer did not finish in time."""


class RenderUnavailable(RasterizationFailure):
    """No PDF rasterization capability is available."""


class ConfigurationError(InvoiceFormatterError):
    """A configuration file exists but its contents are invalid."""


class MissingIbanError(InvoiceFormatterError):
    """Conversion was requested without a configured IBAN."""

    def __init__(self, message: str = "IBAN is not configured", details: Optional[dict] = None):
        super().__init__(message, details)
