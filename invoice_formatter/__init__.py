"""
Invoice Formatter

A Python library and CLI that extracts structured invoice data from the HTML
exported by an invoicing tool and re-renders it as a standardized,
configurable HTML/PDF invoice.
"""

__version__ = "0.1.0"
__author__ = "Invoice Formatter Team"

from .schemas import InvoiceRecord, InvoiceSummary, DetectedColumn, RenderConfig, IbanConfig
from .extractor import extract
from .renderer import render
from .converter import convert_batch, build_output_filename

__all__ = [
    "InvoiceRecord",
    "InvoiceSummary",
    "DetectedColumn",
    "RenderConfig",
    "IbanConfig",
    "extract",
    "render",
    "convert_batch",
    "build_output_filename",
]
