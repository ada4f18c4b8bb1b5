"""
Configuration constants and logging for the Invoice Formatter.
"""

import logging
import os
from typing import Final

# ============================================================================
# Source Document Markers
# ============================================================================

# Class markers used by the upstream invoicing tool
INVOICE_TITLE_CLASS: Final[str] = "invoice-title"
ENTRIES_TABLE_CLASS: Final[str] = "entries-table"

CLIENT_NAME_CLASS: Final[str] = "client-name"
CLIENT_ADDRESS_CLASS: Final[str] = "client-address"
COMPANY_NAME_CLASS: Final[str] = "company-name"
COMPANY_ADDRESS_CLASS: Final[str] = "company-address"

INVOICE_NUMBER_PATTERN: Final[str] = r"Invoice\s*#([A-Za-z0-9_.\-]+)"
CURRENCY_PATTERN: Final[str] = r"[€]\s?[\d.,]+"

DATE_LABEL: Final[str] = "date"
DUE_DATE_LABEL: Final[str] = "due date"

# ============================================================================
# Entries Table
# ============================================================================

# Header text (lower-cased) -> item key
HEADER_COLUMN_MAP: Final[dict[str, str]] = {
    "date": "date",
    "description": "description",
    "action": "action",
    "quantity": "quantity",
    "unit price": "unit_price",
    "price": "unit_price",
    "discount": "discount",
    "taxable": "taxable",
    "tax amount": "tax_amount",
    "total": "total",
}

# Checked in order; first substring match on the first cell wins
SUMMARY_ROW_LABELS: Final[list[tuple[str, str]]] = [
    ("net price", "net"),
    ("subtotal", "net"),
    ("tax", "tax"),
    ("btw", "tax"),
    ("total price", "total"),
    ("amount due", "due"),
]

# ============================================================================
# Rendering
# ============================================================================

# (visibility flag, item key, header label, numeric cell), in output order
RENDER_COLUMNS: Final[list[tuple[str, str, str, bool]]] = [
    ("date", "date", "Date", False),
    ("description", "description", "Description", False),
    ("action", "action", "Action", False),
    ("quantity", "quantity", "Quantity", True),
    ("price", "unit_price", "Price", True),
    ("discount", "discount", "Discount", True),
    ("taxable", "taxable", "Taxable", False),
    ("tax_amount", "tax_amount", "Tax Amount", True),
    ("total", "total", "Total", True),
]

DEFAULT_TAX_MESSAGE: Final[str] = "BTW (21%)"

# (visibility flag, summary key, row label), in output order
RENDER_SUMMARY_ROWS: Final[list[tuple[str, str, str]]] = [
    ("net_price", "net", "Net Price"),
    ("tax", "tax", DEFAULT_TAX_MESSAGE),
    ("total_price", "total", "Total Price"),
    ("amount_due", "due", "Amount Due"),
]

DEFAULT_PAYMENT_REQUEST: Final[list[str]] = [
    "We kindly request you to transfer the above-mentioned amount before the due date",
    "to the bank account mentioned above in the name of Stichting Studiereis Astatine in Enschede,",
    "quoting the invoice number.",
]

FIRST_ROW_BGCOLOR: Final[str] = "#92a7b6"
ROW_BGCOLOR: Final[str] = "#ffffff"

NOTES_LINE_BREAK: Final[str] = "<br />"

# ============================================================================
# Date Formats
# ============================================================================

# Tried in order when reformatting dates; first successful parse wins
DATE_INPUT_FORMATS: Final[list[str]] = [
    "%Y-%m-%d",      # ISO format: 2024-01-15
    "%d/%m/%Y",      # European: 15/01/2024
    "%m/%d/%Y",      # US: 01/15/2024
    "%d-%m-%Y",      # European with dashes: 15-01-2024
    "%m-%d-%Y",      # US with dashes: 01-15-2024
    "%Y/%m/%d",      # ISO with slashes: 2024/01/15
]

DEFAULT_DATE_FORMAT: Final[str] = "%d/%m/%Y"

# ============================================================================
# Output Files
# ============================================================================

UNKNOWN_INVOICE: Final[str] = "UNKNOWN"
UNKNOWN_CLIENT: Final[str] = "UNKNOWN_CLIENT"
HTML_OUTPUT_SUFFIX: Final[str] = "improved"

# ============================================================================
# Project Layout
# ============================================================================

ASSET_DIR_NAME: Final[str] = os.getenv("ASSET_DIR_NAME", "config")
INPUT_DIR_NAME: Final[str] = "input"
OUTPUT_DIR_NAME: Final[str] = "output"
SOURCE_SUFFIXES: Final[tuple[str, ...]] = (".html", ".htm")
CONFIG_FILE_NAME: Final[str] = "config.yml"
IBAN_FILE_NAME: Final[str] = "iban.yml"

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")

def setup_logging() -> logging.Logger:
    """Configure and return the application logger."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("invoice_formatter")


logger = setup_logging()
