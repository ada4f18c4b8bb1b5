"""
Pydantic models for invoice data, rendering configuration and conversion results.

This module defines the core data structures used throughout the Invoice Formatter:
- InvoiceRecord, InvoiceSummary and DetectedColumn for extracted invoice data
- RenderConfig and IbanConfig for user configuration
- SourceDocument, ConvertedDocument, ConversionOptions and ConversionResult
  for batch conversion
"""

from collections.abc import Mapping
from typing import Annotated, Any, Optional

from markupsafe import Markup
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PlainSerializer,
    PlainValidator,
    WithJsonSchema,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .config import DEFAULT_DATE_FORMAT, DEFAULT_TAX_MESSAGE


def _to_markup(value: Any) -> Markup:
    if value is None:
        return Markup("")
    if isinstance(value, str):
        return Markup(value)
    raise ValueError("markup fragment must be a string")


# Inner markup copied from the source document. It is embedded verbatim by the
# renderer; every other string is escaped.
TrustedMarkup = Annotated[
    Markup,
    PlainValidator(_to_markup),
    PlainSerializer(str, return_type=str),
    WithJsonSchema({"type": "string"}),
]

# Column key -> raw cell text
LineItem = dict[str, str]


# ============================================================================
# Extracted Invoice Data
# ============================================================================

class DetectedColumn(BaseModel):
    """A column discovered from the header row of the entries table."""
    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Item key, e.g. 'unit_price'")
    label: str = Field("", description="Header text as found in the document")


class InvoiceSummary(BaseModel):
    """Aggregate rows of the entries table, as raw currency strings."""
    model_config = ConfigDict(frozen=True)

    net: str = ""
    tax: str = ""
    tax_label: str = Field("", description="Literal label of the tax row, e.g. 'VAT (9%)'")
    total: str = ""
    due: str = ""


class InvoiceRecord(BaseModel):
    """
    Canonical representation of one source invoice.

    Every field degrades to an empty value when the source lacks it. Dates are
    kept as found; reformatting is a rendering concern.
    """
    invoice_number: str = ""
    date: str = ""
    due_date: str = ""

    client_name_markup: TrustedMarkup = Markup("")
    client_address_markup: TrustedMarkup = Markup("")
    company_name_markup: TrustedMarkup = Markup("")
    company_address_markup: TrustedMarkup = Markup("")

    items: list[LineItem] = Field(
        default_factory=list,
        description="Line items in document order",
    )
    summary: InvoiceSummary = Field(default_factory=InvoiceSummary)
    detected_columns: list[DetectedColumn] = Field(
        default_factory=list,
        description="Item columns in the order of the source header row",
    )

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "invoice_number": "INV-2024-007",
                    "date": "01/02/2024",
                    "due_date": "15/02/2024",
                    "client_name_markup": "Acme B.V.",
                    "client_address_markup": "Main Street 1<br/>7500 AA Enschede",
                    "company_name_markup": "Stichting Studiereis",
                    "company_address_markup": "Drienerlolaan 5",
                    "items": [
                        {"date": "01/02/2024", "description": "Consulting", "total": "€ 100,00"}
                    ],
                    "summary": {"net": "", "tax": "€ 21,00", "tax_label": "BTW (21%)",
                                "total": "€ 121,00", "due": "€ 121,00"},
                    "detected_columns": [
                        {"key": "date", "label": "Date"},
                        {"key": "description", "label": "Description"},
                        {"key": "total", "label": "Total"},
                    ],
                }
            ]
        },
    )


# ============================================================================
# Configuration
# ============================================================================

class _ConfigModel(BaseModel):
    """
    Base for configuration models.

    Accepts snake_case or camelCase keys, ignores unknown keys, and treats
    null values as absent so a partially filled file falls back to defaults
    field by field.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def normalize_input(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            data = cls.translate_legacy(dict(data))
            return {key: value for key, value in data.items() if value is not None}
        return data

    @classmethod
    def translate_legacy(cls, data: dict) -> dict:
        return data


def _strip_show_prefix(data: dict) -> dict:
    return {
        (key[len("show_"):] if isinstance(key, str) and key.startswith("show_") else key): value
        for key, value in data.items()
    }


class ColumnVisibility(_ConfigModel):
    """Which item columns the renderer emits."""
    date: bool = True
    description: bool = True
    action: bool = False
    quantity: bool = False
    price: bool = False
    discount: bool = False
    taxable: bool = False
    tax_amount: bool = False
    total: bool = True

    @classmethod
    def translate_legacy(cls, data: dict) -> dict:
        return _strip_show_prefix(data)


class SummaryVisibility(_ConfigModel):
    """Which summary rows the renderer emits."""
    net_price: bool = False
    tax: bool = True
    total_price: bool = True
    amount_due: bool = True

    @classmethod
    def translate_legacy(cls, data: dict) -> dict:
        return _strip_show_prefix(data)


class DateSettings(_ConfigModel):
    """Gating and output format of the date rows."""
    show_date: bool = True
    show_due_date: bool = True
    date_format: str = DEFAULT_DATE_FORMAT
    due_date_format: str = DEFAULT_DATE_FORMAT


class Treasurer(_ConfigModel):
    """Signature block appended to the notes."""
    name: str = ""
    title: str = "Treasurer"
    email: str = ""


class RenderConfig(_ConfigModel):
    """
    User configuration for rendering.

    Besides the field names, the layout of the original ``config.yml`` is
    accepted (``bank``, ``column_settings``, ``summary_settings``,
    ``payment_request``).
    """
    bank_account_name: str = ""
    bic: str = ""
    btw_number: str = ""
    banner_path: str = ""
    column_visibility: ColumnVisibility = Field(default_factory=ColumnVisibility)
    date_settings: DateSettings = Field(default_factory=DateSettings)
    hide_empty_fields: bool = False
    payment_request_text: str = ""
    summary_visibility: SummaryVisibility = Field(default_factory=SummaryVisibility)
    tax_message: str = DEFAULT_TAX_MESSAGE
    treasurer: Treasurer = Field(default_factory=Treasurer)

    @classmethod
    def translate_legacy(cls, data: dict) -> dict:
        bank = data.pop("bank", None)
        if isinstance(bank, Mapping):
            data.setdefault("bank_account_name", bank.get("account_name"))
            data.setdefault("bic", bank.get("bic"))
            data.setdefault("btw_number", bank.get("btw_number"))

        renames = {
            "column_settings": "column_visibility",
            "summary_settings": "summary_visibility",
            "payment_request": "payment_request_text",
        }
        for old, new in renames.items():
            if old in data:
                value = data.pop(old)
                data.setdefault(new, value)
        return data


class IbanConfig(_ConfigModel):
    """Bank account used in the notes block."""
    iban: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.iban and self.iban.strip())


# ============================================================================
# Conversion
# ============================================================================

class SourceDocument(BaseModel):
    """One input invoice handed to the converter."""
    name: str = Field(..., description="Source file name, used in logs")
    content: str = Field("", description="Raw HTML of the source invoice")
    record: Optional[InvoiceRecord] = Field(
        None,
        description="Pre-parsed (possibly edited) record; skips extraction when set",
    )


class ConvertedDocument(BaseModel):
    """Outputs produced for one source document, before they are written."""
    source_name: str
    basename: str
    record: InvoiceRecord
    html: str
    pdf: Optional[bytes] = None


class ConversionOptions(BaseModel):
    """Per-batch conversion switches."""
    keep_html: bool = True
    generate_pdf: bool = True
    overwrite: bool = False


class ConversionResult(BaseModel):
    """Outcome of a conversion batch."""
    total_documents: int = Field(0, ge=0)
    converted: int = Field(0, ge=0)
    errors: int = Field(0, ge=0)
    skipped: int = Field(0, ge=0)
    stopped: bool = Field(False, description="True when the batch was stopped early")
    written: list[str] = Field(default_factory=list, description="Output file names written")
    failures: dict[str, str] = Field(
        default_factory=dict,
        description="Source name -> error message for failed documents",
    )
