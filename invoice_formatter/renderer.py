"""
HTML rendering of InvoiceRecords.

Turns an extracted record plus the user's configuration into a complete,
standalone HTML document that can be saved as-is or rasterized to PDF.

Escaping rule: every value is escaped with ``markupsafe.escape`` except the
four party fields of the record, which are ``Markup`` fragments copied from
the source document and embedded verbatim.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, TypeVar, Union

from markupsafe import Markup, escape
from pydantic import BaseModel, ValidationError

from .assets import is_remote_reference, strip_asset_prefix, to_data_uri
from .config import (
    ASSET_DIR_NAME,
    DATE_INPUT_FORMATS,
    DEFAULT_PAYMENT_REQUEST,
    DEFAULT_TAX_MESSAGE,
    FIRST_ROW_BGCOLOR,
    NOTES_LINE_BREAK,
    RENDER_COLUMNS,
    RENDER_SUMMARY_ROWS,
    ROW_BGCOLOR,
)
from .exceptions import RenderStructuralError
from .schemas import IbanConfig, InvoiceRecord, InvoiceSummary, LineItem, RenderConfig

BannerAsset = Union[bytes, bytearray, str, None]

ModelT = TypeVar("ModelT", bound=BaseModel)

_BANNER_STYLE = "width: 100%; display: block; margin: 0; padding: 0;"


# ============================================================================
# Input Coercion
# ============================================================================

def _coerce(value: Any, model: type[ModelT], what: str, required: bool = False) -> ModelT:
    if value is None and not required:
        return model()
    if isinstance(value, model):
        return value
    if isinstance(value, Mapping):
        try:
            return model.model_validate(value)
        except ValidationError as e:
            raise RenderStructuralError(f"Invalid {what}", {"reason": str(e)}) from e
    raise RenderStructuralError(
        f"{what} must be a {model.__name__}",
        {"type": type(value).__name__},
    )


# ============================================================================
# Dates
# ============================================================================

def format_date_string(value: str, output_format: str) -> str:
    """
    Reformat a raw date string using ``%d/%m/%Y``-style tokens.

    Known input patterns are tried in order and the first that parses wins,
    so ambiguous dates such as 01/02/2024 are read day-first. Values that
    match no pattern are returned unchanged.
    """
    if not value or not value.strip() or not output_format:
        return value

    candidate = value.strip()
    for fmt in DATE_INPUT_FORMATS:
        try:
            parsed = datetime.strptime(candidate, fmt)
        except ValueError:
            continue
        return parsed.strftime(output_format)

    return value


# ============================================================================
# Blocks
# ============================================================================

def build_banner_html(
    config: RenderConfig,
    banner_asset: BannerAsset = None,
    asset_base: str = ASSET_DIR_NAME,
) -> str:
    """
    Build the banner image tag, or an empty string when no banner is set.

    A supplied asset is embedded directly. Otherwise the configured path is
    referenced, with an onerror handler that hides the image if it fails to load.
    """
    if isinstance(banner_asset, (bytes, bytearray)) and banner_asset:
        src = to_data_uri(bytes(banner_asset))
        return f'<img src="{escape(src)}" alt="Invoice Banner" style="{_BANNER_STYLE}" />'
    if isinstance(banner_asset, str) and banner_asset:
        return f'<img src="{escape(banner_asset)}" alt="Invoice Banner" style="{_BANNER_STYLE}" />'

    path = config.banner_path
    if not path:
        return ""

    if is_remote_reference(path):
        src = path
    else:
        src = f"{asset_base}/{strip_asset_prefix(path)}"

    on_error = f"this.style.display='none'; this.alt='Banner not found: {src}';"
    return (
        f'<img src="{escape(src)}" alt="Invoice Banner" style="{_BANNER_STYLE}" '
        f'onerror="{escape(on_error)}" />'
    )


def visible_columns(config: RenderConfig) -> list[tuple[str, str, bool]]:
    """
    Columns to emit, as (item key, header label, numeric) tuples.

    The set and order come from configuration only, not from the columns
    detected in the source document.
    """
    visibility = config.column_visibility
    return [
        (key, label, numeric)
        for flag, key, label, numeric in RENDER_COLUMNS
        if getattr(visibility, flag)
    ]


def build_headers(config: RenderConfig) -> list[str]:
    return [label for _, label, _ in visible_columns(config)]


def _cell_text(item: LineItem, key: str, hide_empty: bool) -> str:
    value = item.get(key) or ""
    if hide_empty and not value.strip():
        return ""
    return escape(value)


def build_item_rows(items: list[LineItem], config: RenderConfig) -> list[str]:
    """Render one table row per item, in record order."""
    columns = visible_columns(config)
    rows = []

    for i, item in enumerate(items):
        bg = FIRST_ROW_BGCOLOR if i == 0 else ROW_BGCOLOR
        cells = []
        for key, _, numeric in columns:
            css = ' class="number-cell"' if numeric else ""
            cells.append(f"<td{css}>{_cell_text(item, key, config.hide_empty_fields)}</td>")
        rows.append(f'<tr bgcolor="{bg}">{"".join(cells)}</tr>')

    return rows


def resolve_tax_label(summary: InvoiceSummary, config: RenderConfig) -> str:
    """
    Label of the tax summary row.

    The document's own tax label wins; the configured tax message is used
    when the document has none, and the built-in default when both are empty.
    """
    if summary.tax_label.strip():
        return summary.tax_label
    if config.tax_message.strip():
        return config.tax_message
    return DEFAULT_TAX_MESSAGE


def build_summary_rows(summary: InvoiceSummary, config: RenderConfig) -> list[str]:
    """Render the net/tax/total/due rows that are both enabled and present."""
    visibility = config.summary_visibility
    colspan = max(1, len(visible_columns(config)) - 1)
    rows = []

    for flag, key, label in RENDER_SUMMARY_ROWS:
        value = getattr(summary, key)
        if not getattr(visibility, flag) or not value:
            continue
        if key == "tax":
            label = resolve_tax_label(summary, config)
        rows.append(
            f'<tr bgcolor="{ROW_BGCOLOR}"><td class="total-label-cell">{escape(label)}</td>'
            f'<td class="total-number-cell" colspan="{colspan}">{escape(value)}</td></tr>'
        )

    return rows


def build_notes_lines(config: RenderConfig, bank: IbanConfig) -> list[str]:
    """Plain-text lines of the notes block, before escaping."""
    lines: list[str] = []
    iban = bank.iban.strip()

    if iban or config.bank_account_name or config.bic or config.btw_number:
        lines.extend(["", ""])
        if iban:
            lines.append(f"IBAN: {iban}")
        if config.bank_account_name:
            lines.append(f"Account name: {config.bank_account_name}")
        if config.bic:
            lines.append(f"BIC: {config.bic}")
        if config.btw_number:
            lines.append(f"BTW number: {config.btw_number}")
        lines.extend(["", ""])

    if config.payment_request_text.strip():
        lines.extend(config.payment_request_text.split("\n"))
    else:
        lines.extend(DEFAULT_PAYMENT_REQUEST)

    lines.extend(["", "With kind regards,", ""])
    for value in (config.treasurer.name, config.treasurer.title, config.treasurer.email):
        if value:
            lines.append(value)

    return lines


def build_notes_html(config: RenderConfig, bank: IbanConfig) -> str:
    return Markup(NOTES_LINE_BREAK).join(escape(line) for line in build_notes_lines(config, bank))


def build_date_rows(record: InvoiceRecord, config: RenderConfig) -> list[str]:
    settings = config.date_settings
    entries = []
    if settings.show_date and record.date:
        entries.append(("Date:", format_date_string(record.date, settings.date_format)))
    if settings.show_due_date and record.due_date:
        entries.append(("Due Date:", format_date_string(record.due_date, settings.due_date_format)))

    return [
        f'<tr><td>{label}</td><td><div class="div-align-right">{escape(value)}</div></td></tr>'
        for label, value in entries
    ]


def page_title(record: InvoiceRecord) -> str:
    client = Markup(record.client_name_markup).striptags()
    return f"Invoice {record.invoice_number} - {client}"


# ============================================================================
# Document
# ============================================================================

_STYLE = """
img {
    width: 100%;
    height: auto;
    display: block;
    margin: 0;
    padding: 0;
    object-fit: contain;
}

h3 {
    font-family: "Open Sans", sans-serif;
    font-size: 18pt;
    font-weight: bold;
    color: #1c3661;
}

body, p, table, tr, td {
    vertical-align: top;
    font-family: "Open Sans", sans-serif;
    font-size: 13pt;
    color: #1d232b;
}

tr {
    page-break-inside: avoid !important;
}

html, body {
    height: 100vh;
    margin: 0;
}

td, th {
    border-color: #808080;
}

th {
    text-align: left;
    font-family: "Open Sans", sans-serif;
    font-size: 12pt;
    background: #f1f1f1;
}

td.number-cell, td.total-number-cell {
    text-align: right;
    white-space: nowrap;
}

td.number-cell {
    font-size: 14pt;
}

td.total-number-cell {
    font-size: 14pt;
    font-weight: bold;
    color: #1c3661;
}

td.total-label-cell {
    font-size: 14pt;
    font-weight: bold;
}

@media print {
    html, body { height: unset; }
}

.div-align-right { float: right; }
.div-align-right .maybe-align-right { text-align: right }

.entries-table * {
    border-width: 1px;
    border-style: solid;
    border-collapse: collapse;
    border-color: #808080;
}

.entries-table > table { width: 100% }
.company-table > table * { padding: 0px; }
.client-table > table * { padding: 0px; }
.invoice-details-table > table * { padding: 0px; text-indent: 0.2em; }
.main-table > table { width: 80%; }

.company-name, .client-name {
    font-size: x-large;
    margin: 0;
    line-height: 1.25;
    color: #1c3661;
}

.client-table .client-name { text-align: left; }
.client-table .maybe-align-right { text-align: left; }

.invoice-title {
    font-weight: bold;
    color: #1c3661;
    font-size: 1.2em;
}

.invoice-notes {
    margin-top: 0;
    width: 100%;
    color: #3b3f45;
}
"""


def assemble_document(
    record: InvoiceRecord,
    banner_html: str,
    date_rows: list[str],
    headers: list[str],
    item_rows: list[str],
    summary_rows: list[str],
    notes_html: str,
) -> str:
    """Fill the fixed document skeleton with the rendered blocks."""
    banner_block = ""
    if banner_html:
        banner_block = (
            '<div style="width: 100%; max-width: 1006px; margin: 0; padding: 0; '
            f'left: 0; right: 0; position: relative;">{banner_html}</div>\n'
        )

    header_cells = "".join(f"<th>{escape(h)}</th>" for h in headers)

    return f"""<!DOCTYPE html>
<html dir='auto'>
<head>
<meta http-equiv="content-type" content="text/html; charset=utf-8" />
<title>{escape(page_title(record))}</title>
<style type="text/css">{_STYLE}</style>
</head>
<body text="#000000" link="#1c3661" bgcolor="#ffffff" style="margin: 0; padding: 0;">
{banner_block}<table cellspacing="0" cellpadding="0" border="0" width="100%" style="margin-left:0; margin-right:0; max-width: 1006px;">
  <tbody>
    <tr><td><h3></h3></td></tr>
    <tr><td>
      <div class="main-table">
        <table cellspacing="1" cellpadding="1" border="0" style="margin-left:auto; margin-right:auto">
          <tbody>
            <tr><td colspan="2"><div class="invoice-title">Invoice #{escape(record.invoice_number)}</div></td></tr>
            <tr>
              <td> </td>
              <td>
                <div class="div-align-right">
                  <div class="invoice-details-table">
                    <table cellspacing="1" cellpadding="1" border="0" style="margin-left:auto; margin-right:auto">
                      <tbody>
                        {"".join(date_rows)}
                      </tbody>
                    </table>
                  </div>
                </div>
              </td>
            </tr>
            <tr>
              <td>
                <div class="client-table">
                  <table cellspacing="1" cellpadding="1" border="0" style="margin-left:0; margin-right:0">
                    <tbody>
                      <tr><td><div class="maybe-align-right client-name">{record.client_name_markup}</div></td></tr>
                      <tr><td><div class="maybe-align-right client-address">{record.client_address_markup}</div></td></tr>
                    </tbody>
                  </table>
                </div>
              </td>
              <td>
                <div class="div-align-right">
                  <div class="company-table">
                    <table cellspacing="1" cellpadding="1" border="0" style="margin-left:auto; margin-right:auto">
                      <tbody>
                        <tr><td><div class="maybe-align-right company-name">{record.company_name_markup}</div></td></tr>
                        <tr><td><div class="maybe-align-right company-address">{record.company_address_markup}</div></td></tr>
                      </tbody>
                    </table>
                  </div>
                </div>
              </td>
            </tr>
            <tr><td> </td><td><div class="div-align-right"> </div></td></tr>
            <tr>
              <td colspan="2">
                <div class="entries-table">
                  <table cellspacing="1" cellpadding="1" border="0" style="margin-left:auto; margin-right:auto">
                    <thead>
                      <tr>{header_cells}</tr>
                    </thead>
                    <tbody>
                      {"".join(item_rows)}
                      {"".join(summary_rows)}
                    </tbody>
                  </table>
                </div>
              </td>
            </tr>
            <tr>
              <td colspan="2">
                <div class="invoice-notes">{notes_html}</div>
              </td>
            </tr>
          </tbody>
        </table>
      </div>
    </td></tr>
  </tbody>
</table>
</body>
</html>"""


def render(
    record: Union[InvoiceRecord, Mapping],
    config: Union[RenderConfig, Mapping, None] = None,
    bank: Union[IbanConfig, Mapping, None] = None,
    banner_asset: BannerAsset = None,
    asset_base: str = ASSET_DIR_NAME,
) -> str:
    """
    Render an invoice record into a complete HTML document.

    The output depends only on the arguments, so rendering the same inputs
    twice yields identical documents. Inputs are never modified.

    Args:
        record: Extracted invoice record (or a mapping that validates as one)
        config: Render configuration; defaults when None
        bank: IBAN configuration; an empty IBAN is accepted
        banner_asset: Resolved banner as image bytes or a URL/data URI
        asset_base: Location that relative banner paths are resolved against

    Returns:
        The rendered HTML document

    Raises:
        RenderStructuralError: If the record or configuration has an invalid shape
    """
    record = _coerce(record, InvoiceRecord, "invoice record", required=True)
    config = _coerce(config, RenderConfig, "render config")
    bank = _coerce(bank, IbanConfig, "IBAN config")

    return assemble_document(
        record=record,
        banner_html=build_banner_html(config, banner_asset, asset_base),
        date_rows=build_date_rows(record, config),
        headers=build_headers(config),
        item_rows=build_item_rows(record.items, config),
        summary_rows=build_summary_rows(record.summary, config),
        notes_html=build_notes_html(config, bank),
    )
