"""
HTML extraction module for converting source invoices to InvoiceRecords.

This module provides functionality to:
- Parse the HTML produced by the upstream invoicing tool
- Locate individual fields (invoice number, dates, parties) by class markers and labels
- Detect the item columns of the entries table and split its rows into items and summary
- Read source invoices from disk and dump extracted records as JSON
"""

import json
import re
from pathlib import Path
from typing import Optional, Union

from bs4 import BeautifulSoup, Tag
from markupsafe import Markup

from .config import (
    CLIENT_ADDRESS_CLASS,
    CLIENT_NAME_CLASS,
    COMPANY_ADDRESS_CLASS,
    COMPANY_NAME_CLASS,
    CURRENCY_PATTERN,
    DATE_LABEL,
    DUE_DATE_LABEL,
    ENTRIES_TABLE_CLASS,
    HEADER_COLUMN_MAP,
    INVOICE_NUMBER_PATTERN,
    INVOICE_TITLE_CLASS,
    SOURCE_SUFFIXES,
    SUMMARY_ROW_LABELS,
    logger,
)
from .exceptions import ParseError
from .schemas import DetectedColumn, InvoiceRecord, InvoiceSummary, LineItem


# ============================================================================
# Markup Helpers
# ============================================================================

def collapse_ws(text: Optional[str]) -> str:
    """Replace runs of whitespace with a single space and trim both ends."""
    if not text:
        return ""
    return re.sub(r"\s+", " ", text).strip()


def parse_document(raw_html: Union[str, bytes]) -> BeautifulSoup:
    """
    Parse raw markup into a document tree.

    Uses html5lib so optional end tags (e.g. ``</td>``) are implied the way a
    browser implies them.

    Raises:
        ParseError: If the input is not markup text at all
    """
    if isinstance(raw_html, bytes):
        try:
            raw_html = raw_html.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError("Source document is not valid UTF-8", {"reason": str(e)}) from e

    if not isinstance(raw_html, str):
        raise ParseError(
            "Source document must be a markup string",
            {"type": type(raw_html).__name__},
        )

    try:
        return BeautifulSoup(raw_html, "html5lib")
    except Exception as e:
        raise ParseError(f"Could not parse source document: {e}") from e


def _cells(row: Tag, names: Union[str, list[str]] = "td") -> list[Tag]:
    return row.find_all(names, recursive=False)


# ============================================================================
# Field Extraction Helpers
# ============================================================================

def extract_invoice_number(doc: BeautifulSoup) -> str:
    """
    Extract the invoice number from the title block.

    Falls back to the whole document text when the title block is missing.
    Returns an empty string when no "Invoice #..." token is found.
    """
    title = doc.select_one(f".{INVOICE_TITLE_CLASS}")
    if title is not None:
        text = title.get_text()
    else:
        body = doc.body if doc.body is not None else doc
        text = body.get_text()

    match = re.search(INVOICE_NUMBER_PATTERN, text, re.IGNORECASE)
    return match.group(1) if match else ""


def find_label_value(doc: BeautifulSoup, label: str) -> str:
    """
    Find a table cell labelled ``label`` and return the text of the cell after it.

    The label comparison ignores case, surrounding whitespace and a colon.
    """
    wanted = label.lower()
    for cell in doc.find_all("td"):
        text = cell.get_text().strip().replace(":", "", 1).strip().lower()
        if text != wanted:
            continue
        value_cell = cell.find_next_sibling()
        if value_cell is not None:
            return collapse_ws(value_cell.get_text())
    return ""


def extract_inner_markup(doc: BeautifulSoup, class_name: str) -> Markup:
    """Return the trimmed inner markup of the first element with ``class_name``."""
    element = doc.select_one(f".{class_name}")
    if element is None:
        return Markup("")
    return Markup(element.decode_contents().strip())


def find_entries_table(doc: BeautifulSoup) -> Optional[Tag]:
    """Locate the table nested in the entries-table container, if any."""
    container = doc.select_one(f".{ENTRIES_TABLE_CLASS}")
    if container is None:
        return None
    return container.find("table")


# ============================================================================
# Entries Table
# ============================================================================

def detect_columns(rows: list[Tag]) -> list[DetectedColumn]:
    """
    Map the header row of the entries table to item keys.

    Unrecognized headers produce no column. Item cells are later matched to
    these columns by position, so an unrecognized header shifts every cell
    to its right; legacy documents depend on this behaviour.
    """
    header_row = next((row for row in rows if row.find("th") is not None), None)
    if header_row is None:
        return []

    columns: list[DetectedColumn] = []
    for cell in _cells(header_row, ["th", "td"]):
        label = collapse_ws(cell.get_text())
        key = HEADER_COLUMN_MAP.get(label.lower())
        if key is None:
            logger.debug(f"Ignoring unrecognized column header: {label!r}")
            continue
        columns.append(DetectedColumn(key=key, label=label))
    return columns


def classify_summary_row(first_cell_text: str) -> Optional[str]:
    """
    Return the summary key for a row label, or None for item rows.

    Labels are matched by substring in a fixed priority order.
    """
    for label, key in SUMMARY_ROW_LABELS:
        if label in first_cell_text:
            return key
    return None


def parse_item_row(cells: list[Tag], columns: list[DetectedColumn]) -> Optional[LineItem]:
    """
    Zip row cells against the detected columns by position.

    Returns None for rows without a date or description (spacer rows).
    """
    item: LineItem = {}
    for column, cell in zip(columns, cells):
        item[column.key] = collapse_ws(cell.get_text())

    if item.get("date") or item.get("description"):
        return item
    return None


def parse_entries_table(table: Tag) -> tuple[list[LineItem], InvoiceSummary, list[DetectedColumn]]:
    """
    Split the entries table into line items and summary values.

    Returns:
        Tuple of (items, summary, detected_columns)
    """
    rows = table.find_all("tr")
    columns = detect_columns(rows)

    items: list[LineItem] = []
    summary: dict[str, str] = {}

    for row in rows:
        if row.find("th") is not None:
            continue

        cells = _cells(row)
        if not cells:
            continue

        first_cell = collapse_ws(cells[0].get_text())
        summary_key = classify_summary_row(first_cell.lower())

        if summary_key is not None:
            match = re.search(CURRENCY_PATTERN, row.get_text())
            if match:
                summary[summary_key] = match.group(0)
            if summary_key == "tax":
                summary["tax_label"] = first_cell
            continue

        item = parse_item_row(cells, columns)
        if item is not None:
            items.append(item)

    return items, InvoiceSummary(**summary), columns


# ============================================================================
# Main Extraction Functions
# ============================================================================

def extract(raw_html: Union[str, bytes]) -> InvoiceRecord:
    """
    Extract an InvoiceRecord from the HTML of a source invoice.

    Missing fields degrade to empty values; only unparseable input fails.

    Args:
        raw_html: Complete markup of one source invoice

    Returns:
        Best-effort InvoiceRecord

    Raises:
        ParseError: If the input cannot be interpreted as markup
    """
    doc = parse_document(raw_html)

    table = find_entries_table(doc)
    if table is not None:
        items, summary, columns = parse_entries_table(table)
    else:
        logger.debug("No entries table found in source document")
        items, summary, columns = [], InvoiceSummary(), []

    return InvoiceRecord(
        invoice_number=extract_invoice_number(doc),
        date=find_label_value(doc, DATE_LABEL),
        due_date=find_label_value(doc, DUE_DATE_LABEL),
        client_name_markup=extract_inner_markup(doc, CLIENT_NAME_CLASS),
        client_address_markup=extract_inner_markup(doc, CLIENT_ADDRESS_CLASS),
        company_name_markup=extract_inner_markup(doc, COMPANY_NAME_CLASS),
        company_address_markup=extract_inner_markup(doc, COMPANY_ADDRESS_CLASS),
        items=items,
        summary=summary,
        detected_columns=columns,
    )


def extract_invoice_from_file(html_path: Path) -> InvoiceRecord:
    """
    Extract an InvoiceRecord from an HTML file.

    Raises:
        ParseError: If the file content cannot be interpreted as markup
    """
    logger.info(f"Extracting invoice from: {html_path.name}")
    record = extract(html_path.read_text(encoding="utf-8", errors="replace"))

    if not record.invoice_number:
        logger.warning(f"Could not extract invoice number from {html_path.name}")

    logger.info(f"Extracted invoice: {record.invoice_number or '<unknown>'} ({len(record.items)} items)")
    return record


def extract_invoices_from_dir(html_dir: Path) -> dict[str, InvoiceRecord]:
    """
    Extract invoices from all HTML files in a directory.

    Args:
        html_dir: Path to directory containing source HTML files

    Returns:
        Mapping of file name -> extracted InvoiceRecord, in file name order
    """
    if not html_dir.exists():
        raise FileNotFoundError(f"Directory not found: {html_dir}")

    html_files = sorted(
        (p for p in html_dir.iterdir() if p.is_file() and p.suffix.lower() in SOURCE_SUFFIXES),
        key=lambda p: p.name,
    )

    if not html_files:
        logger.warning(f"No HTML files found in: {html_dir}")
        return {}

    logger.info(f"Found {len(html_files)} HTML files to process")

    records: dict[str, InvoiceRecord] = {}
    for html_path in html_files:
        try:
            records[html_path.name] = extract_invoice_from_file(html_path)
        except ParseError as e:
            logger.error(f"Failed to extract invoice from {html_path}: {e}")

    logger.info(f"Successfully extracted {len(records)} invoices")
    return records


def write_extracted_records(records: dict[str, InvoiceRecord], output_path: Path) -> None:
    """
    Write extracted records to a JSON file keyed by source file name.

    The file can be edited by hand and rendered again with ``load_records``.
    """
    output_data = {name: record.model_dump(mode="json") for name, record in records.items()}

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(output_data, f, indent=2, ensure_ascii=False)

    logger.info(f"Wrote {len(records)} records to: {output_path}")


def load_records(input_path: Path) -> dict[str, InvoiceRecord]:
    """
    Load records written by ``write_extracted_records``.

    A file holding a single record object is also accepted; it is keyed by
    the file's stem.
    """
    with open(input_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    if isinstance(data, dict) and "invoice_number" in data:
        return {input_path.stem: InvoiceRecord.model_validate(data)}

    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in {input_path}")

    return {name: InvoiceRecord.model_validate(value) for name, value in data.items()}
