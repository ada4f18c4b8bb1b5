"""
Tests for the invoice renderer module.

These tests verify column and summary gating, escaping of untrusted values,
the notes and date blocks, banner handling and input validation.
"""

import pytest

from invoice_formatter.config import DEFAULT_PAYMENT_REQUEST, DEFAULT_TAX_MESSAGE
from invoice_formatter.exceptions import RenderStructuralError
from invoice_formatter.extractor import extract
from invoice_formatter.renderer import (
    build_banner_html,
    build_headers,
    build_item_rows,
    build_notes_lines,
    build_summary_rows,
    format_date_string,
    page_title,
    render,
    resolve_tax_label,
)
from invoice_formatter.schemas import IbanConfig, InvoiceRecord, InvoiceSummary, RenderConfig

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 8
IBAN = IbanConfig(iban="NL91ABNA0417164300")


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def record() -> InvoiceRecord:
    """A small record with two items and a full summary."""
    return InvoiceRecord(
        invoice_number="INV-7",
        date="2024-01-15",
        due_date="2024-02-15",
        client_name_markup="Acme <b>B.V.</b>",
        client_address_markup="Main Street 1<br/>Enschede",
        company_name_markup="Stichting Studiereis",
        company_address_markup="Drienerlolaan 5",
        items=[
            {"date": "2024-01-15", "description": "Consulting", "unit_price": "€ 50,00", "total": "€ 100,00"},
            {"date": "2024-01-16", "description": "Travel", "total": "€ 25,00"},
        ],
        summary=InvoiceSummary(net="€ 125,00", tax="€ 26,25", total="€ 151,25", due="€ 151,25"),
    )


# ============================================================================
# Columns and Items
# ============================================================================

class TestColumns:
    """Tests for column visibility."""

    def test_default_headers(self):
        assert build_headers(RenderConfig()) == ["Date", "Description", "Total"]

    def test_headers_follow_fixed_order(self):
        config = RenderConfig(column_visibility={"total": True, "price": True, "quantity": True})
        assert build_headers(config) == ["Date", "Description", "Quantity", "Price", "Total"]

    def test_only_enabled_columns_emitted(self, record):
        config = RenderConfig(column_visibility={"date": False, "description": True, "total": True})
        rows = build_item_rows(record.items, config)

        assert len(rows) == 2
        assert rows[0].count("<td") == 2
        assert "2024-01-15" not in rows[0]
        assert "Consulting" in rows[0]

    def test_columns_ignore_detected_columns(self):
        record = InvoiceRecord(
            items=[{"description": "Pens", "quantity": "3"}],
            detected_columns=[{"key": "description"}, {"key": "quantity"}],
        )
        html = render(record, RenderConfig(), IBAN)

        assert "<th>Quantity</th>" not in html
        assert "<th>Date</th>" in html

    def test_numeric_cells_marked(self, record):
        config = RenderConfig(column_visibility={"price": True})
        rows = build_item_rows(record.items, config)

        assert '<td class="number-cell">€ 50,00</td>' in rows[0]
        assert "<td>Consulting</td>" in rows[0]

    def test_row_colours(self, record):
        rows = build_item_rows(record.items, RenderConfig())

        assert rows[0].startswith('<tr bgcolor="#92a7b6">')
        assert rows[1].startswith('<tr bgcolor="#ffffff">')

    def test_item_values_escaped(self):
        items = [{"date": "", "description": "<script>alert(1)</script> & co", "total": ""}]
        rows = build_item_rows(items, RenderConfig())

        assert "<script>" not in rows[0]
        assert "&lt;script&gt;alert(1)&lt;/script&gt; &amp; co" in rows[0]

    def test_hide_empty_fields(self):
        items = [{"date": "2024-01-01", "description": "   "}]

        shown = build_item_rows(items, RenderConfig())
        hidden = build_item_rows(items, RenderConfig(hide_empty_fields=True))

        assert "<td>   </td>" in shown[0]
        assert "<td>   </td>" not in hidden[0]
        assert "<td></td>" in hidden[0]

    def test_missing_item_key_renders_empty_cell(self):
        rows = build_item_rows([{"description": "Only"}], RenderConfig())
        assert rows[0].count('<td class="number-cell"></td>') == 1


# ============================================================================
# Summary
# ============================================================================

class TestSummary:
    """Tests for summary rows and the tax label."""

    def test_default_gating(self, record):
        rows = build_summary_rows(record.summary, RenderConfig())
        html = "".join(rows)

        assert len(rows) == 3
        assert "Net Price" not in html
        assert "Total Price" in html
        assert "Amount Due" in html

    def test_net_price_enabled(self, record):
        config = RenderConfig(summary_visibility={"net_price": True})
        rows = build_summary_rows(record.summary, config)

        assert 'Net Price</td><td class="total-number-cell" colspan="2">€ 125,00' in rows[0]

    def test_empty_values_skipped(self):
        rows = build_summary_rows(InvoiceSummary(total="€ 10,00"), RenderConfig())

        assert len(rows) == 1
        assert "Total Price" in rows[0]

    def test_colspan_follows_visible_columns(self, record):
        config = RenderConfig(column_visibility={"quantity": True, "price": True})
        rows = build_summary_rows(record.summary, config)
        assert 'colspan="4"' in rows[0]

    def test_colspan_at_least_one(self, record):
        config = RenderConfig(column_visibility={"date": False, "description": False, "total": True})
        rows = build_summary_rows(record.summary, config)
        assert 'colspan="1"' in rows[0]

    def test_document_tax_label_wins(self):
        summary = InvoiceSummary(tax="€ 9,00", tax_label="VAT (9%)")
        config = RenderConfig(tax_message="BTW (9%)")

        assert resolve_tax_label(summary, config) == "VAT (9%)"
        assert "VAT (9%)" in build_summary_rows(summary, config)[0]

    def test_configured_tax_message_used_without_document_label(self):
        summary = InvoiceSummary(tax="€ 9,00")
        assert resolve_tax_label(summary, RenderConfig(tax_message="BTW (9%)")) == "BTW (9%)"

    def test_default_tax_message(self):
        summary = InvoiceSummary(tax="€ 9,00", tax_label="  ")
        assert resolve_tax_label(summary, RenderConfig(tax_message="")) == DEFAULT_TAX_MESSAGE

    def test_summary_values_escaped(self):
        rows = build_summary_rows(InvoiceSummary(total="<b>€ 1</b>"), RenderConfig())
        assert "&lt;b&gt;€ 1&lt;/b&gt;" in rows[0]


# ============================================================================
# Notes
# ============================================================================

class TestNotes:
    """Tests for the notes block."""

    def test_bank_block(self):
        config = RenderConfig(bank_account_name="Stichting", bic="ABNANL2A", btw_number="NL001B01")
        lines = build_notes_lines(config, IBAN)

        assert lines[:8] == [
            "",
            "",
            "IBAN: NL91ABNA0417164300",
            "Account name: Stichting",
            "BIC: ABNANL2A",
            "BTW number: NL001B01",
            "",
            "",
        ]

    def test_default_payment_request(self):
        lines = build_notes_lines(RenderConfig(), IbanConfig())

        assert lines[:3] == DEFAULT_PAYMENT_REQUEST
        assert lines[-3:] == ["With kind regards,", "", "Treasurer"]

    def test_custom_payment_request(self):
        config = RenderConfig(payment_request_text="Please pay\nwithin 14 days")
        lines = build_notes_lines(config, IBAN)

        assert "Please pay" in lines
        assert "within 14 days" in lines
        assert DEFAULT_PAYMENT_REQUEST[0] not in lines

    def test_payment_request_split_on_newlines_only(self):
        config = RenderConfig(payment_request_text="Line one\n\nLine\rthree\n")
        lines = build_notes_lines(config, IbanConfig())

        assert lines[:6] == ["Line one", "", "Line\rthree", "", "", "With kind regards,"]

    def test_treasurer_lines(self):
        config = RenderConfig(treasurer={"name": "J. Jansen", "title": "Penningmeester", "email": "t@example.org"})
        lines = build_notes_lines(config, IBAN)
        assert lines[-3:] == ["J. Jansen", "Penningmeester", "t@example.org"]

    def test_notes_escaped_and_joined(self, record):
        config = RenderConfig(treasurer={"name": "<Jan & Piet>"})
        html = render(record, config, IBAN)

        assert "&lt;Jan &amp; Piet&gt;" in html
        assert "IBAN: NL91ABNA0417164300<br />" in html


# ============================================================================
# Dates
# ============================================================================

class TestDates:
    """Tests for date rows and reformatting."""

    @pytest.mark.parametrize("value,fmt,expected", [
        ("2024-01-15", "%d/%m/%Y", "15/01/2024"),
        ("01/02/2024", "%Y-%m-%d", "2024-02-01"),
        ("01/13/2024", "%d/%m/%Y", "13/01/2024"),
        ("15-01-2024", "%d %b %Y", "15 Jan 2024"),
        ("  2024-01-15 ", "%d/%m/%Y", "15/01/2024"),
        ("15 Jan 2024", "%d/%m/%Y", "15 Jan 2024"),
        ("13/25/2024", "%d/%m/%Y", "13/25/2024"),
        ("", "%d/%m/%Y", ""),
        ("2024-01-15", "", "2024-01-15"),
    ])
    def test_format_date_string(self, value, fmt, expected):
        assert format_date_string(value, fmt) == expected

    def test_date_rows_formatted(self, record):
        config = RenderConfig(date_settings={"date_format": "%d-%m-%Y"})
        html = render(record, config, IBAN)

        assert '<td>Date:</td><td><div class="div-align-right">15-01-2024</div>' in html
        assert '<td>Due Date:</td><td><div class="div-align-right">15/02/2024</div>' in html

    def test_due_date_hidden(self, record):
        config = RenderConfig(date_settings={"show_due_date": False})
        html = render(record, config, IBAN)

        assert "Due Date:" not in html
        assert "<td>Date:</td>" in html

    def test_missing_date_not_rendered(self):
        html = render(InvoiceRecord(invoice_number="1"), RenderConfig(), IBAN)
        assert "<td>Date:</td>" not in html


# ============================================================================
# Banner
# ============================================================================

class TestBanner:
    """Tests for the banner block."""

    def test_no_banner(self, record):
        assert build_banner_html(RenderConfig()) == ""
        assert "<img" not in render(record, RenderConfig(), IBAN)

    def test_remote_banner_with_fallback(self):
        html = build_banner_html(RenderConfig(banner_path="https://example.org/banner.png"))

        assert 'src="https://example.org/banner.png"' in html
        assert "onerror=" in html
        assert "Banner not found: https://example.org/banner.png" in html

    def test_relative_banner_resolved_against_asset_base(self):
        config = RenderConfig(banner_path="./config/banner.png")

        assert 'src="config/banner.png"' in build_banner_html(config)
        assert 'src="assets/banner.png"' in build_banner_html(config, asset_base="assets")

    def test_banner_bytes_embedded(self):
        html = build_banner_html(RenderConfig(banner_path="banner.png"), PNG_BYTES)

        assert 'src="data:image/png;base64,' in html
        assert "onerror" not in html

    def test_banner_reference_string(self):
        html = build_banner_html(RenderConfig(), "data:image/png;base64,AAAA")
        assert 'src="data:image/png;base64,AAAA"' in html


# ============================================================================
# Whole Document
# ============================================================================

class TestRender:
    """Tests for complete documents."""

    def test_party_markup_embedded_verbatim(self, record):
        html = render(record, RenderConfig(), IBAN)

        assert '<div class="maybe-align-right client-name">Acme <b>B.V.</b></div>' in html
        assert "Main Street 1<br/>Enschede" in html

    def test_invoice_number_escaped(self):
        html = render(InvoiceRecord(invoice_number="<7>"), RenderConfig(), IBAN)
        assert 'Invoice #&lt;7&gt;' in html

    def test_page_title(self, record):
        assert page_title(record) == "Invoice INV-7 - Acme B.V."
        assert "<title>Invoice INV-7 - Acme B.V.</title>" in render(record, RenderConfig(), IBAN)

    def test_rendering_is_repeatable(self, record):
        config = RenderConfig(banner_path="banner.png")
        first = render(record, config, IBAN, PNG_BYTES)
        second = render(record, config, IBAN, PNG_BYTES)
        assert first == second

    def test_items_in_record_order(self, record):
        html = render(record, RenderConfig(), IBAN)
        assert html.index("Consulting") < html.index("Travel")

    def test_defaults_when_config_missing(self, record):
        html = render(record)

        assert "<th>Date</th><th>Description</th><th>Total</th>" in html
        assert DEFAULT_TAX_MESSAGE in html

    def test_mappings_accepted(self):
        html = render(
            {"invoice_number": "D-1", "items": [{"description": "Pens"}]},
            {"hideEmptyFields": True},
            {"iban": "NL91ABNA0417164300"},
        )

        assert "Invoice #D-1" in html
        assert "<td>Pens</td>" in html

    def test_extracted_record_renders(self, sample_html):
        html = render(extract(sample_html), RenderConfig(), IBAN)

        assert "Invoice #INV-2024-007" in html
        assert "Tax (9%)" in html
        assert "Travel expenses" in html


class TestRenderErrors:
    """Tests for inputs the renderer cannot work with."""

    @pytest.mark.parametrize("value", [None, "not a record", 42])
    def test_invalid_record(self, value):
        with pytest.raises(RenderStructuralError):
            render(value)

    def test_invalid_record_fields(self):
        with pytest.raises(RenderStructuralError):
            render({"items": "not a list"})

    def test_invalid_config(self, record):
        with pytest.raises(RenderStructuralError):
            render(record, {"hide_empty_fields": "sometimes"})

    def test_invalid_bank(self, record):
        with pytest.raises(RenderStructuralError):
            render(record, RenderConfig(), ["NL91"])
