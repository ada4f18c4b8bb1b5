"""
Shared fixtures: a source invoice as exported by the invoicing tool.
"""

import pytest


SAMPLE_INVOICE_HTML = """<!DOCTYPE html>
<html>
<head><title>Invoice</title></head>
<body>
<table>
  <tr><td colspan="2"><div class="invoice-title">Invoice #INV-2024-007</div></td></tr>
  <tr><td>Date:</td><td>01/02/2024</td></tr>
  <tr><td>Due Date:</td><td>  15/02/2024
  </td></tr>
</table>
<div class="client-name">Acme <b>B.V.</b></div>
<div class="client-address">Main Street 1<br>7500 AA Enschede</div>
<div class="company-name">Stichting Studiereis</div>
<div class="company-address">Drienerlolaan 5</div>
<div class="entries-table">
  <table>
    <thead>
      <tr><th>Date</th><th>Description</th><th>Total</th></tr>
    </thead>
    <tbody>
      <tr><td>01/02/2024</td><td>Consulting</td><td>€ 100,00</td></tr>
      <tr><td>02/02/2024</td><td>Travel   expenses</td><td>€ 25,50</td></tr>
      <tr><td></td><td></td><td></td></tr>
      <tr><td>Subtotal</td><td>€ 125,50</td></tr>
      <tr><td>Tax (9%)</td><td>€ 11,30</td></tr>
      <tr><td>Total Price</td><td>€ 136,80</td></tr>
      <tr><td>Amount Due</td><td>€ 136,80</td></tr>
    </tbody>
  </table>
</div>
</body>
</html>
"""


@pytest.fixture
def sample_html() -> str:
    """A complete source invoice."""
    return SAMPLE_INVOICE_HTML
