"""
PDF rasterization of rendered invoices.

The converter only depends on the ``Rasterizer`` protocol. The bundled
implementation uses WeasyPrint, installed with the ``pdf`` extra.
"""

from pathlib import Path
from typing import Optional, Protocol, Union

from .config import logger
from .exceptions import RasterizationFailure, RenderUnavailable


class Rasterizer(Protocol):
    """Turns a rendered HTML document into PDF bytes."""

    def rasterize(self, html: str) -> bytes:
        """
        Raises:
            RasterizationFailure: Or one of its subclasses on failure
        """
        ...


class WeasyPrintRasterizer:
    """
    Rasterizer backed by WeasyPrint.

    Attributes:
        base_url: Location relative references (e.g. banner images) resolve against
    """

    def __init__(self, base_url: Optional[Union[str, Path]] = None):
        self.base_url = str(base_url) if base_url is not None else None
        self._html_class = None

    def _load(self):
        if self._html_class is None:
            try:
                from weasyprint import HTML
            except ImportError as e:
                raise RenderUnavailable(
                    "WeasyPrint is not installed; install the 'pdf' extra",
                    {"reason": str(e)},
                ) from e
            self._html_class = HTML
        return self._html_class

    def rasterize(self, html: str) -> bytes:
        html_class = self._load()
        try:
            pdf = html_class(string=html, base_url=self.base_url).write_pdf()
        except Exception as e:
            logger.error(f"PDF rendering failed: {e}")
            raise RasterizationFailure(f"PDF rendering failed: {e}") from e

        if not pdf:
            raise RasterizationFailure("PDF renderer returned no output")
        return pdf
