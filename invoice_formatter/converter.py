"""
Batch conversion of source invoices into formatted HTML and PDF files.

This module feeds each source document through extraction, rendering and
rasterization, names the outputs after the invoice, applies the overwrite
policy and hands the results to an output sink. Documents are processed
one at a time; a failing document is counted and the batch continues.
"""

import os
import re
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Optional, Protocol, Union

from markupsafe import Markup

from .config import (
    ASSET_DIR_NAME,
    HTML_OUTPUT_SUFFIX,
    SOURCE_SUFFIXES,
    UNKNOWN_CLIENT,
    UNKNOWN_INVOICE,
    logger,
)
from .exceptions import (
    MissingIbanError,
    ParseError,
    RasterizationFailure,
    RenderStructuralError,
    RenderUnavailable,
)
from .extractor import collapse_ws, extract
from .rasterizer import Rasterizer
from .renderer import BannerAsset, render
from .schemas import (
    ConversionOptions,
    ConversionResult,
    ConvertedDocument,
    IbanConfig,
    InvoiceRecord,
    RenderConfig,
    SourceDocument,
)


# ============================================================================
# Output Names
# ============================================================================

def sanitize_filename_token(value: str, fallback: str) -> str:
    """
    Make a value safe for use in a file name.

    Whitespace runs become ``_`` and runs of any other character outside
    ``[A-Za-z0-9_.-]`` become ``-``. Empty values yield ``fallback``.
    """
    token = re.sub(r"\s+", "_", value.strip())
    token = re.sub(r"[^A-Za-z0-9_.\-]+", "-", token)
    return token or fallback


def client_display_name(record: InvoiceRecord) -> str:
    """Client name as plain text, with markup removed."""
    return collapse_ws(Markup(record.client_name_markup).striptags())


def build_output_basename(record: InvoiceRecord) -> str:
    """``Invoice-{invoice number}-{client name}``, both sanitized."""
    invoice = sanitize_filename_token(record.invoice_number, UNKNOWN_INVOICE)
    client = sanitize_filename_token(client_display_name(record), UNKNOWN_CLIENT)
    return f"Invoice-{invoice}-{client}"


def build_output_filename(record: InvoiceRecord, ext: str, suffix: Optional[str] = None) -> str:
    """Output file name for a record, e.g. ``Invoice-7-Acme-improved.html``."""
    name = build_output_basename(record)
    if suffix:
        name = f"{name}-{suffix}"
    return f"{name}.{ext}"


# ============================================================================
# Output Sinks
# ============================================================================

class OutputSink(Protocol):
    """Destination for converted files, keyed by file name."""

    def existing_names(self) -> set[str]:
        ...

    def write(self, name: str, data: Union[str, bytes]) -> None:
        ...

    def remove(self, name: str) -> None:
        ...


class FolderSink:
    """Writes outputs into a directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def existing_names(self) -> set[str]:
        if not self.directory.exists():
            return set()
        return {p.name for p in self.directory.iterdir() if p.is_file()}

    def write(self, name: str, data: Union[str, bytes]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.directory / name
        partial = self.directory / f".{name}.part"

        payload = data.encode("utf-8") if isinstance(data, str) else data
        try:
            partial.write_bytes(payload)
            os.replace(partial, target)
        except OSError:
            partial.unlink(missing_ok=True)
            raise
        logger.debug(f"Wrote {target} ({len(payload)} bytes)")

    def remove(self, name: str) -> None:
        (self.directory / name).unlink(missing_ok=True)


class MemorySink:
    """Keeps outputs in memory, e.g. for previews and tests."""

    def __init__(self, files: Optional[dict[str, Union[str, bytes]]] = None):
        self.files: dict[str, Union[str, bytes]] = dict(files or {})

    def existing_names(self) -> set[str]:
        return set(self.files)

    def write(self, name: str, data: Union[str, bytes]) -> None:
        self.files[name] = data

    def remove(self, name: str) -> None:
        self.files.pop(name, None)


# ============================================================================
# Conversion
# ============================================================================

def load_documents(input_dir: Path) -> list[SourceDocument]:
    """Read every source invoice (``.html``/``.htm``) of a directory, in file name order."""
    if not input_dir.exists():
        raise FileNotFoundError(f"Directory not found: {input_dir}")

    paths = sorted(
        (p for p in input_dir.iterdir() if p.is_file() and p.suffix.lower() in SOURCE_SUFFIXES),
        key=lambda p: p.name,
    )
    if not paths:
        logger.warning(f"No HTML files found in: {input_dir}")

    return [
        SourceDocument(name=p.name, content=p.read_text(encoding="utf-8", errors="replace"))
        for p in paths
    ]


def convert_document(
    document: SourceDocument,
    config: RenderConfig,
    iban: IbanConfig,
    rasterizer: Optional[Rasterizer] = None,
    banner_asset: BannerAsset = None,
    asset_base: str = ASSET_DIR_NAME,
) -> ConvertedDocument:
    """
    Extract and render one document, and rasterize it when a rasterizer is given.

    Nothing is written. An edited record attached to the document is used
    instead of extracting its content.

    Raises:
        ParseError: If the document content is not markup
        RenderStructuralError: If the record cannot be rendered
        RasterizationFailure: If rasterization was requested and failed
    """
    record = document.record if document.record is not None else extract(document.content)

    if not record.invoice_number:
        logger.warning(f"Could not extract invoice number from {document.name}")

    html = render(record, config, iban, banner_asset, asset_base=asset_base)
    pdf = rasterizer.rasterize(html) if rasterizer is not None else None

    return ConvertedDocument(
        source_name=document.name,
        basename=build_output_basename(record),
        record=record,
        html=html,
        pdf=pdf,
    )


def _claim_name(name: str, known_names: set[str], overwrite: bool) -> bool:
    if name in known_names and not overwrite:
        logger.info(f"Skipping {name} - already exists (overwrite disabled)")
        return False
    known_names.add(name)
    return True


def _release_name(name: str, known_names: set[str], existing_names: set[str]) -> None:
    if name not in existing_names:
        known_names.discard(name)


def _discard_outputs(sink: OutputSink, names: list[str]) -> None:
    for name in names:
        try:
            sink.remove(name)
        except OSError as e:
            logger.warning(f"Could not remove partial output {name}: {e}")


def _record_failure(result: ConversionResult, source_name: str, error: Exception) -> None:
    result.errors += 1
    result.failures[source_name] = str(error)


def convert_batch(
    documents: Iterable[SourceDocument],
    config: RenderConfig,
    iban: IbanConfig,
    sink: OutputSink,
    options: Optional[ConversionOptions] = None,
    rasterizer: Optional[Rasterizer] = None,
    banner_asset: BannerAsset = None,
    should_stop: Optional[Callable[[], bool]] = None,
    asset_base: str = ASSET_DIR_NAME,
) -> ConversionResult:
    """
    Convert a batch of source documents, strictly one after another.

    Output names already present in the sink, or produced earlier in this
    batch, are skipped unless ``options.overwrite`` is set. Any error in one
    document is counted and the batch moves on. A failed document leaves no
    outputs behind, except that when rasterization fails the HTML output, if
    kept, stays written. Names of outputs that were not written are freed for
    later documents in the batch.

    Args:
        documents: Source documents to convert
        config: Render configuration shared by the whole batch
        iban: IBAN configuration; must be filled in
        sink: Destination for the output files
        options: Conversion switches
        rasterizer: PDF rasterizer, required when PDFs are generated
        banner_asset: Resolved banner image, if any
        should_stop: Checked between documents; True ends the batch early

    Returns:
        ConversionResult with counts and written file names

    Raises:
        MissingIbanError: If no IBAN is configured
        RenderUnavailable: If PDFs are requested without a rasterizer
    """
    options = options or ConversionOptions()

    if not iban.is_configured:
        raise MissingIbanError()
    if options.generate_pdf and rasterizer is None:
        raise RenderUnavailable("PDF generation requested but no rasterizer is available")

    documents = list(documents)
    logger.info(f"Converting batch of {len(documents)} documents")

    result = ConversionResult(total_documents=len(documents))
    existing_names = set(sink.existing_names())
    known_names = set(existing_names)

    for index, document in enumerate(documents, start=1):
        if should_stop is not None and should_stop():
            logger.info(f"Conversion stopped before {document.name}")
            result.stopped = True
            break

        logger.info(f"Processing {document.name} ({index}/{len(documents)})")

        try:
            converted = convert_document(
                document, config, iban, banner_asset=banner_asset, asset_base=asset_base
            )
        except (ParseError, RenderStructuralError) as e:
            logger.error(f"Failed to convert {document.name}: {e}")
            _record_failure(result, document.name, e)
            continue
        except Exception as e:
            logger.exception(f"Unexpected error converting {document.name}")
            _record_failure(result, document.name, e)
            continue

        html_name = pdf_name = None
        if options.keep_html:
            name = build_output_filename(converted.record, "html", HTML_OUTPUT_SUFFIX)
            if _claim_name(name, known_names, options.overwrite):
                html_name = name
        if options.generate_pdf:
            name = build_output_filename(converted.record, "pdf")
            if _claim_name(name, known_names, options.overwrite):
                pdf_name = name

        if (options.keep_html or options.generate_pdf) and html_name is None and pdf_name is None:
            result.skipped += 1
            continue

        pdf = None
        pdf_error: Optional[Exception] = None
        if pdf_name is not None:
            try:
                pdf = rasterizer.rasterize(converted.html)
            except RasterizationFailure as e:
                logger.error(f"Failed to generate PDF for {document.name}: {e}")
                pdf_error = e
            except Exception as e:
                logger.exception(f"Unexpected error generating PDF for {document.name}")
                pdf_error = e
            if pdf_error is not None:
                _release_name(pdf_name, known_names, existing_names)
                pdf_name = None

        written: list[str] = []
        try:
            if html_name is not None:
                sink.write(html_name, converted.html)
                written.append(html_name)
            if pdf_name is not None:
                sink.write(pdf_name, pdf)
                written.append(pdf_name)
        except Exception as e:
            if isinstance(e, OSError):
                logger.error(f"Failed to write output for {document.name}: {e}")
            else:
                logger.exception(f"Unexpected error writing output for {document.name}")
            _discard_outputs(sink, written)
            for name in (html_name, pdf_name):
                if name is not None:
                    _release_name(name, known_names, existing_names)
            _record_failure(result, document.name, e)
            continue

        result.written.extend(written)

        # The HTML of a document whose PDF failed stays written
        if pdf_error is not None:
            _record_failure(result, document.name, pdf_error)
            continue

        result.converted += 1
        logger.debug(f"Converted {document.name} -> {converted.basename} ({len(written)} files)")

    logger.info(f"Conversion complete. {result.converted} converted, {result.errors} errors.")
    return result


def format_result_text(result: ConversionResult) -> str:
    """
    Format a ConversionResult as human-readable text for CLI output.
    """
    lines = [
        "=" * 50,
        "CONVERSION SUMMARY",
        "=" * 50,
        f"Documents in batch: {result.total_documents}",
        f"Converted:          {result.converted}",
        f"Errors:             {result.errors}",
        f"Skipped:            {result.skipped}",
        "",
    ]

    if result.stopped:
        lines.append("Batch was stopped before all documents were processed.")
        lines.append("")

    if result.failures:
        lines.append("Failed Documents:")
        lines.append("-" * 40)
        for name, message in result.failures.items():
            lines.append(f"  {name}: {message}")
        lines.append("")

    lines.append(f"{result.converted} converted, {result.errors} errors")
    return "\n".join(lines)
