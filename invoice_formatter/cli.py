"""
Command-line interface for the Invoice Formatter.

Provides the following commands:
- init: Create a project folder with input/, output/ and config/
- extract: Extract source invoices to an editable JSON file
- render: Render records from such a JSON file to HTML
- convert: Extract, render and rasterize a whole project in one step
- set-iban: Store the IBAN required for conversion
"""

from pathlib import Path

import typer

from .assets import load_banner
from .config import (
    ASSET_DIR_NAME,
    CONFIG_FILE_NAME,
    HTML_OUTPUT_SUFFIX,
    INPUT_DIR_NAME,
    OUTPUT_DIR_NAME,
    logger,
)
from .converter import (
    FolderSink,
    build_output_filename,
    convert_batch,
    format_result_text,
    load_documents,
)
from .exceptions import ConfigurationError, InvoiceFormatterError
from .extractor import extract_invoices_from_dir, load_records, write_extracted_records
from .rasterizer import WeasyPrintRasterizer
from .renderer import render
from .schemas import ConversionOptions, IbanConfig, RenderConfig
from .settings import load_iban_config, load_render_config, save_iban_config, save_render_config


# Create Typer app
app = typer.Typer(
    name="invoice-formatter",
    help="Reformat invoice HTML exports into standardized HTML/PDF invoices",
    add_completion=False,
)


def _load_settings(config_dir: Path) -> tuple[RenderConfig, IbanConfig]:
    try:
        return load_render_config(config_dir), load_iban_config(config_dir)
    except ConfigurationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)


def _require_iban(iban: IbanConfig, config_dir: Path) -> None:
    if not iban.is_configured:
        typer.echo(
            f"Error: IBAN is not configured. Run 'invoice-formatter set-iban --config-dir {config_dir} <IBAN>' first.",
            err=True,
        )
        raise typer.Exit(code=1)


@app.command()
def init(
    project: Path = typer.Option(
        ...,
        "--project",
        "-p",
        help="Project folder to create",
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
) -> None:
    """
    Create the project folder structure and a default config.yml.

    Existing folders and an existing config.yml are left untouched.
    """
    for sub in (INPUT_DIR_NAME, OUTPUT_DIR_NAME, ASSET_DIR_NAME):
        (project / sub).mkdir(parents=True, exist_ok=True)

    config_dir = project / ASSET_DIR_NAME
    if not (config_dir / CONFIG_FILE_NAME).exists():
        save_render_config(config_dir, RenderConfig())

    typer.echo(f"[OK] Project ready at: {project}")
    typer.echo(f"  Put source invoices in: {project / INPUT_DIR_NAME}")


@app.command()
def extract(
    input_dir: Path = typer.Option(
        ...,
        "--input-dir",
        "-i",
        help="Directory containing source invoice HTML files",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    output: Path = typer.Option(
        "extracted_invoices.json",
        "--output",
        "-o",
        help="Output JSON file path",
    ),
) -> None:
    """
    Extract source invoices to JSON.

    The JSON file can be edited and rendered with the render command.
    """
    typer.echo(f"Extracting invoices from: {input_dir}")

    records = extract_invoices_from_dir(input_dir)
    if not records:
        typer.echo("No invoices were extracted.", err=True)
        raise typer.Exit(code=1)

    write_extracted_records(records, output)

    typer.echo(f"\n[OK] Extracted {len(records)} invoice(s) to: {output}")
    typer.echo("\nExtracted invoices:")
    for name, record in list(records.items())[:10]:  # Show first 10
        typer.echo(f"  - {name} | {record.invoice_number or '?'} | {len(record.items)} items")
    if len(records) > 10:
        typer.echo(f"  ... and {len(records) - 10} more")


@app.command("render")
def render_records(
    records_file: Path = typer.Option(
        ...,
        "--records",
        "-r",
        help="JSON file written by the extract command",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    config_dir: Path = typer.Option(
        ...,
        "--config-dir",
        "-c",
        help="Directory containing config.yml, iban.yml and the banner",
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    output_dir: Path = typer.Option(
        ...,
        "--output-dir",
        "-o",
        help="Directory to write the rendered HTML files to",
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
) -> None:
    """
    Render extracted (and possibly edited) records to HTML.
    """
    config, iban = _load_settings(config_dir)
    _require_iban(iban, config_dir)

    try:
        records = load_records(records_file)
    except ValueError as e:
        typer.echo(f"Error: Invalid records file: {e}", err=True)
        raise typer.Exit(code=1)

    banner = load_banner(config.banner_path, config_dir)
    sink = FolderSink(output_dir)

    for name, record in records.items():
        try:
            html = render(record, config, iban, banner)
        except InvoiceFormatterError as e:
            typer.echo(f"  ! {name}: {e}", err=True)
            continue
        filename = build_output_filename(record, "html", HTML_OUTPUT_SUFFIX)
        sink.write(filename, html)
        typer.echo(f"  - {name} -> {filename}")

    typer.echo(f"\n[OK] Rendered files saved to: {output_dir}")


@app.command()
def convert(
    project: Path = typer.Option(
        ...,
        "--project",
        "-p",
        help="Project folder with input/, output/ and config/",
        exists=True,
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
    overwrite: bool = typer.Option(
        False,
        "--overwrite",
        help="Replace output files that already exist",
    ),
    keep_html: bool = typer.Option(
        True,
        "--keep-html/--no-keep-html",
        help="Also save the rendered HTML next to the PDF",
    ),
    pdf: bool = typer.Option(
        True,
        "--pdf/--no-pdf",
        help="Generate PDF files (requires the 'pdf' extra)",
    ),
    fail_on_error: bool = typer.Option(
        False,
        "--fail-on-error",
        help="Exit with non-zero status if any document failed",
    ),
) -> None:
    """
    Convert every source invoice of a project.

    Documents are processed one at a time; a failing document is reported
    and the rest of the batch still runs.
    """
    config_dir = project / ASSET_DIR_NAME
    config, iban = _load_settings(config_dir)
    _require_iban(iban, config_dir)

    try:
        documents = load_documents(project / INPUT_DIR_NAME)
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)

    if not documents:
        typer.echo("No source invoices found.", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Converting {len(documents)} invoice(s) from: {project / INPUT_DIR_NAME}")

    options = ConversionOptions(keep_html=keep_html, generate_pdf=pdf, overwrite=overwrite)
    rasterizer = WeasyPrintRasterizer(base_url=project) if pdf else None

    try:
        result = convert_batch(
            documents,
            config,
            iban,
            FolderSink(project / OUTPUT_DIR_NAME),
            options=options,
            rasterizer=rasterizer,
            banner_asset=load_banner(config.banner_path, config_dir),
        )
    except InvoiceFormatterError as e:
        typer.echo(f"Error: {e}", err=True)
        logger.exception("Conversion failed")
        raise typer.Exit(code=1)
    except Exception as e:
        typer.echo(f"Error during conversion: {e}", err=True)
        logger.exception("Conversion failed")
        raise typer.Exit(code=1)

    typer.echo("\n" + format_result_text(result))

    if fail_on_error and result.errors > 0:
        raise typer.Exit(code=1)


@app.command("set-iban")
def set_iban(
    iban: str = typer.Argument(..., help="IBAN to print in the notes of every invoice"),
    config_dir: Path = typer.Option(
        ...,
        "--config-dir",
        "-c",
        help="Directory to write iban.yml to",
        file_okay=False,
        dir_okay=True,
        resolve_path=True,
    ),
) -> None:
    """Store the IBAN in iban.yml."""
    if not iban.strip():
        typer.echo("Error: IBAN must not be empty.", err=True)
        raise typer.Exit(code=1)

    save_iban_config(config_dir, iban)
    typer.echo(f"[OK] IBAN saved to: {config_dir}")


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    typer.echo(f"Invoice Formatter v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
