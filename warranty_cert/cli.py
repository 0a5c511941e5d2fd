"""
Command-line interface for the Warranty Certificate Service.

Commands:
- extract: Extract invoice data from a local PDF to JSON
- generate: Generate the certificate for one SmartBill invoice
- manual: Generate a certificate from a JSON request file
- discover: Find new invoices after the checkpoint and generate their certificates
- checkpoint: Show or set the last processed invoice
- diagnose: Show what is extracted and matched for one invoice
- history: List generated certificates
"""

import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError as SchemaValidationError

from .certificates import CertificateService
from .composer import CertificateComposer
from .config import CATALOG_FILE, CERTIFICATE_RECORDS_FILE, CHECKPOINT_FILE, OUTPUT_DIR, logger
from .discovery import DiscoveryDriver
from .exceptions import WarrantyCertError
from .extractor import extract_invoice_from_file
from .identifiers import require_identifier
from .rate_limit import RateLimitGate
from .schemas import CertificateResult, ManualCertificateRequest
from .smartbill import SmartBillClient
from .storage import JsonCatalog, JsonCheckpointStore, JsonlCertificateRecordStore


# Create Typer app
app = typer.Typer(
    name="warranty-cert",
    help="Warranty certificate generator for SmartBill invoices",
    add_completion=False,
)


def build_service(output_dir: Path = OUTPUT_DIR) -> CertificateService:
    """Wire the service with one rate-limit gate for every SmartBill request."""
    gate = RateLimitGate()
    return CertificateService(
        source=SmartBillClient(gate=gate),
        catalog=JsonCatalog(CATALOG_FILE),
        composer=CertificateComposer(),
        records=JsonlCertificateRecordStore(CERTIFICATE_RECORDS_FILE),
        output_dir=output_dir,
    )


def _echo_result(result: CertificateResult) -> None:
    if not result.success:
        typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(code=1)

    if not result.generated:
        typer.echo(f"{result.invoice_number}: {result.message}")
        for p in result.extracted_products:
            typer.echo(f"  - {p.name}")
        return

    typer.echo(f"\n[OK] Certificate saved to: {result.output_path}")
    typer.echo(f"  Client: {result.client_name} ({result.client_type})")
    typer.echo(f"  Invoice: {result.invoice_number} / {result.invoice_date}")
    for p in result.products:
        typer.echo(f"  - {p.name} | {p.warranty_months} months")
    for p in result.unmatched_products:
        typer.echo(f"  ! {p.name}: {p.reason}")


@app.command()
def extract(
    pdf: Path = typer.Option(
        ...,
        "--pdf",
        "-p",
        help="Invoice PDF file",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the extracted data to this JSON file instead of stdout",
    ),
) -> None:
    """
    Extract invoice data from a local PDF file.
    """
    result = extract_invoice_from_file(pdf)
    if not result.success:
        typer.echo(f"Error: {result.error}", err=True)
        raise typer.Exit(code=1)

    payload = result.data.model_dump(exclude={"raw_text"})
    if output:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        typer.echo(f"[OK] Extracted invoice {result.data.invoice_number} to: {output}")
    else:
        typer.echo(json.dumps(payload, indent=2, ensure_ascii=False))


@app.command()
def generate(
    invoice: str = typer.Argument(..., help="Invoice identifier, e.g. PK202124601 or 24601"),
    output_dir: Path = typer.Option(OUTPUT_DIR, "--output-dir", "-o", help="Certificate output directory"),
) -> None:
    """
    Generate the warranty certificate for one invoice.
    """
    try:
        result = build_service(output_dir).generate_single_certificate(invoice)
    except (WarrantyCertError, FileNotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    _echo_result(result)


@app.command()
def manual(
    input_file: Path = typer.Option(
        ...,
        "--input",
        "-i",
        help="JSON file with the certificate request",
        exists=True,
        file_okay=True,
        dir_okay=False,
        resolve_path=True,
    ),
    output_dir: Path = typer.Option(OUTPUT_DIR, "--output-dir", "-o", help="Certificate output directory"),
) -> None:
    """
    Generate a certificate from manually entered data.
    """
    try:
        with open(input_file, "r", encoding="utf-8") as f:
            request = ManualCertificateRequest.model_validate(json.load(f))
    except json.JSONDecodeError as e:
        typer.echo(f"Error: Invalid JSON in input file: {e}", err=True)
        raise typer.Exit(code=1)
    except SchemaValidationError as e:
        typer.echo(f"Error: Invalid certificate request: {e}", err=True)
        raise typer.Exit(code=1)

    try:
        result = build_service(output_dir).generate_manual_certificate(request)
    except (WarrantyCertError, FileNotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    _echo_result(result)


@app.command()
def discover(
    max_attempts: Optional[int] = typer.Option(
        None,
        "--max-attempts",
        "-n",
        min=1,
        help="Invoice numbers to probe after the checkpoint",
    ),
    output_dir: Path = typer.Option(OUTPUT_DIR, "--output-dir", "-o", help="Certificate output directory"),
) -> None:
    """
    Find invoices issued after the checkpoint and generate their certificates.
    """
    try:
        driver = DiscoveryDriver(build_service(output_dir), JsonCheckpointStore(CHECKPOINT_FILE))
        run = driver.run(max_attempts=max_attempts)
    except (WarrantyCertError, FileNotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    except Exception as e:
        typer.echo(f"Error during discovery: {e}", err=True)
        logger.exception("Discovery failed")
        raise typer.Exit(code=1)

    totals = run.totals
    typer.echo(f"\nSearched: {run.searched_range or '-'}")
    typer.echo(f"  Attempted:  {totals.attempted}")
    typer.echo(f"  Existed:    {totals.existed}")
    typer.echo(f"  Generated:  {totals.generated}")
    typer.echo(f"  Skipped:    {totals.skipped_no_active_products}")
    typer.echo(f"  Not found:  {totals.not_found}")
    typer.echo(f"  Checkpoint: {run.last_confirmed_identifier}")

    for cert in run.generated_certificates:
        typer.echo(f"  [OK] {cert.invoice_number} | {cert.client_name} | {cert.filename}")
    if run.errors:
        typer.echo("\nErrors:")
        for err in run.errors:
            typer.echo(f"  {err.invoice_number}: {err.error}")


@app.command()
def checkpoint(
    set_to: Optional[str] = typer.Option(
        None,
        "--set",
        "-s",
        help="New last processed invoice, e.g. PK202124575",
    ),
) -> None:
    """
    Show or set the last processed invoice.
    """
    store = JsonCheckpointStore(CHECKPOINT_FILE)
    if set_to is None:
        current = store.get()
        typer.echo(current or "No last processed invoice configured")
        return

    try:
        identifier = require_identifier(set_to)
    except WarrantyCertError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    store.set(str(identifier))
    typer.echo(f"[OK] Last processed invoice set to: {identifier}")


@app.command()
def diagnose(
    invoice: str = typer.Argument(..., help="Invoice identifier"),
) -> None:
    """
    Show the data extracted from an invoice and how its products match the catalog.
    """
    try:
        report = build_service().diagnose(invoice)
    except (WarrantyCertError, FileNotFoundError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(report.model_dump_json(indent=2))


@app.command()
def history(
    limit: int = typer.Option(20, "--limit", "-l", min=1, help="Number of records"),
    offset: int = typer.Option(0, "--offset", min=0, help="Records to skip"),
) -> None:
    """
    List generated certificates, newest first.
    """
    records = JsonlCertificateRecordStore(CERTIFICATE_RECORDS_FILE).history(limit=limit, offset=offset)
    if not records:
        typer.echo("No certificates generated yet.")
        return
    for r in records:
        client_type = "PJ" if r.is_vat_payer else "PF"
        typer.echo(
            f"  {r.created_at:%Y-%m-%d %H:%M} | {r.invoice_number} | {r.client_name} ({client_type}) "
            f"| {len(r.products)} product(s)"
        )


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    typer.echo(f"Warranty Certificate Service v{__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
