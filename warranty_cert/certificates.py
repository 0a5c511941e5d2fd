"""
Warranty certificate generation workflow.

Coordinates one full cycle for an invoice: download the PDF, extract its
data, verify it belongs to the requested invoice, match the products with
the catalog, compose the certificate, save it to disk and record it.
"""

from datetime import date
from pathlib import Path
from typing import Optional

from dateutil import parser as date_parser

from .composer import CertificateComposer
from .config import DEFAULT_CLIENT_NAME, OUTPUT_DIR, logger
from .exceptions import ExtractionAmbiguityError, FetchError, NotFoundError, ValidationError
from .extractor import TextExtractor, extract_text_from_pdf_bytes, parse_invoice_pdf, verify_invoice_number
from .identifiers import require_identifier
from .matcher import match_products
from .schemas import (
    CertificateData,
    CertificateRecord,
    CertificateResult,
    DiagnosticReport,
    ExtractedInvoiceData,
    InvoiceIdentifier,
    ManualCertificateRequest,
    MatchedProduct,
)
from .smartbill import DocumentSource, Found, NotFound
from .storage import Catalog, CertificateRecordStore


def format_date(value: Optional[str]) -> str:
    """
    Normalize a date string to DD.MM.YYYY.

    Accepts ISO dates as well as day-first formats ("14.12.2024", "14/12/2024").
    """
    if not value:
        return ""
    value = value.strip()
    try:
        if len(value) >= 10 and value[4] == "-":
            parsed = date_parser.isoparse(value)
        else:
            parsed = date_parser.parse(value, dayfirst=True)
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"Invalid date: {value!r}") from e
    return parsed.strftime("%d.%m.%Y")


def today() -> str:
    return date.today().strftime("%d.%m.%Y")


class CertificateService:
    """
    Certificate generation for invoices.

    Args:
        source: Invoice PDF source (SmartBill)
        catalog: Product catalog lookup
        composer: Certificate template filler
        records: Store for generated certificate records
        output_dir: Directory receiving certificate PDFs
        text_extractor: PDF-to-text conversion
    """

    def __init__(
        self,
        source: DocumentSource,
        catalog: Catalog,
        composer: CertificateComposer,
        records: CertificateRecordStore,
        output_dir: Path = OUTPUT_DIR,
        text_extractor: TextExtractor = extract_text_from_pdf_bytes,
    ):
        self.source = source
        self.catalog = catalog
        self.composer = composer
        self.records = records
        self.output_dir = output_dir
        self.text_extractor = text_extractor

    # ------------------------------------------------------------------------
    # Fetch and extract
    # ------------------------------------------------------------------------

    def _download(self, identifier: InvoiceIdentifier) -> bytes:
        outcome = self.source.fetch_invoice_pdf(identifier.series, identifier.number)
        if isinstance(outcome, Found):
            return outcome.content
        if isinstance(outcome, NotFound):
            raise NotFoundError(f"Invoice {identifier} was not found: {outcome.detail}")
        raise FetchError(f"Could not download invoice {identifier}: {outcome.detail}")

    def _extract(self, identifier: InvoiceIdentifier) -> tuple[Optional[ExtractedInvoiceData], Optional[str]]:
        pdf_bytes = self._download(identifier)
        parse_result = parse_invoice_pdf(pdf_bytes, self.text_extractor)
        if not parse_result.success:
            return None, parse_result.error

        invoice_data = parse_result.data
        verify_invoice_number(identifier, invoice_data.invoice_number)
        return invoice_data, None

    # ------------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------------

    def _save(self, data: CertificateData, products: list[MatchedProduct]) -> tuple[Path, str]:
        composed = self.composer.compose(data)

        self.output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self.output_dir / composed.filename
        output_path.write_bytes(composed.content)
        logger.info(f"Certificate saved: {output_path}")

        self.records.save(CertificateRecord(
            invoice_number=data.invoice_number,
            invoice_date=data.invoice_date,
            client_name=data.client_name,
            is_vat_payer=data.is_vat_payer,
            products=products,
            marketplace_order_ref=data.marketplace_order_ref,
            output_path=str(output_path),
        ))
        return output_path, composed.filename

    def process_invoice(self, identifier: InvoiceIdentifier) -> CertificateResult:
        """
        Run one fetch, extract, match, compose cycle for an invoice.

        Returns:
            CertificateResult; success=False if the PDF could not be parsed,
            generated=False if the invoice has no configured products

        Raises:
            NotFoundError: If the invoice does not exist
            FetchError: If the download failed for another reason
            TemplateMissingError: If the certificate template is missing
        """
        invoice_number = str(identifier)
        logger.info(f"Processing invoice {invoice_number}")

        invoice_data, error = self._extract(identifier)
        if invoice_data is None:
            return CertificateResult(success=False, invoice_number=invoice_number, error=error)

        is_vat_payer = invoice_data.is_vat_payer
        matched = match_products(invoice_data.products, self.catalog, is_vat_payer)
        active = [p for p in matched if p.matched]
        unmatched = [p for p in matched if not p.matched]

        if not active:
            logger.info(f"Invoice {invoice_number} has no configured warranty products")
            return CertificateResult(
                success=True,
                generated=False,
                invoice_number=invoice_number,
                message="The invoice contains no products configured in the catalog",
                extracted_products=invoice_data.products,
                unmatched_products=unmatched,
            )

        data = CertificateData(
            client_name=invoice_data.client_name or DEFAULT_CLIENT_NAME,
            invoice_number=invoice_number,
            invoice_date=invoice_data.invoice_date or today(),
            products=active,
            min_voltage=active[0].min_voltage or "",
            is_vat_payer=is_vat_payer,
            marketplace_order_ref=invoice_data.marketplace_order_ref,
        )
        output_path, filename = self._save(data, active)

        return CertificateResult(
            success=True,
            generated=True,
            invoice_number=invoice_number,
            client_name=data.client_name,
            client_type="PJ" if is_vat_payer else "PF",
            invoice_date=data.invoice_date,
            products=active,
            output_path=str(output_path),
            filename=filename,
            marketplace_order_ref=data.marketplace_order_ref,
            extracted_products=invoice_data.products,
            unmatched_products=unmatched,
        )

    def generate_single_certificate(self, raw_identifier: str) -> CertificateResult:
        """
        Generate the certificate for one invoice identified by a user string.

        Raises:
            ValidationError: If the identifier cannot be parsed
            TemplateMissingError: If the certificate template is missing
        """
        identifier = require_identifier(raw_identifier)
        try:
            return self.process_invoice(identifier)
        except (NotFoundError, FetchError) as e:
            logger.error(f"Invoice {identifier}: {e}")
            return CertificateResult(success=False, invoice_number=str(identifier), error=str(e))

    def generate_manual_certificate(self, request: ManualCertificateRequest) -> CertificateResult:
        """Generate a certificate from manually entered data."""
        if not request.products:
            return CertificateResult(
                success=False,
                invoice_number=request.invoice_number,
                error="Select at least one product",
            )

        products = [
            MatchedProduct(
                code=p.code,
                name=p.name,
                warranty_months=p.warranty_months,
                quantity=p.quantity,
                matched=True,
            )
            for p in request.products
        ]
        data = CertificateData(
            client_name=request.client_name,
            invoice_number=request.invoice_number,
            invoice_date=format_date(request.invoice_date),
            products=products,
            min_voltage=request.min_voltage or "",
            is_vat_payer=request.is_vat_payer,
        )
        output_path, filename = self._save(data, products)

        return CertificateResult(
            success=True,
            generated=True,
            invoice_number=data.invoice_number,
            client_name=data.client_name,
            client_type="PJ" if data.is_vat_payer else "PF",
            invoice_date=data.invoice_date,
            products=products,
            output_path=str(output_path),
            filename=filename,
        )

    # ------------------------------------------------------------------------
    # Diagnostics and history
    # ------------------------------------------------------------------------

    def diagnose(self, raw_identifier: str) -> DiagnosticReport:
        """
        Extract and match an invoice without generating anything.

        Raises:
            ValidationError: If the identifier cannot be parsed
            NotFoundError: If the invoice does not exist
            FetchError: If the download failed
            ExtractionAmbiguityError: If the PDF could not be parsed
        """
        identifier = require_identifier(raw_identifier)
        pdf_bytes = self._download(identifier)
        parse_result = parse_invoice_pdf(pdf_bytes, self.text_extractor)
        if not parse_result.success:
            raise ExtractionAmbiguityError(parse_result.error)

        parsed = parse_result.data
        matched = match_products(parsed.products, self.catalog, parsed.is_vat_payer)
        lookup = {p.code: self.catalog.get_by_code(p.code) for p in parsed.products}

        return DiagnosticReport(
            invoice_number=str(identifier),
            parsed=parsed.model_copy(update={"raw_text": ""}),
            matched_products=matched,
            catalog_lookup=lookup,
            raw_text_preview=parsed.raw_text[:2000],
        )

    def history(self, limit: int = 100, offset: int = 0) -> list[CertificateRecord]:
        return self.records.history(limit=limit, offset=offset)
