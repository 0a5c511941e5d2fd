"""
Pydantic models for invoice data, catalog entries and certificate results.

This module defines the core data structures used throughout the Warranty Certificate Service:
- InvoiceIdentifier for canonical (series, number) pairs
- ExtractedInvoiceData and ProductLineItem for data recovered from invoice text
- CatalogProduct and MatchedProduct for catalog reconciliation
- CertificateData, CertificateRecord and CertificateResult for certificate generation
- DiscoveryRun for the summary of a sequential discovery run
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .config import MAX_CERTIFICATE_PRODUCTS


class InvoiceIdentifier(BaseModel):
    """
    Canonical invoice identifier.

    Attributes:
        series: Uppercase series letters, optionally followed by a 4-digit year (e.g. "PK2021")
        number: Numeric part exactly as written, leading zeros preserved
    """
    model_config = ConfigDict(frozen=True)

    series: str = Field(..., min_length=1, description="Invoice series, e.g. PK or PK2021")
    number: str = Field(..., pattern=r"^\d+$", description="Numeric invoice number")

    def __str__(self) -> str:
        return f"{self.series}{self.number}"

    def next(self, offset: int) -> "InvoiceIdentifier":
        """Identifier `offset` positions after this one in the same series."""
        candidate = str(int(self.number) + offset).zfill(len(self.number))
        return InvoiceIdentifier(series=self.series, number=candidate)


class ProductLineItem(BaseModel):
    """
    A product line recovered from invoice text.

    The code is a best-effort guess (catalog code or EAN), not authoritative.
    """
    model_config = ConfigDict(frozen=True)

    code: str = Field(..., description="Guessed catalog code or EAN")
    name: str = Field(..., min_length=1, description="Full product description")
    quantity: int = Field(1, ge=1, description="Number of units")


class ExtractedInvoiceData(BaseModel):
    """
    Structured data recovered from one invoice document.

    Every field except the flags may be None when the text did not contain it.
    """
    model_config = ConfigDict(frozen=True)

    invoice_number: Optional[str] = None
    invoice_date: Optional[str] = Field(None, description="Issue date formatted DD.MM.YYYY")
    client_name: Optional[str] = None
    client_tax_id: Optional[str] = None
    is_vat_payer: bool = False
    products: list[ProductLineItem] = Field(default_factory=list)
    total_value: Optional[float] = None
    marketplace_order_ref: Optional[str] = None
    raw_text: str = ""


class ParseResult(BaseModel):
    """Outcome of converting an invoice document into structured data."""
    success: bool
    data: Optional[ExtractedInvoiceData] = None
    error: Optional[str] = None


# ============================================================================
# Catalog
# ============================================================================

class CatalogProduct(BaseModel):
    """
    A product in the local catalog (nomenclature).

    Attributes:
        code: Vendor product code
        name: Product name as written on invoices
        display_name: Optional name printed on certificates instead of `name`
        warranty_months_pf: Warranty term for individual consumers (non VAT payers)
        warranty_months_pj: Warranty term for VAT-registered companies
        min_voltage: Minimum battery voltage printed in the warranty conditions
        is_active: Whether the product is covered by warranty certificates
        needs_configuration: True while the warranty terms are incomplete
    """
    code: str
    name: str
    display_name: Optional[str] = None
    warranty_months_pf: Optional[int] = Field(None, ge=0)
    warranty_months_pj: Optional[int] = Field(None, ge=0)
    min_voltage: Optional[str] = None
    is_active: bool = False
    needs_configuration: bool = True

    @field_validator("min_voltage", mode="before")
    @classmethod
    def coerce_voltage(cls, v):
        """Catalog files may store voltages as numbers."""
        if v is None or v == "":
            return None
        return str(v)


class MatchedProduct(BaseModel):
    """
    A product line reconciled against the catalog.

    Matched items never carry a reason; unmatched items always do.
    """
    code: str
    name: str
    warranty_months: Optional[int] = None
    quantity: int = 1
    matched: bool
    reason: Optional[str] = None
    min_voltage: Optional[str] = None

    @model_validator(mode="after")
    def check_reason(self) -> "MatchedProduct":
        if self.matched and self.reason is not None:
            raise ValueError("matched products must not carry a reason")
        if not self.matched and not self.reason:
            raise ValueError("unmatched products must carry a reason")
        return self


# ============================================================================
# Certificates
# ============================================================================

class CertificateData(BaseModel):
    """
    Data printed on one warranty certificate.

    The template has room for a fixed number of products; extra products are
    dropped from the end.
    """
    client_name: str
    invoice_number: str
    invoice_date: str
    products: list[MatchedProduct] = Field(default_factory=list)
    min_voltage: Optional[str] = None
    is_vat_payer: bool = False
    marketplace_order_ref: Optional[str] = None

    @field_validator("products")
    @classmethod
    def truncate_products(cls, v: list[MatchedProduct]) -> list[MatchedProduct]:
        return v[:MAX_CERTIFICATE_PRODUCTS]


class ComposedCertificate(BaseModel):
    """Finished certificate document."""
    filename: str
    content: bytes


class CertificateRecord(BaseModel):
    """Persisted record of a generated certificate."""
    invoice_number: str
    invoice_date: str
    client_name: str
    is_vat_payer: bool
    products: list[MatchedProduct]
    marketplace_order_ref: Optional[str] = None
    output_path: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)


class CertificateResult(BaseModel):
    """
    Outcome of one certificate generation attempt.

    `success` is False when the attempt failed; `generated` is False when the
    invoice exists but contains no product configured for warranty.
    """
    success: bool
    generated: bool = False
    invoice_number: Optional[str] = None
    client_name: Optional[str] = None
    client_type: Optional[str] = Field(None, description="PJ for VAT payers, PF otherwise")
    invoice_date: Optional[str] = None
    products: list[MatchedProduct] = Field(default_factory=list)
    output_path: Optional[str] = None
    filename: Optional[str] = None
    marketplace_order_ref: Optional[str] = None
    extracted_products: list[ProductLineItem] = Field(default_factory=list)
    unmatched_products: list[MatchedProduct] = Field(default_factory=list)
    message: Optional[str] = None
    error: Optional[str] = None


class ManualProduct(BaseModel):
    """A product entered by hand for a manual certificate."""
    code: str = ""
    name: str = Field(..., min_length=1)
    warranty_months: Optional[int] = Field(None, ge=0)
    quantity: int = Field(1, ge=1)


class ManualCertificateRequest(BaseModel):
    """Input for generating a certificate without downloading the invoice."""
    invoice_number: str = Field(..., min_length=1)
    invoice_date: str = Field(..., min_length=1)
    client_name: str = Field(..., min_length=1)
    is_vat_payer: bool = False
    products: list[ManualProduct] = Field(default_factory=list)
    min_voltage: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "invoice_number": "PK202124601",
                    "invoice_date": "2024-12-14",
                    "client_name": "Ion Popescu",
                    "is_vat_payer": False,
                    "products": [
                        {
                            "name": "Masinuta electrica Premier Roadster 12V rosu",
                            "warranty_months": 24,
                        }
                    ],
                    "min_voltage": "10.8",
                }
            ]
        }
    }


class DiagnosticReport(BaseModel):
    """Extraction and matching details for one invoice, without generating anything."""
    invoice_number: str
    parsed: ExtractedInvoiceData
    matched_products: list[MatchedProduct]
    catalog_lookup: dict[str, Optional[CatalogProduct]]
    raw_text_preview: str


# ============================================================================
# Discovery
# ============================================================================

class DiscoveryTotals(BaseModel):
    """Counters for one discovery run."""
    attempted: int = Field(0, ge=0, description="Invoice numbers probed")
    existed: int = Field(0, ge=0, description="Invoices confirmed to exist")
    generated: int = Field(0, ge=0, description="Certificates generated")
    skipped_no_active_products: int = Field(0, ge=0, description="Existing invoices without warranty products")
    not_found: int = Field(0, ge=0, description="Invoice numbers that do not exist")


class DiscoveryError(BaseModel):
    """A failed attempt that did not stop the run."""
    invoice_number: str
    error: str


class GeneratedCertificateSummary(BaseModel):
    """Short summary of a certificate generated during discovery."""
    invoice_number: str
    client_name: Optional[str] = None
    filename: Optional[str] = None
    marketplace_order_ref: Optional[str] = None


class DiscoveryRun(BaseModel):
    """
    Summary of one sequential discovery run.

    Created per invocation and reported to the caller; never persisted.
    """
    start_identifier: str
    max_attempts: int
    consecutive_not_found_limit: int
    totals: DiscoveryTotals = Field(default_factory=DiscoveryTotals)
    errors: list[DiscoveryError] = Field(default_factory=list)
    generated_certificates: list[GeneratedCertificateSummary] = Field(default_factory=list)
    last_confirmed_identifier: str = ""
    searched_range: Optional[str] = None
    stopped_on_not_found: bool = False
