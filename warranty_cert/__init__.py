"""
Warranty Certificate Service

Generates warranty certificates for invoices issued through SmartBill by
extracting invoice data from the rendered PDF, matching its products with
the local catalog and filling a certificate template.
"""

__version__ = "0.1.0"
__author__ = "Warranty Certificate Team"

from .schemas import InvoiceIdentifier, ExtractedInvoiceData, MatchedProduct, CertificateResult, DiscoveryRun
from .identifiers import normalize_identifier
from .extractor import extract_invoice_data, parse_invoice_pdf
from .matcher import match_products
from .composer import CertificateComposer
from .certificates import CertificateService
from .discovery import DiscoveryDriver

__all__ = [
    "InvoiceIdentifier",
    "ExtractedInvoiceData",
    "MatchedProduct",
    "CertificateResult",
    "DiscoveryRun",
    "normalize_identifier",
    "extract_invoice_data",
    "parse_invoice_pdf",
    "match_products",
    "CertificateComposer",
    "CertificateService",
    "DiscoveryDriver",
]
