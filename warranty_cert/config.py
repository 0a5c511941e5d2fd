"""
Configuration constants for the Warranty Certificate Service.
"""

import logging
import os
from pathlib import Path
from typing import Final

# ============================================================================
# SmartBill API
# ============================================================================

SMARTBILL_BASE_URL: Final[str] = os.getenv("SMARTBILL_BASE_URL", "https://ws.smartbill.ro/SBORO/api")
SMARTBILL_USERNAME: Final[str] = os.getenv("SMARTBILL_USERNAME", "")
SMARTBILL_TOKEN: Final[str] = os.getenv("SMARTBILL_TOKEN", "")
SMARTBILL_CIF: Final[str] = os.getenv("SMARTBILL_CIF", "")
SMARTBILL_TIMEOUT_SECONDS: Final[float] = float(os.getenv("SMARTBILL_TIMEOUT_SECONDS", "60"))

# Minimum spacing between two outbound document fetches
RATE_LIMIT_DELAY_MS: Final[int] = int(os.getenv("RATE_LIMIT_DELAY_MS", "500"))

# A PDF smaller than this is an empty template, not an issued invoice
MIN_INVOICE_PDF_BYTES: Final[int] = 5000
MIN_ERROR_BODY_BYTES: Final[int] = 1000

# Phrases SmartBill uses in non-PDF bodies for missing invoices
NOT_FOUND_MARKERS: Final[list[str]] = [
    "nu a fost",
    "not found",
    "inexistent",
    "nu exista",
    "eroare",
]

# ============================================================================
# Invoice Identifiers
# ============================================================================

# Series used when only the numeric part of an identifier is given
DEFAULT_SERIES: Final[str] = os.getenv("DEFAULT_SERIES", "PK")

# Number of trailing digits compared between requested and extracted invoice numbers
INVOICE_SUFFIX_DIGITS: Final[int] = 5

# ============================================================================
# Extraction Tables
# ============================================================================

# Seller's own tax id; never treated as the client's
SELLER_TAX_ID: Final[str] = os.getenv("SELLER_TAX_ID", "10651758")

# Labels introducing the client block on the invoice
CLIENT_LABELS: Final[list[str]] = [
    "Client",
    "Cumparator",
    "Cumpărător",
    "Beneficiar",
]

# Markers that close the client block
CLIENT_SECTION_END_MARKERS: Final[list[str]] = [
    r"Produs",
    r"Denumire produs",
    r"Nr\.\s*crt",
    r"Total",
    r"FACTURA",
]

PRODUCT_BRAND_TOKEN: Final[str] = os.getenv("PRODUCT_BRAND_TOKEN", "premier").lower()
PRODUCT_EAN_PREFIX: Final[str] = os.getenv("PRODUCT_EAN_PREFIX", "64274700")

# Category tokens; an anchor line carries the brand token plus one of these
PRODUCT_CATEGORY_TOKENS: Final[list[str]] = [
    "electric",
    "masinuta",
    "atv",
    "motocicleta",
    "tractor",
    "kart",
]

COLOR_TOKENS: Final[list[str]] = [
    "alb",
    "negru",
    "rosu",
    "roșu",
    "albastru",
    "galben",
    "verde",
    "gri",
    "portocaliu",
    "roz",
    "mov",
    "argintiu",
]

# Lines after an anchor that end the product description
PRODUCT_TERMINATOR_PATTERNS: Final[list[str]] = [
    r"^[\d.,]+\s*(RON|Lei|buc|EUR)?$",
    r"^(Total|Subtotal|TVA)",
    r"^\d+\s*x\s*\d",
]

# Continuation lines appended to an anchor at most
PRODUCT_MAX_CONTINUATION_LINES: Final[int] = 4

# Shorter candidates are layout noise
PRODUCT_MIN_NAME_LENGTH: Final[int] = 30

# ============================================================================
# Certificate Template
# ============================================================================

MAX_CERTIFICATE_PRODUCTS: Final[int] = 3
DEFAULT_WARRANTY_MONTHS: Final[int] = int(os.getenv("DEFAULT_WARRANTY_MONTHS", "24"))
DEFAULT_MIN_VOLTAGE: Final[str] = os.getenv("DEFAULT_MIN_VOLTAGE", "10.8")
DEFAULT_CLIENT_NAME: Final[str] = "Client"

HEADER_FONT_SIZE: Final[int] = 11
PRODUCT_FONT_SIZE: Final[int] = 9
VOLTAGE_FONT_SIZE: Final[int] = 8

PRODUCT_FIELD_TEMPLATE: Final[str] = "{index}. {name}"
WARRANTY_FIELD_TEMPLATE: Final[str] = "garantie (luni): {months}"

CERTIFICATE_FILENAME_TEMPLATE: Final[str] = "Certificate_{invoice_number}.pdf"

TEMPLATE_PATHS: Final[list[Path]] = [
    Path(p)
    for p in os.getenv(
        "TEMPLATE_PATHS",
        os.pathsep.join(["templates/certificate_v3.pdf", "templates/certificate_v2.pdf"]),
    ).split(os.pathsep)
    if p
]

# ============================================================================
# Discovery
# ============================================================================

DISCOVERY_MAX_ATTEMPTS: Final[int] = int(os.getenv("DISCOVERY_MAX_ATTEMPTS", "50"))
DISCOVERY_NOT_FOUND_LIMIT: Final[int] = int(os.getenv("DISCOVERY_NOT_FOUND_LIMIT", "2"))

# ============================================================================
# Storage
# ============================================================================

DATA_DIR: Final[Path] = Path(os.getenv("DATA_DIR", "data"))
OUTPUT_DIR: Final[Path] = Path(os.getenv("OUTPUT_DIR", "output"))
CATALOG_FILE: Final[Path] = DATA_DIR / "catalog.json"
CHECKPOINT_FILE: Final[Path] = DATA_DIR / "checkpoint.json"
CERTIFICATE_RECORDS_FILE: Final[Path] = DATA_DIR / "certificates.jsonl"

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")

def setup_logging() -> logging.Logger:
    """Configure and return the application logger."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("warranty_cert")


logger = setup_logging()
