"""
Invoice PDF extraction for warranty certificates.

The billing API does not expose invoice line items, so invoice contents are
recovered from the rendered PDF. This module provides functionality to:
- Convert PDF bytes to text using pdfplumber
- Recover invoice fields through the ordered rules in `rules`
- Classify the client as VAT payer (PJ) or individual (PF)
- Rebuild product descriptions that the PDF layout splits over several lines
- Cross-check the extracted invoice number against the requested one
"""

import io
import re
from pathlib import Path
from typing import Callable, Optional, Union

import pdfplumber

from .config import (
    COLOR_TOKENS,
    INVOICE_SUFFIX_DIGITS,
    PRODUCT_BRAND_TOKEN,
    PRODUCT_CATEGORY_TOKENS,
    PRODUCT_EAN_PREFIX,
    PRODUCT_MAX_CONTINUATION_LINES,
    PRODUCT_MIN_NAME_LENGTH,
    PRODUCT_TERMINATOR_PATTERNS,
    SELLER_TAX_ID,
    logger,
)
from .exceptions import NotFoundError
from .identifiers import digit_suffix
from .rules import (
    CLIENT_NAME_RULES,
    CLIENT_TAX_ID_RULES,
    INVOICE_DATE_RULES,
    INVOICE_NUMBER_RULES,
    MARKETPLACE_ORDER_RULES,
    TOTAL_VALUE_RULES,
    VAT_PAYER_RULES,
    first_match,
    locate_client_section,
)
from .schemas import ExtractedInvoiceData, InvoiceIdentifier, ParseResult, ProductLineItem


TextExtractor = Callable[[bytes], str]

_TERMINATORS = [re.compile(p, re.IGNORECASE) for p in PRODUCT_TERMINATOR_PATTERNS]
_VOLTAGE = re.compile(r"\d+V", re.IGNORECASE)
_COLOR = re.compile(rf"\b(?:{'|'.join(COLOR_TOKENS)})\b", re.IGNORECASE)


# ============================================================================
# Text Extraction
# ============================================================================

def extract_text_from_pdf_bytes(pdf_bytes: bytes) -> str:
    """
    Extract all text content from an in-memory PDF.

    Args:
        pdf_bytes: Raw PDF document

    Returns:
        Concatenated text from all pages; empty for a blank or template-only
        document, which then yields no invoice fields
    """
    text_parts = []

    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        for page in pdf.pages:
            page_text = page.extract_text()
            if page_text:
                text_parts.append(page_text)

    text = "\n".join(text_parts)
    if not text.strip():
        logger.warning("The invoice PDF contains no extractable text")
        return ""
    return text


# ============================================================================
# Field Extraction Helpers
# ============================================================================

def extract_invoice_number(text: str) -> Optional[str]:
    """Invoice number as series + number, e.g. "PK202124601"."""
    value, rule = first_match(INVOICE_NUMBER_RULES, text)
    logger.debug(f"invoice_number={value!r} via {rule}")
    return value


def extract_invoice_date(text: str) -> Optional[str]:
    """Issue date formatted DD.MM.YYYY."""
    value, rule = first_match(INVOICE_DATE_RULES, text)
    logger.debug(f"invoice_date={value!r} via {rule}")
    return value


def extract_client_name(text: str) -> Optional[str]:
    value, rule = first_match(CLIENT_NAME_RULES, text)
    logger.debug(f"client_name={value!r} via {rule}")
    return value


def extract_client_tax_id(text: str, client_section: Optional[str] = None) -> Optional[str]:
    """
    Client tax id (CUI/CIF), digits only.

    The client block is searched first so the seller's header does not win.
    """
    value, rule = first_match(CLIENT_TAX_ID_RULES, client_section)
    if value is None:
        value, rule = first_match(CLIENT_TAX_ID_RULES, text)
    logger.debug(f"client_tax_id={value!r} via {rule}")
    return value


def extract_total_value(text: str) -> Optional[float]:
    value, rule = first_match(TOTAL_VALUE_RULES, text)
    logger.debug(f"total_value={value!r} via {rule}")
    return parse_number(value)


def extract_marketplace_order_ref(text: str) -> Optional[str]:
    """Marketplace (eMAG) order number mentioned on the invoice."""
    value, rule = first_match(MARKETPLACE_ORDER_RULES, text)
    if value:
        logger.info(f"Marketplace order number extracted: {value}")
    return value


def classify_vat_payer(
    text: str,
    client_section: Optional[str] = None,
    seller_tax_id: str = SELLER_TAX_ID,
) -> bool:
    """
    Decide whether the client is a VAT payer (PJ) or an individual (PF).

    Rules run from most to least authoritative (see VAT_PAYER_RULES). When no
    rule decides, the client is treated as PF, whose warranty term is the
    longer one.
    """
    if client_section is None:
        client_section = locate_client_section(text)

    context = {
        "client_section": client_section,
        "seller_tax_id": seller_tax_id,
    }

    for rule in VAT_PAYER_RULES:
        decision = rule.check(text, context)
        if decision is not None:
            logger.info(f"Client classified as {'PJ' if decision else 'PF'} by {rule.code}")
            return decision

    logger.info("No VAT payer indicator found, client classified as PF")
    return False


def parse_number(value) -> Optional[float]:
    """
    Parse a numeric value from various formats.

    Handles both:
    - Romanian/European format: 1.234,56 (period = thousand separator, comma = decimal)
    - US/UK format: 1,234.56 (comma = thousand separator, period = decimal)
    """
    if value is None:
        return None

    value_str = str(value).strip()
    if not value_str:
        return None

    value_str = re.sub(r"(?i)(RON|Lei|€|\$|\s)", "", value_str)

    if "," in value_str:
        comma_pos = value_str.rfind(",")
        period_pos = value_str.rfind(".")

        if period_pos < comma_pos:
            # European format: "1.234,56" -> "1234.56"
            value_str = value_str.replace(".", "")
            value_str = value_str.replace(",", ".")
        else:
            # US format: "1,234.56" -> "1234.56"
            value_str = value_str.replace(",", "")

    try:
        return float(value_str)
    except ValueError:
        return None


# ============================================================================
# Product Line Items
# ============================================================================

def _is_anchor(line: str) -> bool:
    lowered = line.lower()
    return PRODUCT_BRAND_TOKEN in lowered and any(token in lowered for token in PRODUCT_CATEGORY_TOKENS)


def _is_terminator(line: str) -> bool:
    return any(p.search(line) for p in _TERMINATORS) or _is_anchor(line)


def _is_complete(description: str) -> bool:
    """A description carrying both a voltage and a colour is whole."""
    return bool(_VOLTAGE.search(description)) and bool(_COLOR.search(description))


def _split_lines(text: str) -> list[tuple[str, int]]:
    """Non-empty stripped lines with their character offset in `text`."""
    lines = []
    offset = 0
    for raw in text.splitlines(keepends=True):
        stripped = raw.strip()
        if stripped:
            lines.append((stripped, offset + len(raw) - len(raw.lstrip())))
        offset += len(raw)
    return lines


def extract_products(text: str) -> list[ProductLineItem]:
    """
    Extract product lines from invoice text.

    The invoice layout wraps long product names over several lines. A line
    holding the brand token and a category keyword starts a product; up to
    PRODUCT_MAX_CONTINUATION_LINES following lines are appended until a price,
    quantity, total or another product line appears, or until the name holds
    both a voltage and a colour.
    """
    products: list[ProductLineItem] = []
    seen: set[str] = set()
    lines = _split_lines(text)

    for i, (line, offset) in enumerate(lines):
        if not _is_anchor(line):
            continue

        full_name = line
        last = i
        j = i + 1
        while j < len(lines) and j <= i + PRODUCT_MAX_CONTINUATION_LINES and not _is_complete(full_name):
            next_line = lines[j][0]
            if _is_terminator(next_line):
                break
            if len(next_line) > 2:
                full_name += " " + next_line
                last = j
            j += 1

        full_name = re.sub(r"\s+", " ", full_name).strip()
        normalized = full_name.lower()

        if normalized in seen or len(full_name) < PRODUCT_MIN_NAME_LENGTH:
            continue
        seen.add(normalized)

        end_line, end_offset = lines[min(last + 2, len(lines) - 1)]
        window = text[offset:end_offset + len(end_line)]
        code = extract_product_code(full_name, text, position=offset, window=window)

        products.append(ProductLineItem(code=code, name=full_name, quantity=1))
        logger.info(f"Product found: {full_name!r} (code {code})")

    logger.info(f"Total products extracted: {len(products)}")
    return products


def extract_product_code(
    product_name: str,
    text: str,
    position: Optional[int] = None,
    window: Optional[str] = None,
) -> str:
    """
    Guess the catalog code (usually an EAN-13) of a product.

    Lookup order:
    1. Brand EAN (PRODUCT_EAN_PREFIX) printed with the product, else the
       brand EAN closest to the product's position
    2. Any 13-digit code near the product
    3. Letters+digits code inside the product name
    4. First word of the product name
    """
    brand_ean = re.compile(rf"\b({PRODUCT_EAN_PREFIX}\d{{5}})\b")
    if window:
        local = brand_ean.search(window)
        if local:
            return local.group(1)

    brand_eans = list(brand_ean.finditer(text))
    if brand_eans:
        if position is None:
            position = max(text.find(product_name[:30]), 0)
        closest = min(brand_eans, key=lambda m: abs(m.start() - position))
        return closest.group(1)

    if window:
        generic = re.search(r"\b(\d{13})\b", window)
        if generic:
            return generic.group(1)

    code = re.search(r"\b([A-Z]{2,5}\d{3,10})\b", product_name, re.IGNORECASE)
    if code:
        return code.group(1).upper()

    first_word = product_name.split()[0].upper() if product_name.split() else ""
    return first_word if len(first_word) >= 2 else PRODUCT_BRAND_TOKEN.upper()


# ============================================================================
# Main Extraction Functions
# ============================================================================

def extract_invoice_data(text: str) -> ExtractedInvoiceData:
    """
    Recover every supported field from invoice text.

    Never raises for missing fields; they are returned as None.
    """
    client_section = locate_client_section(text)
    if client_section is not None:
        logger.debug(f"Client section isolated: {client_section[:200]!r}")

    return ExtractedInvoiceData(
        invoice_number=extract_invoice_number(text),
        invoice_date=extract_invoice_date(text),
        client_name=extract_client_name(text),
        client_tax_id=extract_client_tax_id(text, client_section),
        is_vat_payer=classify_vat_payer(text, client_section),
        products=extract_products(text),
        total_value=extract_total_value(text),
        marketplace_order_ref=extract_marketplace_order_ref(text),
        raw_text=text,
    )


def parse_invoice_pdf(
    pdf_bytes: bytes,
    text_extractor: TextExtractor = extract_text_from_pdf_bytes,
) -> ParseResult:
    """
    Convert an invoice PDF into structured data.

    Args:
        pdf_bytes: Raw PDF content
        text_extractor: PDF-to-text conversion, replaceable in tests

    Returns:
        ParseResult with success=False and an error message if the document
        could not be converted to text
    """
    try:
        text = text_extractor(pdf_bytes)
    except Exception as e:
        logger.error(f"Error converting invoice PDF to text: {e}")
        return ParseResult(success=False, error=f"Could not parse the invoice PDF: {e}")

    return ParseResult(success=True, data=extract_invoice_data(text))


def extract_invoice_from_file(pdf_path: Path) -> ParseResult:
    """Parse an invoice PDF stored on disk."""
    logger.info(f"Extracting invoice from: {pdf_path.name}")
    return parse_invoice_pdf(pdf_path.read_bytes())


def verify_invoice_number(
    requested: Union[InvoiceIdentifier, str],
    extracted: Optional[str],
) -> None:
    """
    Confirm that a downloaded document belongs to the requested invoice.

    The upstream service answers unissued numbers with an empty template or
    with a neighbouring invoice, so a document without an invoice number or
    whose trailing digits differ means the invoice does not exist.

    Raises:
        NotFoundError: If the document does not belong to the requested invoice
    """
    requested_str = str(requested)

    if not extracted:
        logger.info(f"PDF for {requested_str} carries no invoice number, treating as nonexistent")
        raise NotFoundError(f"Invoice {requested_str} was not found (document has no invoice number)")

    requested_suffix = digit_suffix(requested_str, INVOICE_SUFFIX_DIGITS)
    extracted_suffix = digit_suffix(extracted, INVOICE_SUFFIX_DIGITS)

    if requested_suffix != extracted_suffix:
        logger.info(
            f"Invoice mismatch: requested {requested_str} (suffix {requested_suffix}), "
            f"document is {extracted} (suffix {extracted_suffix})"
        )
        raise NotFoundError(
            f"Invoice {requested_str} was not found (document belongs to invoice {extracted})"
        )

    logger.info(f"Invoice verified: requested {requested_str}, found {extracted}")
