"""
Ordered extraction rules for invoice fields.

Each field has a list of named rules evaluated in order; the first rule that
produces a value wins and later rules are never consulted. Keeping the rules
as data makes the priority between patterns explicit and testable:
- Field rules: regular expression plus a builder turning the match into a value
- VAT-payer rules: classification checks returning True, False or None (no opinion)
"""

import re
from dataclasses import dataclass
from typing import Callable, Optional

from .config import CLIENT_LABELS, CLIENT_SECTION_END_MARKERS


# Type alias for match builders; returning None lets the next rule try
BuildFn = Callable[[re.Match], Optional[str]]

# Classification check: (text, context) -> True / False / None when undecided
VatCheckFn = Callable[[str, dict], Optional[bool]]


@dataclass(frozen=True)
class ExtractionRule:
    """
    A single named extraction rule.

    Attributes:
        name: Machine-readable rule name (e.g. "invoice_number:series_nr_label")
        pattern: Compiled regular expression
        build: Turns a match into the field value, or None to reject it
    """
    name: str
    pattern: re.Pattern
    build: BuildFn

    def apply(self, text: str) -> Optional[str]:
        match = self.pattern.search(text)
        if match is None:
            return None
        return self.build(match)


@dataclass(frozen=True)
class VatRule:
    """A named VAT-payer classification check."""
    code: str
    description: str
    check: VatCheckFn


def first_match(rules: list[ExtractionRule], text: Optional[str]) -> tuple[Optional[str], Optional[str]]:
    """
    Evaluate rules in order and return (value, rule name) of the first hit.

    Returns (None, None) when no rule produces a value.
    """
    if not text:
        return None, None
    for rule in rules:
        value = rule.apply(text)
        if value is not None:
            return value, rule.name
    return None, None


def _group(index: int) -> BuildFn:
    return lambda m: m.group(index).strip()


def _series_and_number(m: re.Match) -> str:
    return f"{m.group(1)}{m.group(2)}"


def _day_month_year(m: re.Match) -> str:
    return f"{m.group(1).zfill(2)}.{m.group(2).zfill(2)}.{m.group(3)}"


def _clean_client_name(m: re.Match) -> Optional[str]:
    name = m.group(1).strip()
    name = re.sub(r"CUI.*$", "", name, flags=re.IGNORECASE).strip()
    name = re.sub(r"C\.?U\.?I\.?.*$", "", name, flags=re.IGNORECASE).strip()
    name = re.sub(r"\s{2,}", " ", name)
    if 3 < len(name) < 100:
        return name
    return None


# ============================================================================
# Field Rules
# ============================================================================

INVOICE_NUMBER_RULES: list[ExtractionRule] = [
    ExtractionRule(
        name="invoice_number:series_nr_label",
        pattern=re.compile(r"Factura\s+Seria\s+(\w+)\s+Nr\.?\s*(\d+)", re.IGNORECASE),
        build=_series_and_number,
    ),
    ExtractionRule(
        name="invoice_number:title",
        pattern=re.compile(r"FACTURA\s+(\w+)\s*(\d+)", re.IGNORECASE),
        build=_series_and_number,
    ),
    ExtractionRule(
        name="invoice_number:seria_nr",
        pattern=re.compile(r"Seria:\s*(\w+)\s*Nr\.?:?\s*(\d+)", re.IGNORECASE),
        build=_series_and_number,
    ),
    ExtractionRule(
        name="invoice_number:serie_numar",
        pattern=re.compile(r"Serie:\s*(\w+)\s*Numar:?\s*(\d+)", re.IGNORECASE),
        build=_series_and_number,
    ),
    ExtractionRule(
        name="invoice_number:generic",
        pattern=re.compile(r"(\w{2,5})[\s-]*(\d{6,12})"),
        build=_series_and_number,
    ),
]

INVOICE_DATE_RULES: list[ExtractionRule] = [
    ExtractionRule(
        name="invoice_date:data_label",
        pattern=re.compile(r"Data(?:\s+facturii)?[:\s]+(\d{1,2})[./-](\d{1,2})[./-](\d{4})", re.IGNORECASE),
        build=_day_month_year,
    ),
    ExtractionRule(
        name="invoice_date:issue_label",
        pattern=re.compile(r"Data\s+emiterii[:\s]+(\d{1,2})[./-](\d{1,2})[./-](\d{4})", re.IGNORECASE),
        build=_day_month_year,
    ),
    ExtractionRule(
        name="invoice_date:first_date",
        pattern=re.compile(r"(\d{1,2})[./-](\d{1,2})[./-](\d{4})"),
        build=_day_month_year,
    ),
]

_CLIENT_LABEL_GROUP = "|".join(re.escape(label) for label in CLIENT_LABELS)

CLIENT_NAME_RULES: list[ExtractionRule] = [
    ExtractionRule(
        name="client_name:client_label",
        pattern=re.compile(rf"(?:{_CLIENT_LABEL_GROUP})[:\s]+([^\n\r]+)", re.IGNORECASE),
        build=_clean_client_name,
    ),
    ExtractionRule(
        name="client_name:name_label",
        pattern=re.compile(r"(?:Nume|Denumire)[:\s]+([^\n\r]+)", re.IGNORECASE),
        build=_clean_client_name,
    ),
]

CLIENT_TAX_ID_RULES: list[ExtractionRule] = [
    ExtractionRule(
        name="client_tax_id:cui_label",
        pattern=re.compile(r"C\.?U\.?I\.?[:\s]*(?:RO)?(\d{6,10})", re.IGNORECASE),
        build=_group(1),
    ),
    ExtractionRule(
        name="client_tax_id:cif_label",
        pattern=re.compile(r"C\.?I\.?F\.?[:\s]*(?:RO)?(\d{6,10})", re.IGNORECASE),
        build=_group(1),
    ),
    ExtractionRule(
        name="client_tax_id:generic",
        pattern=re.compile(r"\b(?:RO)?(\d{6,10})\b"),
        build=_group(1),
    ),
]

TOTAL_VALUE_RULES: list[ExtractionRule] = [
    ExtractionRule(
        name="total_value:total_label",
        pattern=re.compile(r"Total(?:\s+general)?[:\s]+(\d[\d.,]*)\s*(?:RON|Lei)?", re.IGNORECASE),
        build=_group(1),
    ),
    ExtractionRule(
        name="total_value:uppercase_total",
        pattern=re.compile(r"TOTAL[:\s]+(\d[\d.,]*)", re.IGNORECASE),
        build=_group(1),
    ),
    ExtractionRule(
        name="total_value:amount_due",
        pattern=re.compile(r"Total\s+de\s+plat[aă][:\s]+(\d[\d.,]*)", re.IGNORECASE),
        build=_group(1),
    ),
]

MARKETPLACE_ORDER_RULES: list[ExtractionRule] = [
    ExtractionRule(
        name="marketplace_order:comanda_emag_nr",
        pattern=re.compile(r"Comanda\s+Emag\s+nr\.?\s*(\d+)", re.IGNORECASE),
        build=_group(1),
    ),
    ExtractionRule(
        name="marketplace_order:nr_comanda_emag",
        pattern=re.compile(r"Nr\.?\s+comanda\s+Emag[:\s]*(\d+)", re.IGNORECASE),
        build=_group(1),
    ),
    ExtractionRule(
        name="marketplace_order:emag_order",
        pattern=re.compile(r"eMAG\s+order[:\s#]*(\d+)", re.IGNORECASE),
        build=_group(1),
    ),
    ExtractionRule(
        name="marketplace_order:long_order_number",
        pattern=re.compile(r"Comanda\s+#?\s*(\d{8,12})", re.IGNORECASE),
        build=_group(1),
    ),
]


# ============================================================================
# Client Section
# ============================================================================

_CLIENT_SECTION_PATTERN = re.compile(
    rf"(?:{_CLIENT_LABEL_GROUP})[:\s]+([\s\S]*?)(?:{'|'.join(CLIENT_SECTION_END_MARKERS)})",
    re.IGNORECASE,
)


def locate_client_section(text: str) -> Optional[str]:
    """
    Isolate the client block of the invoice.

    The block starts after a client label and ends at the first products or
    totals marker. Returns None if the block cannot be located.
    """
    match = _CLIENT_SECTION_PATTERN.search(text)
    if match:
        return match.group(1)
    return None


# ============================================================================
# VAT-Payer Rules
# ============================================================================

VAT_MARKER_PATTERNS: list[re.Pattern] = [
    re.compile(r"pl[aă]titor\s+(?:de\s+)?TVA[:\s]*([DN][AU])\b", re.IGNORECASE),
    re.compile(r"TVA[:\s]*([DN][AU])\s*$", re.IGNORECASE | re.MULTILINE),
]

LABELLED_PERSONAL_ID_PATTERN = re.compile(r"(?:CNP|C\.N\.P\.?)[:\s]*(\d{13})", re.IGNORECASE)

# Unlabelled codes are only trusted inside the client block; product EANs share the shape
PERSONAL_ID_PATTERNS: list[re.Pattern] = [
    LABELLED_PERSONAL_ID_PATTERN,
    re.compile(r"\b([1256]\d{12})\b"),
]

COMPANY_VAT_ID_PATTERN = re.compile(r"RO\s*(\d{6,10})", re.IGNORECASE)


def _search_vat_marker(text: Optional[str]) -> Optional[bool]:
    if not text:
        return None
    for pattern in VAT_MARKER_PATTERNS:
        for match in pattern.finditer(text):
            value = match.group(1).lower()
            if value == "da":
                return True
            if value == "nu":
                return False
    return None


def check_marker_in_client_section(text: str, context: dict) -> Optional[bool]:
    """Explicit "Platitor TVA: Da/Nu" inside the client block."""
    return _search_vat_marker(context.get("client_section"))


def check_marker_in_full_text(text: str, context: dict) -> Optional[bool]:
    """Explicit "Platitor TVA: Da/Nu" anywhere in the document."""
    return _search_vat_marker(text)


def check_personal_id(text: str, context: dict) -> Optional[bool]:
    """A 13-digit personal numeric code (CNP) identifies an individual."""
    section = context.get("client_section")
    if not section:
        return False if LABELLED_PERSONAL_ID_PATTERN.search(text) else None
    for pattern in PERSONAL_ID_PATTERNS:
        if pattern.search(section):
            return False
    return None


def check_company_vat_id(text: str, context: dict) -> Optional[bool]:
    """
    A RO-prefixed tax id in the client block identifies a VAT-registered company.

    The seller's own tax id also appears on every invoice and is skipped.
    """
    section = context.get("client_section") or text
    seller_tax_id = context.get("seller_tax_id")
    for match in COMPANY_VAT_ID_PATTERN.finditer(section):
        if match.group(1) != seller_tax_id:
            return True
    return None


# Most authoritative first; when every rule abstains the client is treated as non payer
VAT_PAYER_RULES: list[VatRule] = [
    VatRule(
        code="vat_payer:marker_client_section",
        description="Explicit VAT payer marker in the client block",
        check=check_marker_in_client_section,
    ),
    VatRule(
        code="vat_payer:marker_full_text",
        description="Explicit VAT payer marker anywhere in the document",
        check=check_marker_in_full_text,
    ),
    VatRule(
        code="vat_payer:personal_id",
        description="Personal numeric code in the client block means non payer",
        check=check_personal_id,
    ),
    VatRule(
        code="vat_payer:company_vat_id",
        description="RO tax id other than the seller's means VAT payer",
        check=check_company_vat_id,
    ),
]


def get_rule_names() -> dict[str, list[str]]:
    """Rule names per field, in evaluation order."""
    return {
        "invoice_number": [r.name for r in INVOICE_NUMBER_RULES],
        "invoice_date": [r.name for r in INVOICE_DATE_RULES],
        "client_name": [r.name for r in CLIENT_NAME_RULES],
        "client_tax_id": [r.name for r in CLIENT_TAX_ID_RULES],
        "total_value": [r.name for r in TOTAL_VALUE_RULES],
        "marketplace_order_ref": [r.name for r in MARKETPLACE_ORDER_RULES],
        "is_vat_payer": [r.code for r in VAT_PAYER_RULES],
    }
