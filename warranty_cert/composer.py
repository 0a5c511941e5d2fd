"""
Warranty certificate generation from a fillable PDF template.

The template exposes these text fields:
- product_1, product_2, product_3: product names
- warranty_1, warranty_2, warranty_3: warranty terms
- client_name, invoice_number, invoice_date
- voltage_min: minimum battery voltage quoted in the warranty conditions

Field names may carry the editor's decorations ("{product_1}",
"undefined.{product_1}"); all variants are accepted.
"""

import io
import re
import unicodedata
from pathlib import Path
from typing import Optional

from pypdf import PdfReader, PdfWriter
from pypdf.generic import NameObject, NumberObject

from .config import (
    CERTIFICATE_FILENAME_TEMPLATE,
    DEFAULT_MIN_VOLTAGE,
    DEFAULT_WARRANTY_MONTHS,
    HEADER_FONT_SIZE,
    MAX_CERTIFICATE_PRODUCTS,
    PRODUCT_FIELD_TEMPLATE,
    PRODUCT_FONT_SIZE,
    TEMPLATE_PATHS,
    VOLTAGE_FONT_SIZE,
    WARRANTY_FIELD_TEMPLATE,
    logger,
)
from .exceptions import TemplateMissingError
from .schemas import CertificateData, ComposedCertificate

# /Ff bit 1
READ_ONLY_FLAG = 1


def transliterate(text: Optional[str]) -> str:
    """Strip diacritics ("Ștefan Țăranu" -> "Stefan Taranu"); template fonts lack them."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def format_product_name(name: Optional[str]) -> str:
    if not name:
        return ""
    return re.sub(r"\s+", " ", name.strip())


def certificate_filename(invoice_number: str) -> str:
    return CERTIFICATE_FILENAME_TEMPLATE.format(invoice_number=invoice_number)


def build_field_values(data: CertificateData) -> dict[str, tuple[str, int]]:
    """
    Text and font size for every template field.

    Product slots without a product are cleared rather than left untouched.
    """
    values: dict[str, tuple[str, int]] = {}

    for index in range(1, MAX_CERTIFICATE_PRODUCTS + 1):
        product = data.products[index - 1] if index <= len(data.products) else None
        if product is not None and product.name:
            months = product.warranty_months or DEFAULT_WARRANTY_MONTHS
            product_text = PRODUCT_FIELD_TEMPLATE.format(index=index, name=format_product_name(product.name))
            warranty_text = WARRANTY_FIELD_TEMPLATE.format(months=months)
        else:
            product_text = ""
            warranty_text = ""
        values[f"product_{index}"] = (product_text, PRODUCT_FONT_SIZE)
        values[f"warranty_{index}"] = (warranty_text, PRODUCT_FONT_SIZE)

    values["client_name"] = (data.client_name or "", HEADER_FONT_SIZE)
    values["invoice_number"] = (data.invoice_number or "", HEADER_FONT_SIZE)
    values["invoice_date"] = (data.invoice_date or "", HEADER_FONT_SIZE)
    values["voltage_min"] = (data.min_voltage or DEFAULT_MIN_VOLTAGE, VOLTAGE_FONT_SIZE)

    return {name: (transliterate(text), size) for name, (text, size) in values.items()}


class CertificateComposer:
    """
    Fills the certificate template.

    Args:
        template_paths: Candidate template files, the first existing one is used
    """

    def __init__(self, template_paths: Optional[list[Path]] = None):
        self.template_paths = list(template_paths) if template_paths is not None else list(TEMPLATE_PATHS)

    def load_template(self) -> bytes:
        """
        Read the first available template.

        Raises:
            TemplateMissingError: If none of the candidate paths exists
        """
        for path in self.template_paths:
            if path.exists():
                logger.info(f"Certificate template loaded: {path}")
                return path.read_bytes()
        searched = ", ".join(str(p) for p in self.template_paths) or "(none configured)"
        raise TemplateMissingError(f"Certificate template not found. Searched: {searched}")

    @staticmethod
    def _resolve_field(base_name: str, available: set[str]) -> Optional[str]:
        for name in (base_name, f"{{{base_name}}}", f"undefined.{{{base_name}}}", f"undefined.{base_name}"):
            if name in available:
                return name
        logger.warning(f"Template field {base_name} not found")
        return None

    @staticmethod
    def _mark_read_only(writer: PdfWriter) -> None:
        for page in writer.pages:
            for annot_ref in page.get("/Annots", None) or []:
                annot = annot_ref.get_object()
                targets = [annot]
                if "/Parent" in annot:
                    targets.append(annot["/Parent"].get_object())
                for target in targets:
                    if "/T" in target:
                        flags = int(target.get("/Ff", 0))
                        target[NameObject("/Ff")] = NumberObject(flags | READ_ONLY_FLAG)

    def compose(self, data: CertificateData) -> ComposedCertificate:
        """
        Produce the certificate PDF for `data`.

        Returns:
            ComposedCertificate with the document bytes and the output filename
        """
        reader = PdfReader(io.BytesIO(self.load_template()))
        writer = PdfWriter(clone_from=reader)

        available = set((reader.get_fields() or {}).keys())
        logger.debug(f"Template fields: {sorted(available)}")

        updates: dict[str, tuple[str, str, int]] = {}
        for base_name, (text, size) in build_field_values(data).items():
            field_name = self._resolve_field(base_name, available)
            if field_name is not None:
                updates[field_name] = (text, "", size)

        for page in writer.pages:
            if "/Annots" in page:
                writer.update_page_form_field_values(page, updates, auto_regenerate=False)

        self._mark_read_only(writer)
        writer.set_need_appearances_writer(True)

        buffer = io.BytesIO()
        writer.write(buffer)
        content = buffer.getvalue()

        logger.info(f"Certificate generated for invoice {data.invoice_number} ({len(content)} bytes)")
        return ComposedCertificate(filename=certificate_filename(data.invoice_number), content=content)
