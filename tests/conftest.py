"""
Shared fixtures: invoice text, catalog entries and certificate templates.
"""

from pathlib import Path

import pytest
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from warranty_cert.schemas import CatalogProduct
from warranty_cert.storage import InMemoryCatalog


TEMPLATE_FIELDS = [
    "product_1",
    "product_2",
    "product_3",
    "warranty_1",
    "warranty_2",
    "warranty_3",
    "client_name",
    "invoice_number",
    "invoice_date",
    "voltage_min",
]

ROADSTER_NAME = "Masinuta electrica Premier Roadster cu telecomanda si roti din cauciuc rosu"

SAMPLE_INVOICE_TEXT = f"""FACTURA
Seria PK2021 Nr. 24601
Data: 14.12.2024
Furnizor: SC Premier Toys SRL
CUI: RO10651758
Client: Ion Popescu
Platitor TVA: Nu
Adresa: Str. Lalelelor 5, Bucuresti
Nr. crt Denumire produs UM Cant Pret
Masinuta electrica Premier Roadster
cu telecomanda si roti din cauciuc rosu
1.299,99
Total: 1.299,99 RON
Comanda Emag nr. 123456789
"""


def build_template(path: Path, field_names: list[str]) -> Path:
    """Write a one-page PDF with a text field per name."""
    c = canvas.Canvas(str(path), pagesize=A4)
    y = 780
    for name in field_names:
        c.drawString(50, y + 22, name)
        c.acroForm.textfield(name=name, x=50, y=y, width=450, height=18, borderWidth=0)
        y -= 45
    c.save()
    return path


@pytest.fixture
def template_fields():
    return list(TEMPLATE_FIELDS)


@pytest.fixture
def make_template():
    return build_template


@pytest.fixture
def template_path(tmp_path):
    return build_template(tmp_path / "certificate.pdf", TEMPLATE_FIELDS)


@pytest.fixture
def blank_pdf(tmp_path):
    """One empty page, as served for an invoice number not yet issued."""
    path = tmp_path / "blank.pdf"
    c = canvas.Canvas(str(path), pagesize=A4)
    c.showPage()
    c.save()
    return path.read_bytes()


@pytest.fixture
def roadster():
    return CatalogProduct(
        code="6427470012345",
        name=ROADSTER_NAME,
        warranty_months_pf=24,
        warranty_months_pj=12,
        min_voltage="10.8",
        is_active=True,
        needs_configuration=False,
    )


@pytest.fixture
def catalog(roadster):
    return InMemoryCatalog([
        roadster,
        CatalogProduct(
            code="6427470054321",
            name="ATV electric Premier Hunter 12V negru",
            display_name="ATV Premier Hunter",
            warranty_months_pf=24,
            warranty_months_pj=12,
            min_voltage=11.5,
            is_active=True,
            needs_configuration=False,
        ),
        CatalogProduct(
            code="6427470099999",
            name="Tractor electric Premier Farmer 24V verde",
            warranty_months_pf=24,
            warranty_months_pj=12,
            is_active=False,
            needs_configuration=True,
        ),
    ])


@pytest.fixture
def sample_text():
    return SAMPLE_INVOICE_TEXT
