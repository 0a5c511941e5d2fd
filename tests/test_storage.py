"""
Tests for the JSON-file collaborator stores.
"""

import json

import pytest

from warranty_cert.schemas import CertificateRecord, MatchedProduct
from warranty_cert.storage import JsonCatalog, JsonCheckpointStore, JsonlCertificateRecordStore


@pytest.fixture
def catalog_file(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps([
        {
            "code": "6427470012345",
            "name": "Masinuta electrica Premier Roadster 12V rosu",
            "warranty_months_pf": 24,
            "warranty_months_pj": 12,
            "min_voltage": 10.8,
            "is_active": True,
            "needs_configuration": False,
        },
        {
            "code": "6427470099999",
            "name": "Tractor electric Premier Farmer 24V verde",
        },
    ]), encoding="utf-8")
    return path


def record(invoice_number):
    return CertificateRecord(
        invoice_number=invoice_number,
        invoice_date="14.12.2024",
        client_name="Ion Popescu",
        is_vat_payer=False,
        products=[MatchedProduct(code="C", name="ATV Premier", warranty_months=24, matched=True)],
        output_path=f"output/Certificate_{invoice_number}.pdf",
    )


class TestJsonCatalog:
    """Tests for the file-backed catalog."""

    def test_load(self, catalog_file):
        catalog = JsonCatalog(catalog_file)
        product = catalog.get_by_code("6427470012345")
        assert product.min_voltage == "10.8"
        assert product.is_active

    def test_defaults_are_inactive(self, catalog_file):
        product = JsonCatalog(catalog_file).get_by_code("6427470099999")
        assert not product.is_active
        assert product.needs_configuration

    def test_get_all(self, catalog_file):
        catalog = JsonCatalog(catalog_file)
        assert len(catalog.get_all()) == 2
        assert [p.code for p in catalog.get_all(include_inactive=False)] == ["6427470012345"]

    def test_unknown_code(self, catalog_file):
        assert JsonCatalog(catalog_file).get_by_code("nope") is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            JsonCatalog(tmp_path / "missing.json")


class TestJsonCheckpointStore:
    """Tests for the checkpoint file."""

    def test_unset(self, tmp_path):
        assert JsonCheckpointStore(tmp_path / "checkpoint.json").get() == ""

    def test_set_and_get(self, tmp_path):
        path = tmp_path / "data" / "checkpoint.json"
        store = JsonCheckpointStore(path)
        store.set("PK202124601")

        assert store.get() == "PK202124601"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["last_processed_invoice"] == "PK202124601"
        assert "updated_at" in data

    def test_bare_string_file(self, tmp_path):
        path = tmp_path / "checkpoint.json"
        path.write_text(json.dumps("PK202124575"), encoding="utf-8")
        assert JsonCheckpointStore(path).get() == "PK202124575"

    @pytest.mark.parametrize("content", [[1, 2], 42, None, {"last_processed_invoice": None}])
    def test_unrecognized_content(self, tmp_path, content):
        path = tmp_path / "checkpoint.json"
        path.write_text(json.dumps(content), encoding="utf-8")
        assert JsonCheckpointStore(path).get() == ""


class TestJsonlCertificateRecordStore:
    """Tests for the certificate history file."""

    def test_empty(self, tmp_path):
        assert JsonlCertificateRecordStore(tmp_path / "certificates.jsonl").history() == []

    def test_newest_first(self, tmp_path):
        store = JsonlCertificateRecordStore(tmp_path / "certificates.jsonl")
        for number in ["PK202124601", "PK202124602", "PK202124603"]:
            store.save(record(number))

        assert [r.invoice_number for r in store.history()] == ["PK202124603", "PK202124602", "PK202124601"]

    def test_limit_and_offset(self, tmp_path):
        store = JsonlCertificateRecordStore(tmp_path / "certificates.jsonl")
        for number in ["PK202124601", "PK202124602", "PK202124603"]:
            store.save(record(number))

        assert [r.invoice_number for r in store.history(limit=1, offset=1)] == ["PK202124602"]

    def test_round_trip_fields(self, tmp_path):
        store = JsonlCertificateRecordStore(tmp_path / "certificates.jsonl")
        store.save(record("PK202124601"))
        saved = store.history()[0]
        assert saved.products[0].warranty_months == 24
        assert saved.output_path == "output/Certificate_PK202124601.pdf"
