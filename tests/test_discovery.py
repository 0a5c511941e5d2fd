"""
Tests for sequential invoice discovery.

Most tests replace the certificate service with a scripted double so each test
states the outcome of every probed invoice number.
"""

import pytest

from warranty_cert.certificates import CertificateService
from warranty_cert.composer import CertificateComposer
from warranty_cert.discovery import DiscoveryDriver
from warranty_cert.exceptions import FetchError, NotFoundError, ValidationError
from warranty_cert.schemas import CertificateResult
from warranty_cert.smartbill import Found
from warranty_cert.storage import JsonlCertificateRecordStore


FOUND = "found"
SKIPPED = "skipped"
MISSING = "missing"
UNREADABLE = "unreadable"


class ScriptedService:
    """Plays back one outcome per call; missing once the script runs out."""

    def __init__(self, script):
        self.script = list(script)
        self.calls: list[str] = []

    def process_invoice(self, identifier):
        invoice_number = str(identifier)
        self.calls.append(invoice_number)
        outcome = self.script.pop(0) if self.script else MISSING

        if outcome == MISSING:
            raise NotFoundError(f"Invoice {invoice_number} was not found")
        if isinstance(outcome, Exception):
            raise outcome
        if outcome == UNREADABLE:
            return CertificateResult(success=False, invoice_number=invoice_number, error="Could not parse the invoice PDF")
        if outcome == SKIPPED:
            return CertificateResult(success=True, generated=False, invoice_number=invoice_number)
        return CertificateResult(
            success=True,
            generated=True,
            invoice_number=invoice_number,
            client_name="Ion Popescu",
            filename=f"Certificate_{invoice_number}.pdf",
        )


class MemoryCheckpoint:
    def __init__(self, value=""):
        self.value = value
        self.writes: list[str] = []

    def get(self):
        return self.value

    def set(self, identifier):
        self.value = identifier
        self.writes.append(identifier)


def run(script, checkpoint="PK202124600", max_attempts=50):
    service = ScriptedService(script)
    store = MemoryCheckpoint(checkpoint)
    result = DiscoveryDriver(service, store).run(max_attempts=max_attempts)
    return result, service, store


class TestTermination:
    """Tests for the consecutive not-found stop rule."""

    def test_stops_after_two_consecutive_missing(self):
        result, service, _ = run([FOUND, MISSING, MISSING, FOUND])

        assert service.calls == ["PK202124601", "PK202124602", "PK202124603"]
        assert result.stopped_on_not_found
        assert result.totals.attempted == 3
        assert result.totals.existed == 1
        assert result.totals.not_found == 2

    def test_found_resets_counter(self):
        result, service, _ = run([MISSING, FOUND, MISSING, FOUND])
        assert len(service.calls) == 6
        assert result.totals.existed == 2

    def test_other_errors_reset_counter(self):
        result, service, _ = run([MISSING, RuntimeError("boom"), MISSING, FOUND])
        assert len(service.calls) == 6
        assert result.totals.attempted == 6

    def test_max_attempts(self):
        result, service, _ = run([FOUND] * 10, max_attempts=3)
        assert len(service.calls) == 3
        assert not result.stopped_on_not_found
        assert result.searched_range == "PK202124601 - PK202124603"

    def test_default_max_attempts(self):
        service = ScriptedService([FOUND] * 10)
        driver = DiscoveryDriver(service, MemoryCheckpoint("PK202124600"), max_attempts=4)
        assert driver.run().max_attempts == 4
        assert len(service.calls) == 4


class TestCheckpoint:
    """Tests for checkpoint advancement."""

    def test_only_confirmed_invoices_advance(self):
        result, _, store = run([MISSING, FOUND])

        assert store.value == "PK202124602"
        assert store.writes == ["PK202124602"]
        assert result.last_confirmed_identifier == "PK202124602"

    def test_skipped_invoice_still_advances(self):
        result, _, store = run([SKIPPED])
        assert store.value == "PK202124601"
        assert result.totals.skipped_no_active_products == 1
        assert result.totals.generated == 0

    def test_not_written_without_progress(self):
        result, _, store = run([MISSING, MISSING])
        assert store.writes == []
        assert result.last_confirmed_identifier == "PK202124600"

    def test_errors_do_not_advance(self):
        _, _, store = run([FetchError("timeout"), UNREADABLE])
        assert store.writes == []

    def test_keeps_number_width(self):
        _, service, store = run([FOUND], checkpoint="PKF-0001234")
        assert service.calls[0] == "PKF0001235"
        assert store.value == "PKF0001235"

    def test_missing_checkpoint(self):
        with pytest.raises(ValidationError):
            run([FOUND], checkpoint="")

    def test_invalid_checkpoint(self):
        with pytest.raises(ValidationError):
            run([FOUND], checkpoint="not an invoice")


class TestRunSummary:
    """Tests for the totals and error list."""

    def test_generated_certificates(self):
        result, _, _ = run([FOUND, SKIPPED, FOUND])

        assert result.totals.generated == 2
        assert result.totals.skipped_no_active_products == 1
        assert [c.invoice_number for c in result.generated_certificates] == ["PK202124601", "PK202124603"]
        assert result.generated_certificates[0].filename == "Certificate_PK202124601.pdf"

    def test_errors_recorded(self):
        result, _, _ = run([FetchError("SmartBill PDF error 500"), UNREADABLE])

        assert [e.invoice_number for e in result.errors] == ["PK202124601", "PK202124602"]
        assert result.errors[0].error == "SmartBill PDF error 500"
        assert result.errors[1].error == "Could not parse the invoice PDF"
        assert result.totals.existed == 0

    def test_start_identifier(self):
        result, _, _ = run([], checkpoint="PK202124600")
        assert result.start_identifier == "PK202124600"
        assert result.consecutive_not_found_limit == 2


class BlankSource:
    """Answers every invoice number with the same blank document."""

    def __init__(self, content):
        self.content = content
        self.requests: list[str] = []

    def fetch_invoice_pdf(self, series, number):
        self.requests.append(f"{series}{number}")
        return Found(self.content)


class TestBlankDocuments:
    """Tests for documents served for numbers that were never issued."""

    def test_blank_documents_end_the_run(self, tmp_path, catalog, template_path, blank_pdf):
        source = BlankSource(blank_pdf)
        service = CertificateService(
            source=source,
            catalog=catalog,
            composer=CertificateComposer([template_path]),
            records=JsonlCertificateRecordStore(tmp_path / "certificates.jsonl"),
            output_dir=tmp_path / "output",
        )
        store = MemoryCheckpoint("PK202124600")

        result = DiscoveryDriver(service, store).run(max_attempts=10)

        assert source.requests == ["PK202124601", "PK202124602"]
        assert result.stopped_on_not_found
        assert result.totals.not_found == 2
        assert result.errors == []
        assert store.writes == []
