"""
Read-only SmartBill client for downloading rendered invoice PDFs.

Only GET requests are issued. Every download passes through the shared
RateLimitGate and reports a tagged outcome instead of raising, so callers
can tell a missing invoice from a transient failure without inspecting
error messages.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Union

import httpx

from .config import (
    MIN_ERROR_BODY_BYTES,
    MIN_INVOICE_PDF_BYTES,
    NOT_FOUND_MARKERS,
    SMARTBILL_BASE_URL,
    SMARTBILL_CIF,
    SMARTBILL_TIMEOUT_SECONDS,
    SMARTBILL_TOKEN,
    SMARTBILL_USERNAME,
    logger,
)
from .rate_limit import RateLimitGate


@dataclass(frozen=True)
class Found:
    """The invoice exists; `content` is its PDF."""
    content: bytes


@dataclass(frozen=True)
class NotFound:
    """The invoice does not exist upstream."""
    detail: str


@dataclass(frozen=True)
class TransientError:
    """The download failed for a reason unrelated to the invoice's existence."""
    detail: str


FetchOutcome = Union[Found, NotFound, TransientError]


class DocumentSource(Protocol):
    def fetch_invoice_pdf(self, series: str, number: str) -> FetchOutcome: ...


class SmartBillClient:
    """
    Minimal SmartBill API client.

    Args:
        gate: Rate-limit gate shared by every SmartBill client in the process
        username: API user (account e-mail)
        token: API token
        cif: Seller's fiscal code, sent with every request
        base_url: API root
        http_client: Preconfigured httpx client (tests pass a mock transport)
    """

    def __init__(
        self,
        gate: RateLimitGate,
        username: str = SMARTBILL_USERNAME,
        token: str = SMARTBILL_TOKEN,
        cif: str = SMARTBILL_CIF,
        base_url: str = SMARTBILL_BASE_URL,
        http_client: Optional[httpx.Client] = None,
    ):
        self.gate = gate
        self.cif = cif
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.Client(timeout=SMARTBILL_TIMEOUT_SECONDS)
        self._auth = httpx.BasicAuth(username, token)

    def close(self) -> None:
        self._client.close()

    def fetch_invoice_pdf(self, series: str, number: str) -> FetchOutcome:
        """
        Download the PDF of one invoice.

        Returns:
            Found with the PDF bytes, NotFound when SmartBill has no such invoice
            (404, an error page, or an empty template), TransientError otherwise
        """
        self.gate.wait()

        params = {
            "cif": self.cif,
            "seriesname": str(series).strip(),
            "number": str(number).strip(),
        }
        logger.info(f"Downloading PDF for invoice {params['seriesname']}{params['number']}")

        try:
            response = self._client.get(
                f"{self.base_url}/invoice/pdf",
                params=params,
                auth=self._auth,
                headers={"Accept": "application/pdf, application/octet-stream, */*"},
            )
        except httpx.HTTPError as e:
            logger.error(f"SmartBill request failed: {e}")
            return TransientError(f"SmartBill request failed: {e}")

        return self._classify_response(response)

    def _classify_response(self, response: httpx.Response) -> FetchOutcome:
        content = response.content
        logger.info(f"SmartBill responded {response.status_code} ({len(content)} bytes)")

        if response.status_code == 404:
            return NotFound(f"SmartBill PDF error 404: {response.text[:200]}")

        if not response.is_success:
            return TransientError(f"SmartBill PDF error {response.status_code}: {response.text[:200]}")

        if not content.startswith(b"%PDF"):
            body = content.decode("utf-8", errors="replace")
            lowered = body.lower()
            if any(marker in lowered for marker in NOT_FOUND_MARKERS) or len(content) < MIN_ERROR_BODY_BYTES:
                return NotFound(f"SmartBill returned no invoice: {body[:200]}")
            return TransientError(f"SmartBill did not return a valid PDF: {body[:200]}")

        if len(content) < MIN_INVOICE_PDF_BYTES:
            return NotFound(f"PDF too small ({len(content)} bytes), invoice probably not issued")

        return Found(content)
