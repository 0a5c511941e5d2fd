"""
Sequential invoice discovery.

SmartBill cannot list invoices, so new ones are found by probing the numbers
that follow the last invoice known to exist. Attempts run strictly one after
another; the not-found counter and the checkpoint both depend on that order.
"""

from typing import Optional

from .certificates import CertificateService
from .config import DISCOVERY_MAX_ATTEMPTS, DISCOVERY_NOT_FOUND_LIMIT, logger
from .exceptions import NotFoundError, ValidationError
from .identifiers import normalize_identifier
from .schemas import CertificateResult, DiscoveryError, DiscoveryRun, GeneratedCertificateSummary
from .storage import CheckpointStore


class DiscoveryDriver:
    """
    Probes consecutive invoice numbers and generates their certificates.

    Args:
        service: Runs one fetch, extract, match, compose cycle per invoice
        checkpoints: Holds the last invoice confirmed to exist
        max_attempts: Default number of invoice numbers probed per run
        not_found_limit: Consecutive missing invoices that end the run
    """

    def __init__(
        self,
        service: CertificateService,
        checkpoints: CheckpointStore,
        max_attempts: int = DISCOVERY_MAX_ATTEMPTS,
        not_found_limit: int = DISCOVERY_NOT_FOUND_LIMIT,
    ):
        self.service = service
        self.checkpoints = checkpoints
        self.max_attempts = max_attempts
        self.not_found_limit = not_found_limit

    def run(self, max_attempts: Optional[int] = None) -> DiscoveryRun:
        """
        Probe the invoice numbers following the checkpoint.

        The checkpoint is only moved to invoices confirmed to exist, and only
        written once the run is over.

        Raises:
            ValidationError: If no checkpoint is set or it cannot be parsed
        """
        attempts = max_attempts if max_attempts is not None else self.max_attempts

        checkpoint = self.checkpoints.get()
        if not checkpoint:
            raise ValidationError("No last processed invoice configured")
        start = normalize_identifier(checkpoint)
        if start is None:
            raise ValidationError(f"Invalid last processed invoice: {checkpoint!r}")

        run = DiscoveryRun(
            start_identifier=str(start),
            max_attempts=attempts,
            consecutive_not_found_limit=self.not_found_limit,
            last_confirmed_identifier=str(start),
        )
        totals = run.totals
        consecutive_not_found = 0
        last_candidate = start

        logger.info(f"Discovery started after {start} (max {attempts} attempts)")

        for i in range(1, attempts + 1):
            candidate = start.next(i)
            last_candidate = candidate
            invoice_number = str(candidate)
            totals.attempted += 1

            try:
                result = self.service.process_invoice(candidate)
            except NotFoundError as e:
                totals.not_found += 1
                consecutive_not_found += 1
                logger.info(f"{invoice_number} not found ({consecutive_not_found}/{self.not_found_limit}): {e}")
                if consecutive_not_found >= self.not_found_limit:
                    run.stopped_on_not_found = True
                    logger.info(f"Discovery stopped after {consecutive_not_found} consecutive missing invoices")
                    break
                continue
            except Exception as e:
                consecutive_not_found = 0
                run.errors.append(DiscoveryError(invoice_number=invoice_number, error=str(e)))
                logger.exception(f"{invoice_number} failed")
                continue

            consecutive_not_found = 0
            if not result.success:
                run.errors.append(DiscoveryError(invoice_number=invoice_number, error=result.error or "Unknown error"))
                logger.warning(f"{invoice_number} could not be processed: {result.error}")
                continue

            totals.existed += 1
            run.last_confirmed_identifier = invoice_number
            self._record(run, result)

        if run.last_confirmed_identifier != run.start_identifier:
            self.checkpoints.set(run.last_confirmed_identifier)
            logger.info(f"Checkpoint advanced to {run.last_confirmed_identifier}")

        if totals.attempted:
            run.searched_range = f"{start.next(1)} - {last_candidate}"

        logger.info(
            f"Discovery finished: {totals.attempted} attempted, {totals.existed} existed, "
            f"{totals.generated} generated, {totals.not_found} not found, {len(run.errors)} errors"
        )
        return run

    @staticmethod
    def _record(run: DiscoveryRun, result: CertificateResult) -> None:
        if result.generated:
            run.totals.generated += 1
            run.generated_certificates.append(GeneratedCertificateSummary(
                invoice_number=result.invoice_number,
                client_name=result.client_name,
                filename=result.filename,
                marketplace_order_ref=result.marketplace_order_ref,
            ))
            logger.info(f"{result.invoice_number}: certificate generated")
        else:
            run.totals.skipped_no_active_products += 1
            logger.info(f"{result.invoice_number}: no active products, skipped")
