"""
Collaborator interfaces and JSON-file implementations.

The pipeline only depends on the protocols below:
- Catalog: read-only product catalog lookup
- CheckpointStore: last invoice confirmed to exist
- CertificateRecordStore: history of generated certificates

The JSON implementations keep everything in DATA_DIR so the command line
works without a database.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from .config import logger
from .schemas import CatalogProduct, CertificateRecord


class Catalog(Protocol):
    def get_by_code(self, code: str) -> Optional[CatalogProduct]: ...

    def get_all(self, include_inactive: bool = True) -> list[CatalogProduct]: ...


class CheckpointStore(Protocol):
    def get(self) -> str: ...

    def set(self, identifier: str) -> None: ...


class CertificateRecordStore(Protocol):
    def save(self, record: CertificateRecord) -> None: ...

    def history(self, limit: int = 100, offset: int = 0) -> list[CertificateRecord]: ...


# ============================================================================
# Catalog
# ============================================================================

class InMemoryCatalog:
    """Catalog backed by a list of products."""

    def __init__(self, products: list[CatalogProduct]):
        self._products = list(products)

    def get_by_code(self, code: str) -> Optional[CatalogProduct]:
        return next((p for p in self._products if p.code == code), None)

    def get_all(self, include_inactive: bool = True) -> list[CatalogProduct]:
        if include_inactive:
            return list(self._products)
        return [p for p in self._products if p.is_active]


class JsonCatalog(InMemoryCatalog):
    """
    Catalog loaded from a JSON array of product objects.

    Example entry:
        {"code": "6427470012345", "name": "ATV electric Premier Hunter 12V negru",
         "warranty_months_pf": 24, "warranty_months_pj": 12, "min_voltage": "10.8",
         "is_active": true, "needs_configuration": false}
    """

    def __init__(self, path: Path):
        self.path = path
        if not path.exists():
            raise FileNotFoundError(f"Catalog file not found: {path}")
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        products = [CatalogProduct.model_validate(item) for item in data]
        logger.info(f"Loaded {len(products)} catalog products from: {path}")
        super().__init__(products)


# ============================================================================
# Checkpoint
# ============================================================================

class JsonCheckpointStore:
    """Stores the last confirmed invoice identifier in a small JSON document."""

    def __init__(self, path: Path):
        self.path = path

    def get(self) -> str:
        if not self.path.exists():
            return ""
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        # A bare JSON string is the identifier itself
        if isinstance(data, str):
            return data
        if not isinstance(data, dict):
            logger.warning(f"Ignoring unrecognized checkpoint file: {self.path}")
            return ""
        return data.get("last_processed_invoice") or ""

    def set(self, identifier: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(
                {
                    "last_processed_invoice": identifier,
                    "updated_at": datetime.now().isoformat(timespec="seconds"),
                },
                f,
                indent=2,
            )
        logger.info(f"Last processed invoice set to: {identifier}")


# ============================================================================
# Certificate Records
# ============================================================================

class JsonlCertificateRecordStore:
    """Appends one JSON line per generated certificate."""

    def __init__(self, path: Path):
        self.path = path

    def save(self, record: CertificateRecord) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(record.model_dump_json() + "\n")
        logger.info(f"Certificate record saved for invoice {record.invoice_number}")

    def history(self, limit: int = 100, offset: int = 0) -> list[CertificateRecord]:
        """Records ordered newest first."""
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            records = [CertificateRecord.model_validate_json(line) for line in f if line.strip()]
        records.reverse()
        return records[offset:offset + limit]
