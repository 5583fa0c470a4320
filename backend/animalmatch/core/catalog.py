"""Animal catalog loaded once at startup."""

from __future__ import annotations

import json
from collections.abc import Iterator, Sequence
from pathlib import Path

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from animalmatch.core.errors import CatalogError

logger = structlog.get_logger("animalmatch.catalog")


class AnimalRecord(BaseModel):
    """A single catalog entry."""

    model_config = ConfigDict(frozen=True, strict=True)

    name: str = Field(..., description="Animal name, also the letters that get profiled")
    description: str = Field(..., description="Short description shown with a match")


_records_adapter = TypeAdapter(list[AnimalRecord])


class CatalogStore(Sequence[AnimalRecord]):
    """Read-only, non-empty collection of animal records.

    Built once and shared by every request; there is no mutation API so
    concurrent readers need no locking.
    """

    def __init__(self, records: Sequence[AnimalRecord]) -> None:
        if not records:
            raise CatalogError("Animal catalog is empty")
        self._records: tuple[AnimalRecord, ...] = tuple(records)

    def __getitem__(self, index):  # type: ignore[override]
        return self._records[index]

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[AnimalRecord]:
        return iter(self._records)

    def __repr__(self) -> str:
        return f"CatalogStore({len(self._records)} animals)"


def parse_catalog(raw: object) -> CatalogStore:
    """Validate decoded JSON into a catalog.

    Raises:
        CatalogError: If the payload is not a non-empty list of
            {name, description} string records
    """
    try:
        records = _records_adapter.validate_python(raw)
    except ValidationError as e:
        raise CatalogError(f"Invalid animal catalog: {e.error_count()} validation error(s)") from e
    return CatalogStore(records)


def load_catalog(path: Path) -> CatalogStore:
    """Load the animal catalog from a JSON file.

    Args:
        path: JSON file holding a list of {"name", "description"} objects

    Returns:
        CatalogStore with every record

    Raises:
        CatalogError: If the file is missing, not JSON, or fails validation
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except FileNotFoundError as e:
        raise CatalogError(f"Animal catalog not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise CatalogError(f"Animal catalog could not be read: {path}: {e}") from e

    catalog = parse_catalog(raw)
    logger.info("Animal catalog loaded", path=str(path), animals=len(catalog))
    return catalog
