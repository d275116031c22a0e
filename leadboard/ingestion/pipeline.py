"""Spreadsheet import: validate, normalise, filter, then submit in one batch."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from ..config import DEFAULT_MAX_UPLOAD_BYTES
from ..errors import FileValidationError, ValidationError
from ..models import ImportRow
from .loaders import read_rows, validate_upload
from .normalizer import normalize_row, resolve_columns

LOGGER = logging.getLogger(__name__)

NO_VALID_LEADS_MESSAGE = "No valid leads found in the file"
EMPTY_BATCH_MESSAGE = "No data to upload"


class BulkCreator(Protocol):
    def bulk_create(self, rows) -> Dict[str, Any]:  # pragma: no cover - runtime protocol
        ...


@dataclass
class ImportPreview:
    """Rows that passed normalisation, ready for operator review."""

    rows: List[ImportRow] = field(default_factory=list)
    total_rows: int = 0
    rejected_count: int = 0

    @property
    def valid_count(self) -> int:
        return len(self.rows)

    @property
    def message(self) -> str:
        return f"Found {self.valid_count} valid leads in the file"


@dataclass(frozen=True)
class RowError:
    row: Optional[int]
    error: str


@dataclass
class ImportReport:
    created: int = 0
    errors: List[RowError] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def message(self) -> str:
        if self.errors:
            return f"Uploaded {self.created} leads. {len(self.errors)} rows had errors."
        return f"Successfully uploaded {self.created} leads"


class ImportPipeline:
    def __init__(self, api: BulkCreator, *, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> None:
        self._api = api
        self._max_bytes = max_bytes

    def load(self, path: Union[str, Path]) -> ImportPreview:
        """Validate and parse *path*; rows missing a name or a contact channel are dropped."""

        path_obj = validate_upload(path, max_bytes=self._max_bytes)
        raw_rows = read_rows(path_obj)
        columns = resolve_columns(raw_rows[0].keys())

        viable: List[ImportRow] = []
        for index, raw in enumerate(raw_rows):
            row = normalize_row(raw, index, columns=columns)
            if row.is_viable():
                viable.append(row)
            else:
                LOGGER.debug("Dropping sheet row %s: missing first name or contact channel", row.row_index)

        rejected = len(raw_rows) - len(viable)
        LOGGER.info("Parsed %s: %s valid, %s rejected", path_obj.name, len(viable), rejected)
        if not viable:
            raise FileValidationError(NO_VALID_LEADS_MESSAGE)
        return ImportPreview(rows=viable, total_rows=len(raw_rows), rejected_count=rejected)

    def submit(self, rows: Sequence[ImportRow]) -> ImportReport:
        """Create every row with a single bulk request; per-row failures are reported, not raised."""

        rows = list(rows)
        if not rows:
            raise ValidationError(EMPTY_BATCH_MESSAGE)

        response = self._api.bulk_create([row.to_payload() for row in rows])
        errors = _parse_row_errors(response.get("errors"))
        created = response.get("created")
        if created is None:
            created = max(len(rows) - len(errors), 0)
        report = ImportReport(created=int(created), errors=errors)
        if errors:
            LOGGER.warning("Bulk import created %s lead(s); %s row(s) failed", report.created, len(errors))
        else:
            LOGGER.info("Bulk import created %s lead(s)", report.created)
        return report


def _parse_row_errors(payload: Any) -> List[RowError]:
    if not isinstance(payload, list):
        return []
    errors: List[RowError] = []
    for item in payload:
        if isinstance(item, Mapping):
            row = item.get("row")
            errors.append(
                RowError(
                    row=int(row) if isinstance(row, (int, float)) else None,
                    error=str(item.get("error") or item.get("message") or "Unknown error"),
                )
            )
        else:
            errors.append(RowError(row=None, error=str(item)))
    return errors


__all__ = ["ImportPipeline", "ImportPreview", "ImportReport", "RowError"]
