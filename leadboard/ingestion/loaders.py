"""Validate and read uploaded lead spreadsheets."""
from __future__ import annotations

import logging
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd
from openpyxl.utils.exceptions import InvalidFileException

from ..config import DEFAULT_MAX_UPLOAD_BYTES
from ..errors import FileValidationError

LOGGER = logging.getLogger(__name__)

PathLike = Union[str, Path]

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls")

UNSUPPORTED_TYPE_MESSAGE = "Please upload a CSV or Excel file (.csv, .xlsx, .xls)"
NO_DATA_MESSAGE = "No data found in the file"
PARSE_ERROR_MESSAGE = "Error parsing file. Please check the file format."


def validate_upload(path: PathLike, *, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> Path:
    """Apply the type and size gate before any parsing happens."""

    path_obj = Path(path)
    if path_obj.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise FileValidationError(UNSUPPORTED_TYPE_MESSAGE)
    if not path_obj.is_file():
        raise FileValidationError(f"File not found: {path_obj}")
    if path_obj.stat().st_size > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise FileValidationError(f"File size is too large. Please upload a file smaller than {limit_mb}MB")
    return path_obj


def read_rows(path: PathLike) -> List[Dict[str, Any]]:
    """Return the data rows of a CSV file or the first sheet of a workbook."""

    path_obj = Path(path)
    if path_obj.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise FileValidationError(UNSUPPORTED_TYPE_MESSAGE)
    try:
        dataframe = _read_dataframe(path_obj)
    except pd.errors.EmptyDataError:
        raise FileValidationError(NO_DATA_MESSAGE) from None
    except (ValueError, OSError, zipfile.BadZipFile, InvalidFileException) as exc:
        LOGGER.warning("Could not parse %s: %s", path_obj.name, exc)
        raise FileValidationError(PARSE_ERROR_MESSAGE) from exc

    dataframe.columns = [str(column).strip() for column in dataframe.columns]
    rows = [row.to_dict() for _, row in dataframe.iterrows() if not _row_is_empty(row)]
    if not rows:
        raise FileValidationError(NO_DATA_MESSAGE)
    LOGGER.debug("Read %s row(s) from %s", len(rows), path_obj.name)
    return rows


def _read_dataframe(path_obj: Path) -> pd.DataFrame:
    suffix = path_obj.suffix.lower()
    if suffix == ".csv":
        return pd.read_csv(path_obj, dtype=str, keep_default_na=False, skip_blank_lines=True)
    if suffix == ".xlsx":
        return pd.read_excel(path_obj, sheet_name=0, dtype=str, engine="openpyxl")
    # Legacy .xls workbooks need the xlrd engine (``leadboard[xls]``).
    return pd.read_excel(path_obj, sheet_name=0, dtype=str)


def _row_is_empty(row: pd.Series) -> bool:
    return all(pd.isna(value) or (isinstance(value, str) and not value.strip()) for value in row.values)


__all__ = [
    "SUPPORTED_EXTENSIONS",
    "NO_DATA_MESSAGE",
    "PARSE_ERROR_MESSAGE",
    "UNSUPPORTED_TYPE_MESSAGE",
    "validate_upload",
    "read_rows",
]
