"""Spreadsheet import and export for lead records."""

from .exporters import UnsupportedFileTypeError, export_leads
from .loaders import SUPPORTED_EXTENSIONS, read_rows, validate_upload
from .normalizer import normalize_row
from .pipeline import ImportPipeline, ImportPreview, ImportReport, RowError

__all__ = [
    "SUPPORTED_EXTENSIONS",
    "ImportPipeline",
    "ImportPreview",
    "ImportReport",
    "RowError",
    "UnsupportedFileTypeError",
    "export_leads",
    "normalize_row",
    "read_rows",
    "validate_upload",
]
