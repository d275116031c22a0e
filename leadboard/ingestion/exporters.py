"""Export the loaded leads to a spreadsheet with human readable columns."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, MutableMapping, Optional, Sequence, Union

import pandas as pd

from ..errors import ValidationError
from ..models import DEFAULT_SOURCE, SOURCE_LABELS, STATUS_LABELS, Lead, canonical_status

PathLike = Union[str, Path]

EXPORT_COLUMNS = (
    "Lead ID",
    "Contact Name",
    "Email",
    "Phone",
    "Source",
    "Campaign",
    "Assigned Agent",
    "Priority",
    "Status",
    "Created Date",
)


class UnsupportedFileTypeError(ValidationError):
    """Raised when an export path has a suffix other than CSV or XLSX."""


def export_leads(
    leads: Iterable[Lead],
    path: PathLike,
    *,
    sheet_name: str = "Leads",
    exporter_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> Path:
    """Write *leads* to a CSV or Excel file and return the path written."""

    output_path = Path(path)
    dataframe = leads_to_dataframe(list(leads))
    _write_dataframe(dataframe, output_path, sheet_name=sheet_name, exporter_kwargs=exporter_kwargs)
    return output_path


def leads_to_dataframe(leads: Sequence[Lead]) -> pd.DataFrame:
    return pd.DataFrame([_lead_to_row(lead) for lead in leads], columns=list(EXPORT_COLUMNS))


def _lead_to_row(lead: Lead) -> MutableMapping[str, object]:
    return {
        "Lead ID": f"LEAD-{lead.id[-6:]}",
        "Contact Name": lead.contact.full_name or "N/A",
        "Email": lead.contact.email or "-",
        "Phone": lead.contact.phone or "-",
        "Source": source_label(lead.source),
        "Campaign": lead.campaign_name or "-",
        "Assigned Agent": lead.assigned_agent.display_name() if lead.assigned_agent else "Unassigned",
        "Priority": lead.priority.strip().capitalize() if lead.priority and lead.priority.strip() else "Warm",
        "Status": status_label(lead.status),
        "Created Date": lead.created_at.date().isoformat() if lead.created_at else "",
    }


def status_label(status: Optional[str]) -> str:
    if not status:
        return STATUS_LABELS["new"]
    canonical = canonical_status(status)
    if canonical:
        return STATUS_LABELS[canonical]
    return status[:1].upper() + status[1:].replace("_", " ")


def source_label(source: Optional[str]) -> str:
    if not source:
        return SOURCE_LABELS[DEFAULT_SOURCE]
    return SOURCE_LABELS.get(source.strip().lower(), source)


def _write_dataframe(
    dataframe: pd.DataFrame,
    path: Path,
    *,
    sheet_name: str,
    exporter_kwargs: Optional[MutableMapping[str, Any]],
) -> None:
    exporter_kwargs = dict(exporter_kwargs or {})
    suffix = path.suffix.lower()
    if suffix == ".csv":
        dataframe.to_csv(path, index=False, **exporter_kwargs)
        return
    if suffix == ".xlsx":
        engine = exporter_kwargs.pop("engine", None) or "openpyxl"
        dataframe.to_excel(path, index=False, sheet_name=sheet_name, engine=engine, **exporter_kwargs)
        return
    raise UnsupportedFileTypeError(f"Unsupported export file extension: {suffix}")


__all__ = ["EXPORT_COLUMNS", "UnsupportedFileTypeError", "export_leads", "leads_to_dataframe", "source_label", "status_label"]
