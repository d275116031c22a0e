"""Map loosely formatted spreadsheet rows onto :class:`ImportRow` values."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from ..models import DEFAULT_SOURCE, DEFAULT_STATUS, SOURCES, ImportRow, canonical_status, status_key

_FIELD_SYNONYMS: Mapping[str, Sequence[str]] = {
    "full_name": ("contact_name", "full_name", "name"),
    "first_name": ("first_name", "first"),
    "last_name": ("last_name", "last"),
    "email": ("email", "email_address"),
    "phone": ("phone", "mobile", "phone_number"),
    "source": ("source",),
    "status": ("status",),
    "campaign": ("campaign", "campaign_name"),
}

# Labels used by exports and older templates that differ from the token.
_STATUS_ALIASES = {
    "new lead": "new",
    "junk / invalid": "junk",
    "invalid": "junk",
}
_SOURCE_BY_KEY = {status_key(source): source for source in SOURCES}


def header_key(header: Any) -> str:
    """``"Contact Name"``, ``"contactName"`` and ``"contact_name"`` share one key."""

    return status_key(header)


def resolve_columns(columns: Iterable[Any]) -> Dict[str, List[Any]]:
    """Columns matching each field's synonyms, in sheet order."""

    resolved: Dict[str, List[Any]] = {field: [] for field in _FIELD_SYNONYMS}
    for column in columns:
        key = header_key(column)
        for field, synonyms in _FIELD_SYNONYMS.items():
            if key in {header_key(name) for name in synonyms}:
                resolved[field].append(column)
                break
    return resolved


def normalize_status(value: Any) -> str:
    text = _clean_text(value)
    if text is None:
        return DEFAULT_STATUS
    lowered = " ".join(text.casefold().split())
    return _STATUS_ALIASES.get(lowered) or canonical_status(lowered) or DEFAULT_STATUS


def normalize_source(value: Any) -> str:
    text = _clean_text(value)
    if text is None:
        return DEFAULT_SOURCE
    return _SOURCE_BY_KEY.get(status_key(text), DEFAULT_SOURCE)


def split_full_name(value: str) -> List[str]:
    parts = value.split()
    if not parts:
        return ["", ""]
    return [parts[0], " ".join(parts[1:])]


def normalize_row(
    row: Mapping[Any, Any],
    index: int,
    *,
    columns: Optional[Mapping[str, Sequence[Any]]] = None,
) -> ImportRow:
    """Normalise the *index*-th data row (0-based) of a sheet.

    ``row_index`` on the result is the 1-based sheet row, counting the header.
    """

    columns = columns if columns is not None else resolve_columns(row.keys())

    full_name = _extract(row, columns["full_name"])
    if full_name:
        first_name, last_name = split_full_name(full_name)
    else:
        first_name = _extract(row, columns["first_name"]) or ""
        last_name = _extract(row, columns["last_name"]) or ""

    email = (_extract(row, columns["email"]) or "").lower()
    phone = "".join((_extract(row, columns["phone"]) or "").split())

    return ImportRow(
        first_name=first_name.strip(),
        last_name=last_name.strip(),
        email=email,
        phone=phone,
        status=normalize_status(_extract(row, columns["status"])),
        source=normalize_source(_extract(row, columns["source"])),
        row_index=index + 2,
        campaign_name=_extract(row, columns["campaign"]),
    )


def _extract(row: Mapping[Any, Any], columns: Sequence[Any]) -> Optional[str]:
    for column in columns:
        if column not in row:
            continue
        text = _clean_text(row[column])
        if text is not None:
            return text
    return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) and pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


__all__ = [
    "header_key",
    "resolve_columns",
    "normalize_status",
    "normalize_source",
    "normalize_row",
    "split_full_name",
]
