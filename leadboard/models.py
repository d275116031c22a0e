"""Domain models shared by the fetch, mutation, import and stats layers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

LOGGER = logging.getLogger(__name__)


# --- Pipeline vocabularies ---

STATUSES: Tuple[str, ...] = (
    "new",
    "contacted",
    "qualified",
    "site_visit_scheduled",
    "site_visit_completed",
    "negotiation",
    "booked",
    "lost",
    "closed",
    "junk",
)
DEFAULT_STATUS = "new"
# Statuses for which an overdue follow-up still matters.
ACTIVE_STATUSES: Tuple[str, ...] = STATUSES[:6]

STATUS_LABELS: Dict[str, str] = {
    "new": "New Lead",
    "contacted": "Contacted",
    "qualified": "Qualified",
    "site_visit_scheduled": "Site Visit Scheduled",
    "site_visit_completed": "Site Visit Completed",
    "negotiation": "Negotiation",
    "booked": "Booked",
    "lost": "Lost",
    "closed": "Closed",
    "junk": "Junk / Invalid",
}

PRIORITIES: Tuple[str, ...] = ("hot", "warm", "cold", "not_interested")

SOURCES: Tuple[str, ...] = ("website", "phone", "email", "walk_in", "referral", "social_media", "other")
DEFAULT_SOURCE = "other"
SOURCE_LABELS: Dict[str, str] = {
    "website": "Website",
    "phone": "Phone",
    "email": "Email",
    "walk_in": "Walk In",
    "referral": "Referral",
    "social_media": "Social Media",
    "other": "Other",
}

VIEW_LIST = "list"
VIEW_BOARD = "board"
VIEW_MODES = (VIEW_LIST, VIEW_BOARD)


def status_key(value: Any) -> str:
    """Case-folded status with whitespace, underscores and hyphens removed."""

    if value is None:
        return ""
    return "".join(ch for ch in str(value).casefold() if not ch.isspace() and ch not in "_-")


_STATUS_BY_KEY = {status_key(status): status for status in STATUSES}


def canonical_status(value: Any) -> Optional[str]:
    """Return the canonical status token for *value*, or ``None`` if unknown."""

    return _STATUS_BY_KEY.get(status_key(value))


def board_column_for(status: Any) -> str:
    """Kanban column holding a lead with *status*; unknown or blank land in ``new``."""

    return canonical_status(status) or DEFAULT_STATUS


def priority_key(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().casefold()
    return text or None


# --- Lead ---

@dataclass(frozen=True, slots=True)
class Reference:
    """Weak reference to another record (agent, agency, property)."""

    id: str
    name: Optional[str] = None

    @classmethod
    def from_api(cls, value: Any) -> Optional["Reference"]:
        if value is None or value == "":
            return None
        if isinstance(value, Reference):
            return value
        if isinstance(value, Mapping):
            ref_id = value.get("_id") or value.get("id")
            if not ref_id:
                return None
            name = value.get("name") or value.get("title")
            if not name:
                name = " ".join(
                    filter(None, [value.get("firstName"), value.get("lastName")])
                ).strip() or None
            return cls(id=str(ref_id), name=name)
        return cls(id=str(value))

    def display_name(self) -> str:
        return self.name or self.id


def reference_id(value: Any) -> Optional[str]:
    """Identity of a reference given as an id string, mapping or :class:`Reference`."""

    ref = Reference.from_api(value)
    return ref.id if ref else None


@dataclass(frozen=True, slots=True)
class Contact:
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""

    @property
    def full_name(self) -> str:
        return " ".join(filter(None, [self.first_name, self.last_name])).strip()


# Wire field name -> Lead attribute, for the fields operators can change inline.
MUTABLE_FIELDS: Dict[str, str] = {
    "status": "status",
    "priority": "priority",
    "assignedAgent": "assigned_agent",
    "agency": "agency",
}
REFERENCE_FIELDS = frozenset({"assignedAgent", "agency"})


@dataclass(frozen=True, slots=True)
class Lead:
    """Immutable snapshot of a lead as last seen from the record store."""

    id: str
    contact: Contact = field(default_factory=Contact)
    status: Optional[str] = None
    priority: Optional[str] = None
    source: Optional[str] = None
    campaign_name: Optional[str] = None
    assigned_agent: Optional[Reference] = None
    agency: Optional[Reference] = None
    property: Optional[Reference] = None
    score: Optional[float] = None
    follow_up_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    entry_permissions: Mapping[str, Mapping[str, bool]] = field(default_factory=dict)

    @classmethod
    def from_api(cls, payload: Mapping[str, Any]) -> "Lead":
        lead_id = payload.get("_id") or payload.get("id")
        if not lead_id:
            raise ValueError("Lead payload is missing an identifier")
        contact = payload.get("contact") or {}
        score = payload.get("score")
        return cls(
            id=str(lead_id),
            contact=Contact(
                first_name=contact.get("firstName") or "",
                last_name=contact.get("lastName") or "",
                email=contact.get("email") or "",
                phone=contact.get("phone") or "",
            ),
            status=payload.get("status"),
            priority=payload.get("priority"),
            source=payload.get("source"),
            campaign_name=payload.get("campaignName"),
            assigned_agent=Reference.from_api(payload.get("assignedAgent")),
            agency=Reference.from_api(payload.get("agency")),
            property=Reference.from_api(payload.get("property")),
            score=float(score) if isinstance(score, (int, float)) else None,
            follow_up_date=parse_timestamp(payload.get("followUpDate")),
            created_at=parse_timestamp(payload.get("createdAt")),
            updated_at=parse_timestamp(payload.get("updatedAt")),
            entry_permissions=_parse_entry_permissions(payload.get("entryPermissions")),
        )

    def board_column(self) -> str:
        return board_column_for(self.status)

    def value_of(self, wire_field: str) -> Any:
        return getattr(self, _attribute_for(wire_field))

    def with_value(self, wire_field: str, value: Any) -> "Lead":
        if wire_field in REFERENCE_FIELDS:
            value = Reference.from_api(value)
        return replace(self, **{_attribute_for(wire_field): value})


def _attribute_for(wire_field: str) -> str:
    try:
        return MUTABLE_FIELDS[wire_field]
    except KeyError:
        raise ValueError(f"Field '{wire_field}' cannot be changed inline") from None


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        LOGGER.debug("Ignoring unparseable timestamp %r", value)
        return None


def _parse_entry_permissions(value: Any) -> Dict[str, Dict[str, bool]]:
    if not isinstance(value, Mapping):
        return {}
    parsed: Dict[str, Dict[str, bool]] = {}
    for role, actions in value.items():
        if isinstance(actions, Mapping):
            parsed[str(role)] = dict(actions)
    return parsed


@dataclass(frozen=True, slots=True)
class Pagination:
    page: int = 1
    limit: int = 10
    total: int = 0
    pages: int = 0

    @classmethod
    def from_api(cls, payload: Optional[Mapping[str, Any]], *, page: int, limit: int, fetched: int) -> "Pagination":
        if not payload:
            pages = max(1, -(-fetched // limit)) if limit else 1
            return cls(page=page, limit=limit, total=fetched, pages=pages)
        limit = int(payload.get("limit") or limit)
        total = int(payload.get("total") if payload.get("total") is not None else fetched)
        pages = payload.get("pages")
        if pages is None:
            pages = -(-total // limit) if limit else 0
        return cls(page=int(payload.get("page") or page), limit=limit, total=total, pages=int(pages))


# --- Query descriptor ---

FILTER_FIELDS: Tuple[str, ...] = (
    "search",
    "status",
    "priority",
    "source",
    "campaign",
    "agency",
    "owner",
    "property",
    "reporting_manager",
    "team",
    "start_date",
    "end_date",
)
_WIRE_NAMES = {
    "reporting_manager": "reportingManager",
    "start_date": "startDate",
    "end_date": "endDate",
}


@dataclass(frozen=True)
class QueryDescriptor:
    """Filter, pagination and view-mode state driving every fetch."""

    search: str = ""
    status: str = ""
    priority: str = ""
    source: str = ""
    campaign: str = ""
    agency: str = ""
    owner: str = ""
    property: str = ""
    reporting_manager: str = ""
    team: str = ""
    start_date: str = ""
    end_date: str = ""
    page: int = 1
    limit: int = 10
    view_mode: str = VIEW_LIST

    def __post_init__(self) -> None:
        if self.view_mode not in VIEW_MODES:
            raise ValueError(f"Unknown view mode '{self.view_mode}'")
        if self.page < 1 or self.limit < 1:
            raise ValueError("page and limit must be positive")

    def filters(self) -> Dict[str, str]:
        return {name: getattr(self, name) for name in FILTER_FIELDS}

    def has_active_filters(self) -> bool:
        return any(self.filters().values())

    def with_filters(self, **changes: Any) -> "QueryDescriptor":
        """Return a copy with *changes* applied; any filter edit goes back to page 1."""

        unknown = set(changes) - set(FILTER_FIELDS)
        if unknown:
            raise ValueError(f"Unknown filter(s): {', '.join(sorted(unknown))}")
        cleaned = {key: "" if value is None else str(value).strip() for key, value in changes.items()}
        return replace(self, page=1, **cleaned)

    def cleared(self) -> "QueryDescriptor":
        return replace(self, page=1, **{name: "" for name in FILTER_FIELDS})

    def fingerprint(self) -> str:
        return json.dumps(
            {
                "filters": self.filters(),
                "page": self.page,
                "limit": self.limit,
                "view_mode": self.view_mode,
            },
            sort_keys=True,
        )

    def to_params(self, *, page: Optional[int] = None, limit: Optional[int] = None) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "page": self.page if page is None else page,
            "limit": self.limit if limit is None else limit,
        }
        for name, value in self.filters().items():
            if value:
                params[_WIRE_NAMES.get(name, name)] = value
        return params


# --- Import rows ---

@dataclass(frozen=True, slots=True)
class ImportRow:
    """Spreadsheet row normalised into the shape accepted by ``POST leads/bulk``."""

    first_name: str
    last_name: str
    email: str
    phone: str
    status: str
    source: str
    row_index: int
    campaign_name: Optional[str] = None

    def is_viable(self) -> bool:
        return bool(self.first_name) and bool(self.email or self.phone)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contact": {
                "firstName": self.first_name,
                "lastName": self.last_name,
                "email": self.email,
                "phone": self.phone,
            },
            "status": self.status,
            "source": self.source,
            "_rowIndex": self.row_index,
        }
        if self.campaign_name:
            payload["campaignName"] = self.campaign_name
        return payload


@dataclass(frozen=True, slots=True)
class ActingUser:
    """The signed-in operator on whose behalf requests are made."""

    id: str
    role: str
    agency: Optional[str] = None


__all__ = [
    "STATUSES",
    "DEFAULT_STATUS",
    "ACTIVE_STATUSES",
    "STATUS_LABELS",
    "PRIORITIES",
    "SOURCES",
    "DEFAULT_SOURCE",
    "SOURCE_LABELS",
    "VIEW_LIST",
    "VIEW_BOARD",
    "VIEW_MODES",
    "MUTABLE_FIELDS",
    "REFERENCE_FIELDS",
    "FILTER_FIELDS",
    "status_key",
    "canonical_status",
    "board_column_for",
    "priority_key",
    "reference_id",
    "parse_timestamp",
    "Reference",
    "Contact",
    "Lead",
    "Pagination",
    "QueryDescriptor",
    "ImportRow",
    "ActingUser",
]
