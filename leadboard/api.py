"""HTTP client for the remote lead record store."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

import httpx

from .config import ClientSettings
from .errors import (
    ApiError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
)
from .models import Lead, Reference

LOGGER = logging.getLogger(__name__)

_STATUS_ERRORS = {
    401: AuthenticationError,
    403: PermissionDeniedError,
    404: NotFoundError,
}


@dataclass
class LeadPage:
    """One page of leads plus the raw pagination envelope, if any."""

    leads: List[Lead] = field(default_factory=list)
    pagination: Optional[Mapping[str, Any]] = None

    @property
    def total(self) -> int:
        if self.pagination and self.pagination.get("total") is not None:
            return int(self.pagination["total"])
        return len(self.leads)


class LeadsApiClient:
    """Thin wrapper around :class:`httpx.Client` speaking the leads JSON API."""

    def __init__(self, settings: Optional[ClientSettings] = None, *, client: Optional[httpx.Client] = None) -> None:
        self.settings = settings or ClientSettings()
        if client is None:
            headers = {"Accept": "application/json"}
            if self.settings.api_token:
                headers["Authorization"] = f"Bearer {self.settings.api_token}"
            client = httpx.Client(
                base_url=self.settings.api_url,
                timeout=self.settings.timeout_seconds,
                headers=headers,
            )
        self._client = client

    def __enter__(self) -> "LeadsApiClient":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # --- Leads ---

    def list_leads(self, params: Mapping[str, Any]) -> LeadPage:
        body = self._request("GET", "leads", params=dict(params))
        return LeadPage(leads=_parse_leads(body.get("leads") or []), pagination=body.get("pagination"))

    def get_lead(self, lead_id: str) -> Optional[Lead]:
        body = self._request("GET", f"leads/{lead_id}")
        return _parse_lead(body.get("lead"))

    def update_lead(self, lead_id: str, changes: Mapping[str, Any]) -> Optional[Lead]:
        body = self._request("PUT", f"leads/{lead_id}", json=dict(changes))
        return _parse_lead(body.get("lead"))

    def assign_agent(self, lead_id: str, agent_id: Optional[str]) -> Optional[Lead]:
        body = self._request("PUT", f"leads/{lead_id}/assign", json={"assignedAgent": agent_id})
        return _parse_lead(body.get("lead"))

    def auto_assign(self, lead_id: str, method: str, agency_id: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"leads/{lead_id}/auto-assign",
            json={"assignmentMethod": method, "agencyId": agency_id},
        )

    def rescore(self, lead_id: str) -> Dict[str, Any]:
        return self._request("POST", f"leads/{lead_id}/re-score")

    def delete_lead(self, lead_id: str) -> None:
        self._request("DELETE", f"leads/{lead_id}")

    def bulk_create(self, rows: Iterable[Mapping[str, Any]]) -> Dict[str, Any]:
        return self._request("POST", "leads/bulk", json={"leads": [dict(row) for row in rows]})

    # --- Filter metadata ---

    def list_agents(self, *, agency: Optional[str] = None, limit: int = 1000) -> List[Reference]:
        params: Dict[str, Any] = {"role": "agent", "limit": limit}
        if agency:
            params["agency"] = agency
        body = self._request("GET", "users", params=params)
        return _parse_references(body.get("users") or [])

    def list_agencies(self, *, limit: int = 1000) -> List[Reference]:
        body = self._request("GET", "agencies", params={"limit": limit})
        return _parse_references(body.get("agencies") or [])

    def list_properties(self, *, limit: int = 100) -> List[Reference]:
        body = self._request("GET", "properties", params={"limit": limit})
        return _parse_references(body.get("properties") or [])

    # --- Transport ---

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Dict[str, Any]:
        try:
            response = self._client.request(method, path, params=params, json=json)
        except httpx.TransportError as exc:
            LOGGER.warning("%s %s failed: %s", method, path, exc)
            raise NetworkError(str(exc) or None) from exc

        LOGGER.debug("%s %s -> %s", method, path, response.status_code)
        body = _decode_body(response)
        if response.is_success:
            return body

        message = _error_message(body)
        error_cls = _STATUS_ERRORS.get(response.status_code, ApiError)
        raise error_cls(message, status_code=response.status_code)


def _decode_body(response: httpx.Response) -> Dict[str, Any]:
    if not response.content:
        return {}
    try:
        body = response.json()
    except ValueError:
        LOGGER.debug("Non-JSON response body for %s", response.request.url)
        return {}
    return body if isinstance(body, dict) else {"data": body}


def _error_message(body: Mapping[str, Any]) -> Optional[str]:
    message = body.get("message")
    if message:
        return str(message)
    errors = body.get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
        msg = errors[0].get("msg") or errors[0].get("message")
        if msg:
            return str(msg)
    return None


def _parse_lead(payload: Any) -> Optional[Lead]:
    if not isinstance(payload, Mapping):
        return None
    try:
        return Lead.from_api(payload)
    except ValueError:
        LOGGER.warning("Discarding malformed lead payload: %r", payload)
        return None


def _parse_leads(payloads: Iterable[Any]) -> List[Lead]:
    leads: List[Lead] = []
    for payload in payloads:
        lead = _parse_lead(payload)
        if lead is not None:
            leads.append(lead)
    return leads


def _parse_references(payloads: Iterable[Any]) -> List[Reference]:
    references: List[Reference] = []
    for payload in payloads:
        ref = Reference.from_api(payload)
        if ref is not None:
            references.append(ref)
    return references


__all__ = ["LeadsApiClient", "LeadPage"]
