from __future__ import annotations

import math
from typing import Any, Dict, List, Optional

import pytest

from leadboard.api import LeadPage
from leadboard.errors import NotFoundError
from leadboard.models import ActingUser, Contact, Lead, Reference


def build_lead(lead_id: str, **overrides: Any) -> Lead:
    values: Dict[str, Any] = {
        "contact": Contact(first_name="Lead", last_name=lead_id, email=f"{lead_id}@example.com"),
        "status": "new",
        "priority": "warm",
        "source": "website",
    }
    values.update(overrides)
    return Lead(id=lead_id, **values)


class FakeLeadsApi:
    """In-memory stand-in for LeadsApiClient that records every call."""

    def __init__(self, leads=()) -> None:
        self.leads: Dict[str, Lead] = {lead.id: lead for lead in leads}
        self.calls: List[tuple] = []
        self.fail_on: Dict[Any, Exception] = {}
        self.reported_total: Optional[int] = None
        self.bulk_response: Dict[str, Any] = {}
        self.agents: List[Reference] = [Reference("agent-1", "Asha Rao")]
        self.agencies: List[Reference] = [Reference("agency-1", "Skyline Realty")]
        self.properties: List[Reference] = [Reference("prop-1", "Palm Heights")]
        self.echo: Dict[str, Any] = {}
        self.closed = False

    def _check(self, method: str, lead_id: Optional[str] = None) -> None:
        exc = self.fail_on.get((method, lead_id)) or self.fail_on.get(method)
        if exc is not None:
            raise exc

    def list_leads(self, params) -> LeadPage:
        self.calls.append(("list_leads", dict(params)))
        self._check("list_leads")
        page = int(params.get("page", 1))
        limit = int(params.get("limit", 10))
        ordered = list(self.leads.values())
        start = (page - 1) * limit
        total = len(ordered) if self.reported_total is None else self.reported_total
        return LeadPage(
            leads=ordered[start : start + limit],
            pagination={"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)},
        )

    def get_lead(self, lead_id: str) -> Optional[Lead]:
        self.calls.append(("get_lead", lead_id))
        self._check("get_lead", lead_id)
        if lead_id not in self.leads:
            raise NotFoundError("Lead not found", status_code=404)
        return self.leads[lead_id]

    def update_lead(self, lead_id: str, changes) -> Optional[Lead]:
        self.calls.append(("update_lead", lead_id, dict(changes)))
        self._check("update_lead", lead_id)
        lead = self.leads[lead_id]
        for wire_field, value in changes.items():
            lead = lead.with_value(wire_field, self.echo.get(wire_field, value))
        self.leads[lead_id] = lead
        return lead

    def assign_agent(self, lead_id: str, agent_id: Optional[str]) -> Optional[Lead]:
        self.calls.append(("assign_agent", lead_id, agent_id))
        self._check("assign_agent", lead_id)
        lead = self.leads[lead_id].with_value("assignedAgent", agent_id)
        self.leads[lead_id] = lead
        return lead

    def auto_assign(self, lead_id: str, method: str, agency_id: str) -> Dict[str, Any]:
        self.calls.append(("auto_assign", lead_id, method, agency_id))
        self._check("auto_assign", lead_id)
        return {"lead": {"_id": lead_id}}

    def rescore(self, lead_id: str) -> Dict[str, Any]:
        self.calls.append(("rescore", lead_id))
        self._check("rescore", lead_id)
        return {"score": 80}

    def delete_lead(self, lead_id: str) -> None:
        self.calls.append(("delete_lead", lead_id))
        self._check("delete_lead", lead_id)
        self.leads.pop(lead_id, None)

    def bulk_create(self, rows) -> Dict[str, Any]:
        rows = [dict(row) for row in rows]
        self.calls.append(("bulk_create", rows))
        self._check("bulk_create")
        return dict(self.bulk_response) or {"created": len(rows), "errors": []}

    def list_agents(self, *, agency=None, limit=1000):
        self.calls.append(("list_agents", agency))
        self._check("list_agents")
        return list(self.agents)

    def list_agencies(self, *, limit=1000):
        self.calls.append(("list_agencies",))
        self._check("list_agencies")
        return list(self.agencies)

    def list_properties(self, *, limit=100):
        self.calls.append(("list_properties",))
        self._check("list_properties")
        return list(self.properties)

    def close(self) -> None:
        self.closed = True

    def calls_named(self, name: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == name]


@pytest.fixture()
def make_lead():
    return build_lead


@pytest.fixture()
def fake_api():
    return FakeLeadsApi([build_lead(f"lead-{index}") for index in range(1, 4)])


@pytest.fixture()
def admin():
    return ActingUser(id="u-admin", role="super_admin")


@pytest.fixture()
def agent_user():
    return ActingUser(id="u-agent", role="agent", agency="agency-1")


@pytest.fixture()
def api_factory():
    return FakeLeadsApi
