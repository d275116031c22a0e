import json

import pytest

from leadboard.models import (
    STATUSES,
    ImportRow,
    Lead,
    Pagination,
    QueryDescriptor,
    Reference,
    board_column_for,
    canonical_status,
    status_key,
)


def test_status_key_ignores_case_spacing_and_separators():
    assert status_key("Site Visit-Scheduled") == status_key("site_visit_scheduled")
    assert status_key(None) == ""


@pytest.mark.parametrize(
    "raw, column",
    [
        ("NEW", "new"),
        ("site visit completed", "site_visit_completed"),
        ("Negotiation ", "negotiation"),
        (None, "new"),
        ("", "new"),
        ("archived", "new"),
    ],
)
def test_board_column_for_maps_every_status_to_one_column(raw, column):
    assert board_column_for(raw) == column


def test_canonical_status_returns_none_for_unknown():
    assert canonical_status("Booked") == "booked"
    assert canonical_status("pending") is None


def test_lead_from_api_parses_expanded_references():
    lead = Lead.from_api(
        {
            "_id": "abc123",
            "contact": {"firstName": "Ravi", "lastName": "Kumar", "email": "ravi@example.com"},
            "status": "Qualified",
            "assignedAgent": {"_id": "agent-9", "firstName": "Meera", "lastName": "Shah"},
            "agency": "agency-2",
            "property": {"_id": "prop-5", "title": "Lake View"},
            "followUpDate": "2024-05-01T10:00:00Z",
            "entryPermissions": {"agent": {"edit": False}},
        }
    )

    assert lead.id == "abc123"
    assert lead.contact.full_name == "Ravi Kumar"
    assert lead.assigned_agent == Reference("agent-9", "Meera Shah")
    assert lead.agency == Reference("agency-2")
    assert lead.property.display_name() == "Lake View"
    assert lead.follow_up_date.tzinfo is not None
    assert lead.board_column() == "qualified"
    assert lead.entry_permissions == {"agent": {"edit": False}}


def test_lead_from_api_requires_identifier():
    with pytest.raises(ValueError):
        Lead.from_api({"contact": {}})


def test_with_value_returns_new_lead_and_rejects_unknown_fields():
    lead = Lead(id="1", status="new")
    moved = lead.with_value("status", "contacted")
    assigned = lead.with_value("assignedAgent", "agent-1")

    assert lead.status == "new"
    assert moved.status == "contacted"
    assert assigned.assigned_agent == Reference("agent-1")
    with pytest.raises(ValueError):
        lead.with_value("score", 10)


def test_pagination_derives_pages_when_missing():
    pagination = Pagination.from_api({"total": 21, "limit": 10}, page=1, limit=10, fetched=10)
    assert pagination.pages == 3
    assert pagination.total == 21


def test_with_filters_resets_page_and_strips_values():
    query = QueryDescriptor(page=4)
    updated = query.with_filters(search="  villa ", status=None)

    assert updated.page == 1
    assert updated.search == "villa"
    assert updated.status == ""
    assert query.page == 4


def test_with_filters_rejects_unknown_filter():
    with pytest.raises(ValueError):
        QueryDescriptor().with_filters(colour="red")


def test_fingerprint_is_stable_and_includes_view_mode():
    first = QueryDescriptor(search="villa", limit=25)
    second = QueryDescriptor(limit=25).with_filters(search="villa")

    assert first.fingerprint() == second.fingerprint()
    assert first.fingerprint() != QueryDescriptor(search="villa", limit=25, view_mode="board").fingerprint()
    assert json.loads(first.fingerprint())["filters"]["search"] == "villa"


def test_to_params_drops_empty_filters_and_uses_wire_names():
    query = QueryDescriptor(status="new", start_date="2024-01-01", reporting_manager="m-1")

    assert query.to_params(page=2, limit=250) == {
        "page": 2,
        "limit": 250,
        "status": "new",
        "startDate": "2024-01-01",
        "reportingManager": "m-1",
    }


def test_query_descriptor_validates_view_mode_and_page():
    with pytest.raises(ValueError):
        QueryDescriptor(view_mode="grid")
    with pytest.raises(ValueError):
        QueryDescriptor(page=0)


def test_import_row_viability_and_payload():
    row = ImportRow("Ada", "", "", "5551234", "new", "other", row_index=2, campaign_name="Diwali")

    assert row.is_viable()
    assert row.to_payload() == {
        "contact": {"firstName": "Ada", "lastName": "", "email": "", "phone": "5551234"},
        "status": "new",
        "source": "other",
        "_rowIndex": 2,
        "campaignName": "Diwali",
    }
    assert not ImportRow("", "X", "x@example.com", "", "new", "other", row_index=3).is_viable()
    assert not ImportRow("Ada", "", "", "", "new", "other", row_index=4).is_viable()


def test_status_vocabulary_has_ten_columns():
    assert len(STATUSES) == 10
    assert STATUSES[0] == "new"
