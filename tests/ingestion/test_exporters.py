from datetime import datetime

import pandas as pd
import pytest

from leadboard.ingestion.exporters import EXPORT_COLUMNS, UnsupportedFileTypeError, export_leads
from leadboard.models import Contact, Lead, Reference


@pytest.fixture()
def leads():
    return [
        Lead(
            id="64f1c0ffee1234abcd",
            contact=Contact(first_name="Ravi", last_name="Kumar", email="ravi@example.com", phone="98765"),
            status="site_visit_scheduled",
            priority="hot",
            source="walk_in",
            campaign_name="Diwali Offer",
            assigned_agent=Reference("a1", "Meera Shah"),
            created_at=datetime(2024, 3, 9, 14, 30),
        ),
        Lead(id="blank"),
    ]


def test_export_leads_to_csv(leads, tmp_path):
    output_path = export_leads(leads, tmp_path / "leads.csv")

    frame = pd.read_csv(output_path, dtype=str, keep_default_na=False)
    assert list(frame.columns) == list(EXPORT_COLUMNS)
    first = frame.iloc[0]
    assert first["Lead ID"] == "LEAD-34abcd"
    assert first["Contact Name"] == "Ravi Kumar"
    assert first["Source"] == "Walk In"
    assert first["Status"] == "Site Visit Scheduled"
    assert first["Priority"] == "Hot"
    assert first["Assigned Agent"] == "Meera Shah"
    assert first["Created Date"] == "2024-03-09"
    second = frame.iloc[1]
    assert second["Contact Name"] == "N/A"
    assert second["Email"] == "-"
    assert second["Status"] == "New Lead"
    assert second["Assigned Agent"] == "Unassigned"
    assert second["Priority"] == "Warm"


def test_export_leads_to_excel(leads, tmp_path):
    output_path = export_leads(leads, tmp_path / "leads.xlsx")

    frame = pd.read_excel(output_path, sheet_name="Leads", engine="openpyxl")
    assert frame.loc[0, "Campaign"] == "Diwali Offer"
    assert frame.shape == (2, len(EXPORT_COLUMNS))


def test_export_rejects_unknown_suffix(leads, tmp_path):
    with pytest.raises(UnsupportedFileTypeError):
        export_leads(leads, tmp_path / "leads.json")
