import httpx
import pytest

from leadboard.factory import build_workspace, load_workspace
from leadboard.models import ActingUser


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    monkeypatch.delenv("LEADBOARD_API_URL", raising=False)
    monkeypatch.delenv("LEADBOARD_API_TOKEN", raising=False)


def _leads_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "leads": [
                {"_id": "l1", "status": "new", "entryPermissions": {"staff": {"view": False}}},
                {"_id": "l2", "status": "contacted"},
            ],
            "pagination": {"page": 1, "limit": 25, "total": 2, "pages": 1},
        },
    )


def test_build_workspace_wires_settings_and_permissions():
    config = {
        "api": {"url": "https://crm.example.com"},
        "list": {"page_size": 25},
        "debounce_seconds": 0,
        "permissions": {"staff": {"delete": True}},
    }
    client = httpx.Client(base_url="https://crm.example.com/api/", transport=httpx.MockTransport(_leads_handler))

    with build_workspace(config, ActingUser("u1", "staff"), client=client) as workspace:
        assert workspace.settings.list_page_size == 25
        assert workspace.query.limit == 25
        assert workspace.refresh().result(timeout=5) is True

        assert [lead.id for lead in workspace.leads()] == ["l2"]
        assert workspace.permissions.can(workspace.leads()[0], "delete") is True
        assert workspace.permissions.can(workspace.leads()[0], "edit") is False


def test_load_workspace_reads_yaml(tmp_path):
    path = tmp_path / "leadboard.yaml"
    path.write_text(
        "api:\n  url: https://crm.example.com/\nboard:\n  page_size: 100\n  cap: 200\n",
        encoding="utf-8",
    )
    client = httpx.Client(transport=httpx.MockTransport(_leads_handler))

    with load_workspace(path, ActingUser("u1", "super_admin"), client=client, configure_logs=False) as workspace:
        assert workspace.settings.api_url == "https://crm.example.com/api"
        assert workspace.orchestrator._board_cap == 200
