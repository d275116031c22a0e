import json

import httpx
import pytest

from leadboard.api import LeadsApiClient
from leadboard.config import ClientSettings
from leadboard.errors import (
    ApiError,
    AuthenticationError,
    NetworkError,
    NotFoundError,
    PermissionDeniedError,
)


def _client(handler, **settings) -> LeadsApiClient:
    config = ClientSettings(api_url="https://crm.example.com", api_token="t0ken", **settings)
    transport = httpx.MockTransport(handler)
    http = httpx.Client(base_url=config.api_url + "/", transport=transport, headers={"Authorization": "Bearer t0ken"})
    return LeadsApiClient(config, client=http)


def test_list_leads_sends_params_and_parses_page():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["params"] = dict(request.url.params)
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(
            200,
            json={
                "leads": [{"_id": "l1", "status": "new"}, {"status": "orphan"}],
                "pagination": {"page": 1, "limit": 10, "total": 1, "pages": 1},
            },
        )

    with _client(handler) as client:
        page = client.list_leads({"page": 1, "limit": 10, "status": "new"})

    assert seen["path"] == "/api/leads"
    assert seen["params"] == {"page": "1", "limit": "10", "status": "new"}
    assert seen["auth"] == "Bearer t0ken"
    assert [lead.id for lead in page.leads] == ["l1"]
    assert page.total == 1


def test_update_and_assign_use_expected_endpoints():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append((request.method, request.url.path, json.loads(request.content or b"null")))
        return httpx.Response(200, json={"lead": {"_id": "l1", "status": "contacted"}})

    client = _client(handler)
    updated = client.update_lead("l1", {"status": "contacted"})
    client.assign_agent("l1", "agent-7")
    client.auto_assign("l1", "round_robin", "agency-1")
    client.bulk_create([{"contact": {"firstName": "A"}, "_rowIndex": 2}])

    assert updated.status == "contacted"
    assert requests == [
        ("PUT", "/api/leads/l1", {"status": "contacted"}),
        ("PUT", "/api/leads/l1/assign", {"assignedAgent": "agent-7"}),
        ("POST", "/api/leads/l1/auto-assign", {"assignmentMethod": "round_robin", "agencyId": "agency-1"}),
        ("POST", "/api/leads/bulk", {"leads": [{"contact": {"firstName": "A"}, "_rowIndex": 2}]}),
    ]


@pytest.mark.parametrize(
    "status, error_cls",
    [(401, AuthenticationError), (403, PermissionDeniedError), (404, NotFoundError), (500, ApiError)],
)
def test_error_statuses_map_to_exceptions(status, error_cls):
    client = _client(lambda request: httpx.Response(status, json={"message": "nope"}))

    with pytest.raises(error_cls) as excinfo:
        client.get_lead("l1")

    assert excinfo.value.status_code == status
    assert excinfo.value.message == "nope"


def test_error_message_falls_back_to_validation_errors():
    client = _client(lambda request: httpx.Response(400, json={"errors": [{"msg": "Invalid status"}]}))

    with pytest.raises(ApiError, match="Invalid status"):
        client.update_lead("l1", {"status": "bogus"})


def test_permission_denied_user_message():
    assert PermissionDeniedError().user_message == "Permission denied"
    assert PermissionDeniedError("agents cannot delete").user_message == "Permission denied: agents cannot delete"
    assert AuthenticationError("jwt expired").user_message == "Authentication required. Please log in again."


def test_transport_errors_become_network_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError):
        _client(handler).list_leads({})


def test_metadata_endpoints_parse_references():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/users"):
            assert request.url.params["role"] == "agent"
            return httpx.Response(200, json={"users": [{"_id": "a1", "firstName": "Asha", "lastName": "Rao"}]})
        if request.url.path.endswith("/agencies"):
            return httpx.Response(200, json={"agencies": [{"_id": "ag1", "name": "Skyline"}]})
        return httpx.Response(200, json={"properties": [{"_id": "p1", "title": "Palm Heights"}]})

    client = _client(handler)

    assert client.list_agents()[0].display_name() == "Asha Rao"
    assert client.list_agencies()[0].name == "Skyline"
    assert client.list_properties()[0].name == "Palm Heights"


def test_default_client_targets_normalised_base_url():
    client = LeadsApiClient(ClientSettings(api_url="https://crm.example.com/", api_token="abc"))
    try:
        assert str(client._client.base_url).rstrip("/") == "https://crm.example.com/api"
        assert client._client.headers["Authorization"] == "Bearer abc"
    finally:
        client.close()
