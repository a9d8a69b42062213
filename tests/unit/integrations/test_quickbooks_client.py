# QuickBooks client unit tests
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from ledgersync.core.config import Settings
from ledgersync.core.exceptions import ProviderRejectedError, ProviderUnavailableError
from ledgersync.integrations.platforms.quickbooks import QuickBooksClient

REALM = "9130350000000000"


def make_client(handler) -> QuickBooksClient:
    return QuickBooksClient(realm_id=REALM, access_token="test-token", transport=httpx.MockTransport(handler))


"""
1. Requests and authentication
"""

@pytest.mark.asyncio
async def test_quickbooks_auth_header(mocker):
    """Bearer token goes on every request"""
    mock_client = mocker.patch("httpx.AsyncClient")
    mock_response = mocker.MagicMock()
    mock_response.status_code = 200
    mock_response.json.return_value = {"QueryResponse": {}}
    request = AsyncMock(return_value=mock_response)
    mock_client.return_value.__aenter__.return_value.request = request

    client = QuickBooksClient(realm_id=REALM, access_token="test-token")
    result = await client._make_request("GET", "query", params={"query": "SELECT * FROM Customer"})

    _, kwargs = request.call_args
    assert kwargs["headers"]["Authorization"] == "Bearer test-token"
    assert kwargs["url"] == f"https://sandbox-quickbooks.api.intuit.com/v3/company/{REALM}/query"
    assert kwargs["params"]["minorversion"] == 65
    assert result == {"QueryResponse": {}}


def test_from_settings_selects_environment():
    settings = Settings(_env_file=None, QBO_ENV="production", QBO_REALM_ID=REALM, QBO_ACCESS_TOKEN="tok")
    client = QuickBooksClient.from_settings(settings)

    assert client.BASE_URL == "https://quickbooks.api.intuit.com"
    assert client.realm_id == REALM

    sandbox = QuickBooksClient.from_settings(Settings(_env_file=None, QBO_ENV="Sandbox", QBO_REALM_ID=REALM))
    assert sandbox.BASE_URL == "https://sandbox-quickbooks.api.intuit.com"


@pytest.mark.asyncio
async def test_fetch_all_queries_entity():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["query"] = request.url.params["query"]
        return httpx.Response(200, json={"QueryResponse": {"Item": [
            {"Id": "1", "Name": "Widget", "SyncToken": "0"},
            {"Id": "2", "Name": "Gadget", "SyncToken": "3"},
        ]}})

    records = await make_client(handler).fetch_all("product")

    assert seen["query"] == "SELECT * FROM Item MAXRESULTS 1000"
    assert [r.external_id for r in records] == ["1", "2"]
    assert records[1].payload["Name"] == "Gadget"


@pytest.mark.asyncio
async def test_fetch_all_empty_response():
    client = make_client(lambda request: httpx.Response(200, json={"QueryResponse": {}}))
    assert await client.fetch_all("invoice") == []


"""
2. Error classification
"""

@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [429, 500, 503])
async def test_throttling_and_server_errors_are_unavailable(status_code):
    client = make_client(lambda request: httpx.Response(status_code, text="busy"))

    with pytest.raises(ProviderUnavailableError) as exc_info:
        await client.fetch_all("customer")
    assert exc_info.value.status_code == status_code


@pytest.mark.asyncio
async def test_validation_error_is_rejected():
    body = {"Fault": {"Error": [{"Message": "Duplicate Name Exists Error"}]}}
    client = make_client(lambda request: httpx.Response(400, json=body))

    with pytest.raises(ProviderRejectedError) as exc_info:
        await client.create("customer", {"DisplayName": "Acme"})
    assert exc_info.value.status_code == 400
    assert "Duplicate Name Exists" in str(exc_info.value)


@pytest.mark.asyncio
async def test_timeout_is_unavailable():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ProviderUnavailableError):
        await make_client(handler).fetch_all("customer")


@pytest.mark.asyncio
async def test_connection_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderUnavailableError):
        await make_client(handler).fetch_one("customer", "1")


@pytest.mark.asyncio
async def test_unsupported_entity_type_is_rejected():
    client = make_client(lambda request: httpx.Response(200, json={}))
    with pytest.raises(ProviderRejectedError):
        await client.fetch_all("vendor")


"""
3. Single records
"""

@pytest.mark.asyncio
async def test_fetch_one_missing_returns_none():
    client = make_client(lambda request: httpx.Response(404, text="Object Not Found"))
    assert await client.fetch_one("customer", "404") is None


@pytest.mark.asyncio
async def test_fetch_one_reads_entity():
    def handler(request):
        assert request.url.path.endswith("/customer/7")
        return httpx.Response(200, json={"Customer": {"Id": "7", "DisplayName": "Acme", "SyncToken": "2"}})

    record = await make_client(handler).fetch_one("customer", "7")

    assert record.external_id == "7"
    assert record.payload["DisplayName"] == "Acme"


@pytest.mark.asyncio
async def test_create_strips_identity_fields():
    sent = {}

    def handler(request):
        sent.update(json.loads(request.content))
        return httpx.Response(200, json={"Customer": {"Id": "55", "DisplayName": "Acme", "SyncToken": "0"}})

    record = await make_client(handler).create("customer", {"Id": "old", "SyncToken": "9", "DisplayName": "Acme"})

    assert sent == {"DisplayName": "Acme"}
    assert record.external_id == "55"


@pytest.mark.asyncio
async def test_update_sends_sparse_body_with_current_sync_token():
    posted = {}

    def handler(request):
        if request.method == "GET":
            return httpx.Response(200, json={"Customer": {"Id": "7", "DisplayName": "Old", "SyncToken": "4"}})
        posted.update(json.loads(request.content))
        return httpx.Response(200, json={"Customer": {**posted, "SyncToken": "5"}})

    record = await make_client(handler).update("customer", "7", {"DisplayName": "New"})

    assert posted == {"DisplayName": "New", "Id": "7", "SyncToken": "4", "sparse": True}
    assert record.payload["SyncToken"] == "5"


@pytest.mark.asyncio
async def test_update_missing_record_is_rejected():
    client = make_client(lambda request: httpx.Response(404, text="Object Not Found"))

    with pytest.raises(ProviderRejectedError) as exc_info:
        await client.update("customer", "7", {"DisplayName": "New"})
    assert exc_info.value.status_code == 404
