import pytest


@pytest.mark.asyncio
async def test_run_provider_now(client, mock_provider):
    mock_provider.seed("customer", "1", {"DisplayName": "Acme"})
    mock_provider.seed("invoice", "9", {"DocNumber": "1001"})

    response = await client.post("/api/sync/quickbooks/run")

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["data_volume"] == 2


@pytest.mark.asyncio
async def test_run_unknown_provider(client):
    response = await client.post("/api/sync/xero/run")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_run_while_running_conflicts(client, app):
    app.state.schedule_manager._running.add("quickbooks")

    response = await client.post("/api/sync/quickbooks/run")

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_single_pass_while_running_conflicts(client, app, mock_provider):
    mock_provider.seed("customer", "1", {"DisplayName": "Acme"})
    app.state.schedule_manager._running.add("quickbooks")

    response = await client.post("/api/sync/quickbooks/customer", params={"direction": "pull"})

    assert response.status_code == 409
    assert mock_provider.calls == []


@pytest.mark.asyncio
async def test_single_pass_pull(client, mock_provider):
    mock_provider.seed("product", "2", {"Name": "Widget"})

    response = await client.post("/api/sync/quickbooks/product", params={"direction": "pull"})

    assert response.status_code == 200
    assert response.json()["records_processed"] == 1
    assert response.json()["errors"] == []
    assert mock_provider.calls_of("create") == []


@pytest.mark.asyncio
async def test_single_pass_provider_not_configured(client):
    response = await client.post("/api/sync/google_calendar/customer")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_single_pass_provider_unavailable(client, mock_provider):
    mock_provider.unavailable_fetches = 1
    response = await client.post("/api/sync/quickbooks/customer")
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_single_pass_unknown_entity_type(client):
    response = await client.post("/api/sync/quickbooks/vendor")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_mappings_empty(client):
    response = await client.get("/api/sync/quickbooks/invoice/mappings")
    assert response.status_code == 200
    assert response.json() == []
