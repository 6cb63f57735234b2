"""Integration tests for the tool server endpoints."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_list_servers(async_client: AsyncClient):
    response = await async_client.get("/api/v1/servers")

    assert response.status_code == 200
    servers = response.json()["servers"]
    assert [server["id"] for server in servers] == ["filesystem", "search"]

    filesystem = servers[0]
    assert filesystem["running"] is True
    assert filesystem["connected"] is True
    assert filesystem["transport"] == "stdio"
    assert filesystem["pid"] is not None
    assert filesystem["tool_count"] == 3


@pytest.mark.asyncio
async def test_stop_and_start_server(async_client: AsyncClient):
    response = await async_client.post("/api/v1/servers/filesystem/stop")

    assert response.status_code == 200
    data = response.json()
    assert data["running"] is False
    assert data["pid"] is None
    assert data["tool_count"] == 0

    tools = (await async_client.get("/api/v1/tools")).json()
    assert [server["server_id"] for server in tools["servers"]] == ["search"]

    response = await async_client.post("/api/v1/servers/filesystem/start")

    assert response.status_code == 200
    data = response.json()
    assert data["running"] is True
    assert data["connected"] is True
    assert data["tool_count"] == 3


@pytest.mark.asyncio
async def test_start_running_server_is_noop(async_client: AsyncClient):
    before = (await async_client.get("/api/v1/servers")).json()["servers"][0]

    response = await async_client.post("/api/v1/servers/filesystem/start")

    assert response.status_code == 200
    assert response.json()["pid"] == before["pid"]


@pytest.mark.asyncio
async def test_unknown_server_returns_404(async_client: AsyncClient):
    response = await async_client.post("/api/v1/servers/nope/start")

    assert response.status_code == 404
    error = response.json()["detail"]["error"]
    assert error["code"] == "server_not_found"
    assert error["details"]["server_id"] == "nope"

    response = await async_client.post("/api/v1/servers/nope/stop")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_reload_and_start_failing_server(
    async_client: AsyncClient, write_servers_config
):
    write_servers_config(
        {
            "filesystem": ["--tools", "ls,echo,fail"],
            "search": ["--tools", "search,echo"],
            "broken": ["--exit-on-start"],
        }
    )

    response = await async_client.post("/api/v1/servers/reload")

    assert response.status_code == 200
    servers = {server["id"]: server for server in response.json()["servers"]}
    assert servers["filesystem"]["running"] is True
    assert servers["broken"]["running"] is False

    response = await async_client.post("/api/v1/servers/broken/start")

    assert response.status_code == 502
    error = response.json()["detail"]["error"]
    assert error["code"] == "server_start_failed"
    assert "missing credentials" in error["message"]
