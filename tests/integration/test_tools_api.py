"""Integration tests for the tool listing and direct call endpoints."""

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_list_tools(async_client: AsyncClient):
    response = await async_client.get("/api/v1/tools")

    assert response.status_code == 200
    data = response.json()

    servers = {server["server_id"]: server["tools"] for server in data["servers"]}
    assert [tool["name"] for tool in servers["filesystem"]] == ["ls", "echo", "fail"]
    assert [tool["name"] for tool in servers["search"]] == ["search", "echo"]

    ls = next(tool for tool in servers["filesystem"] if tool["name"] == "ls")
    assert ls["qualified_name"] == "filesystem.ls"
    assert ls["description"] == "Lists files in a directory."
    assert ls["input_schema"]["required"] == ["path"]

    assert data["ambiguous"] == {"echo": ["filesystem", "search"]}


@pytest.mark.asyncio
async def test_list_tools_refresh(async_client: AsyncClient):
    response = await async_client.get("/api/v1/tools", params={"refresh": "true"})

    assert response.status_code == 200
    assert len(response.json()["servers"]) == 2


@pytest.mark.asyncio
async def test_call_tool(async_client: AsyncClient):
    response = await async_client.post(
        "/api/v1/tools/call",
        json={"tool": "ls", "arguments": {"path": "/tmp"}},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "success"
    assert data["server_id"] == "filesystem"
    assert data["text"] == "a.txt\nb.txt"
    assert data["content"] == [{"type": "text", "text": "a.txt\nb.txt"}]


@pytest.mark.asyncio
async def test_ambiguous_tool_uses_first_server(async_client: AsyncClient):
    response = await async_client.post(
        "/api/v1/tools/call",
        json={"tool": "echo", "arguments": {"message": "hi"}},
    )

    data = response.json()
    assert data["server_id"] == "filesystem"
    assert data["text"] == "hi"


@pytest.mark.asyncio
@pytest.mark.parametrize("tool", ["search.echo", "search__echo"])
async def test_qualified_tool_name(async_client: AsyncClient, tool):
    response = await async_client.post(
        "/api/v1/tools/call",
        json={"tool": tool, "arguments": {"message": "hi"}},
    )

    data = response.json()
    assert data["status"] == "success"
    assert data["server_id"] == "search"


@pytest.mark.asyncio
async def test_tool_error_is_an_outcome(async_client: AsyncClient):
    response = await async_client.post("/api/v1/tools/call", json={"tool": "fail"})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "error"
    assert data["server_id"] == "filesystem"
    assert "tool exploded" in data["text"]
    assert data["content"] == []


@pytest.mark.asyncio
async def test_unknown_tool(async_client: AsyncClient):
    response = await async_client.post("/api/v1/tools/call", json={"tool": "rm"})

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "error"
    assert data["server_id"] is None
    assert "no connected server provides tool 'rm'" in data["text"]


@pytest.mark.asyncio
async def test_call_tool_validation(async_client: AsyncClient):
    response = await async_client.post("/api/v1/tools/call", json={"tool": ""})

    assert response.status_code == 422
