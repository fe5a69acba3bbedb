"""
Tests unitarios del cliente de la API D&D 5e.

Verifica la taxonomía de errores remotos:
- Red/transporte o status no-2xx -> RemoteUnavailable
- Cuerpo no JSON o forma inesperada -> RemoteMalformed
"""
from __future__ import annotations

import httpx
import pytest

from dnd_mirror.infrastructure.external.dnd5e_sync.api_client import Dnd5eApiClient
from dnd_mirror.shared.exceptions.sync import RemoteMalformed, RemoteUnavailable


def _client(handler) -> Dnd5eApiClient:
    return Dnd5eApiClient("http://dnd.test/", timeout_s=5.0, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_list_resource_returns_entries() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/skills"
        return httpx.Response(200, json={
            "count": 1,
            "results": [{"index": "acrobatics", "name": "Acrobatics", "url": "/api/skills/acrobatics"}],
        })

    async with _client(handler) as client:
        entries = await client.list_resource("skills")

    assert len(entries) == 1
    assert entries[0].name == "Acrobatics"
    assert entries[0].url == "/api/skills/acrobatics"


@pytest.mark.asyncio
async def test_error_status_is_remote_unavailable() -> None:
    async with _client(lambda request: httpx.Response(503)) as client:
        with pytest.raises(RemoteUnavailable) as exc_info:
            await client.list_resource("skills")

    assert exc_info.value.details["status"] == 503
    assert exc_info.value.status_code == 500


@pytest.mark.asyncio
async def test_transport_error_is_remote_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(RemoteUnavailable):
            await client.fetch_detail("/api/skills/acrobatics")


@pytest.mark.asyncio
async def test_invalid_json_is_remote_malformed() -> None:
    async with _client(lambda request: httpx.Response(200, text="<html>")) as client:
        with pytest.raises(RemoteMalformed):
            await client.fetch_detail("/api/skills/acrobatics")


@pytest.mark.asyncio
async def test_index_without_results_is_remote_malformed() -> None:
    async with _client(lambda request: httpx.Response(200, json={"count": 0})) as client:
        with pytest.raises(RemoteMalformed):
            await client.list_resource("skills")


@pytest.mark.asyncio
async def test_index_entry_without_url_is_remote_malformed() -> None:
    payload = {"results": [{"index": "acrobatics", "name": "Acrobatics"}]}
    async with _client(lambda request: httpx.Response(200, json=payload)) as client:
        with pytest.raises(RemoteMalformed):
            await client.list_resource("skills")


@pytest.mark.asyncio
async def test_detail_and_list_shapes_are_checked() -> None:
    async with _client(lambda request: httpx.Response(200, json=[1, 2])) as client:
        with pytest.raises(RemoteMalformed):
            await client.fetch_detail("/api/classes/wizard")
        assert await client.fetch_list("/api/classes/wizard/levels") == [1, 2]

    async with _client(lambda request: httpx.Response(200, json={"index": "wizard"})) as client:
        with pytest.raises(RemoteMalformed):
            await client.fetch_list("/api/classes/wizard/levels")
