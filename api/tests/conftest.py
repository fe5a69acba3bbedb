"""
Configuración de fixtures para pytest.
"""
from __future__ import annotations

from pathlib import Path
from typing import Any, AsyncGenerator, Callable, Dict, Generator, List, Union

import httpx
import pytest
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from dnd_mirror.infrastructure.database.session import Base, init_db
from dnd_mirror.infrastructure.external.dnd5e_sync.sync_config import SyncOptions
from dnd_mirror.infrastructure.external.dnd5e_sync.sync_service import SyncOrchestrator


FAKE_API_BASE_URL = "http://dnd.test"

Payload = Union[Dict[str, Any], List[Any], Callable[[httpx.Request], httpx.Response]]


class FakeDnd5eApi:
    """
    API D&D 5e falsa sobre httpx.MockTransport.

    Cada path se registra con su payload JSON, con una función que arma la
    respuesta, o con un status de error. Los paths no registrados dan 404.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, Payload] = {}
        self.requested: List[str] = []

    def add(self, path: str, payload: Payload) -> None:
        self.routes[path] = payload

    def add_resource(self, name: str, details: List[Dict[str, Any]]) -> None:
        """Registra el listado /api/<name> y el detalle de cada item."""
        results = []
        for detail in details:
            url = f"/api/{name}/{detail['index']}"
            results.append({"index": detail["index"], "name": detail.get("name"), "url": url})
            self.routes[url] = detail
        self.routes[f"/api/{name}"] = {"count": len(results), "results": results}

    def fail(self, path: str, status_code: int = 503) -> None:
        self.routes[path] = lambda request: httpx.Response(status_code, text="upstream error")

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requested.append(path)
        payload = self.routes.get(path)
        if payload is None:
            return httpx.Response(404, json={"error": "Not found"})
        if callable(payload):
            return payload(request)
        return httpx.Response(200, json=payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


async def fetch_rows(engine: AsyncEngine, table: str) -> List[Dict[str, Any]]:
    """Filas de una tabla como dicts, en orden de inserción."""
    target = Base.metadata.tables[table]
    async with engine.connect() as conn:
        result = await conn.execute(select(target).order_by(target.c.id))
        return [dict(row) for row in result.mappings()]


@pytest.fixture
async def sqlite_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Engine SQLite en archivo temporal con el schema completo.
    Archivo (no :memory:) para que todas las conexiones vean la misma BD.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'mirror.db'}", echo=False)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def fake_api() -> FakeDnd5eApi:
    return FakeDnd5eApi()


@pytest.fixture
def orchestrator(sqlite_engine: AsyncEngine, fake_api: FakeDnd5eApi) -> SyncOrchestrator:
    return SyncOrchestrator(
        sqlite_engine,
        SyncOptions(api_base_url=FAKE_API_BASE_URL, timeout_s=5.0, max_concurrency=4),
        transport=fake_api.transport,
    )


@pytest.fixture
def table_rows(sqlite_engine: AsyncEngine) -> Callable[[str], Any]:
    """Lector de filas de la BD de prueba: `await table_rows("skills")`."""

    async def read(table: str) -> List[Dict[str, Any]]:
        return await fetch_rows(sqlite_engine, table)

    return read


@pytest.fixture
def log_messages() -> Generator[List[str], None, None]:
    """Mensajes emitidos por loguru durante el test."""
    messages: List[str] = []
    handler_id = logger.add(lambda m: messages.append(m.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
