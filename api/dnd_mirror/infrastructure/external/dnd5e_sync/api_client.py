"""
Cliente mínimo de la API pública D&D 5e (solo lectura, sin SDKs externos).

Requisitos cubiertos:
- httpx async (una instancia por sincronización de recurso)
- listado de un recurso: GET /api/<recurso> -> {results: [{name, url}]}
- detalle de un item: GET <url>
- sin reintentos ni caché: cada llamada es un request nuevo
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from loguru import logger

from dnd_mirror.shared.exceptions.sync import RemoteMalformed, RemoteUnavailable

from .types import IndexEntry


class Dnd5eApiClient:
    """
    Cliente HTTP de la API D&D 5e.

    Importante:
    - No interpreta los documentos: eso se decide en los mapeos.
    - Sí valida la forma mínima (objeto / lista / results) para fallar
      temprano con RemoteMalformed.
    """

    def __init__(
        self,
        base_url: str = "https://www.dnd5eapi.co",
        *,
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout_s,
            transport=transport,
            follow_redirects=True,
            headers={"Accept": "application/json"},
        )

    async def __aenter__(self) -> "Dnd5eApiClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_resource(self, name: str) -> list[IndexEntry]:
        """
        Obtiene el índice de un recurso (p.ej. 'ability-scores').

        Raises:
            RemoteUnavailable: fallo de red o status no-2xx
            RemoteMalformed: el índice no trae una lista `results` de {name, url}
        """
        locator = f"/api/{name}"
        payload = await self._request_json(locator)
        results = payload.get("results") if isinstance(payload, dict) else None
        if not isinstance(results, list):
            raise RemoteMalformed(locator, "falta la lista 'results'")

        entries: list[IndexEntry] = []
        for raw in results:
            if not isinstance(raw, dict) or not raw.get("url"):
                raise RemoteMalformed(locator, f"entrada de índice sin 'url': {raw!r}")
            entries.append(IndexEntry(name=str(raw.get("name") or raw["url"]), url=str(raw["url"])))

        logger.debug(f"Índice {name}: {len(entries)} entradas")
        return entries

    async def fetch_detail(self, locator: str) -> dict[str, Any]:
        """Obtiene el documento de detalle de un item (debe ser un objeto JSON)."""
        payload = await self._request_json(locator)
        if not isinstance(payload, dict):
            raise RemoteMalformed(locator, "se esperaba un objeto JSON")
        return payload

    async def fetch_list(self, locator: str) -> list[Any]:
        """Obtiene un sub-documento que es un array JSON (p.ej. tabla de niveles)."""
        payload = await self._request_json(locator)
        if not isinstance(payload, list):
            raise RemoteMalformed(locator, "se esperaba un array JSON")
        return payload

    async def _request_json(self, locator: str) -> Any:
        try:
            resp = await self._client.get(locator)
        except httpx.TransportError as e:
            raise RemoteUnavailable(locator, f"{type(e).__name__}: {e}") from e

        if not resp.is_success:
            raise RemoteUnavailable(locator, f"HTTP {resp.status_code}", status=resp.status_code)

        try:
            return resp.json()
        except ValueError as e:
            raise RemoteMalformed(locator, "el cuerpo no es JSON válido") from e
