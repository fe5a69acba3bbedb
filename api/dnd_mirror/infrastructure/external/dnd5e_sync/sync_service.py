"""
Servicio de sincronización API D&D 5e -> base de datos.

Diseño (resumen):
- Lista el recurso remoto (GET /api/<recurso>)
- Descarga el detalle de cada item (+ sub-documentos auxiliares)
- Mapea el detalle a fila plana (+ filas hijas)
- UPSERT por clave natural; tablas hijas por reemplazo completo

Dos caminos:
- Genérico (sin tablas hijas): items concurrentes, acotados por semáforo;
  cada UPSERT es su propia transacción corta.
- Enriquecido (con tablas hijas): items en el orden del listado sobre una
  única conexión; una transacción por item (padre + hijas). El primer
  error hace rollback del item y aborta el resto (fail-fast).

Estrategia de idempotencia:
- UPSERT por `index` + reemplazo por snapshot de las hijas: repetir la
  corrida con la misma fuente deja exactamente las mismas filas.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

import httpx
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from dnd_mirror.shared.exceptions.sync import MappingError, StorageError, SyncException

from .api_client import Dnd5eApiClient
from .sql_repository import SqlSyncRepository
from .sync_config import ChildTableDescriptor, ResourceDescriptor, SyncOptions
from .types import DetailBundle, FlatRecord, IndexEntry

# Errores de programación típicos de un mapeo ante un documento inesperado
_MAPPING_FAILURES = (KeyError, TypeError, AttributeError, IndexError)


@dataclass(frozen=True)
class SyncReport:
    """Resultado de sincronizar un recurso completo."""

    resource: str
    label: str
    attempted: int
    succeeded: int
    first_failure: Optional[SyncException] = None

    @property
    def success(self) -> bool:
        return self.first_failure is None

    @property
    def count(self) -> int:
        return self.succeeded

    @property
    def message(self) -> str:
        if self.first_failure is not None:
            return self.first_failure.message
        return f"{self.label} synced successfully! {self.succeeded} records processed."


def _as_mapping_error(e: Exception, item: Optional[str]) -> MappingError:
    field = str(e.args[0]) if isinstance(e, KeyError) and e.args else type(e).__name__
    return MappingError(field, item=item)


class SyncOrchestrator:
    """
    Orquestador de la sincronización de un recurso.

    No lee configuración global: recibe el engine y las opciones
    explícitamente (permite tests con un store sustituto).
    """

    def __init__(
        self,
        engine: AsyncEngine,
        options: SyncOptions,
        *,
        repository: Optional[SqlSyncRepository] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._engine = engine
        self._options = options
        self._repo = repository or SqlSyncRepository()
        self._transport = transport

    def _client(self) -> Dnd5eApiClient:
        return Dnd5eApiClient(
            self._options.api_base_url,
            timeout_s=self._options.timeout_s,
            transport=self._transport,
        )

    # ------------------------------------------------------------------
    # Etapas de un item
    # ------------------------------------------------------------------

    async def _fetch_bundle(
        self,
        client: Dnd5eApiClient,
        descriptor: ResourceDescriptor,
        entry: IndexEntry,
    ) -> DetailBundle:
        detail = await client.fetch_detail(entry.url)
        if descriptor.enrich is None:
            return DetailBundle(detail)
        try:
            extras = await descriptor.enrich(client, detail)
        except _MAPPING_FAILURES as e:
            raise _as_mapping_error(e, detail.get("index")) from e
        return DetailBundle(detail, extras)

    def _map_item(
        self,
        descriptor: ResourceDescriptor,
        bundle: DetailBundle,
    ) -> tuple[FlatRecord, list[tuple[ChildTableDescriptor, list[FlatRecord]]]]:
        """
        Mapea padre e hijas antes de abrir la transacción: un MappingError
        falla el item sin tocar la base de datos.
        """
        try:
            record = descriptor.mapper(bundle.detail)
            children = [(child, list(child.extract(bundle))) for child in descriptor.children]
        except _MAPPING_FAILURES as e:
            raise _as_mapping_error(e, bundle.key) from e
        return record, children

    async def _write_item(
        self,
        conn: AsyncConnection,
        descriptor: ResourceDescriptor,
        record: FlatRecord,
        children: list[tuple[ChildTableDescriptor, list[FlatRecord]]],
    ) -> None:
        await self._repo.upsert(conn, table=descriptor.table, key_columns=descriptor.key_columns, record=record)
        parent_key = record[descriptor.key_columns[0]]
        for child, rows in children:
            await self._repo.replace_children(
                conn,
                table=child.table,
                parent_key_column=child.parent_key_column,
                parent_key_value=parent_key,
                records=rows,
                child_key_columns=child.child_key_columns,
            )

    # ------------------------------------------------------------------
    # Camino genérico
    # ------------------------------------------------------------------

    async def _sync_generic_item(
        self,
        client: Dnd5eApiClient,
        descriptor: ResourceDescriptor,
        entry: IndexEntry,
        semaphore: asyncio.Semaphore,
    ) -> None:
        async with semaphore:
            bundle = await self._fetch_bundle(client, descriptor, entry)
            record, _ = self._map_item(descriptor, bundle)
            try:
                async with self._engine.begin() as conn:
                    await self._repo.upsert(
                        conn, table=descriptor.table, key_columns=descriptor.key_columns, record=record
                    )
            except (SQLAlchemyError, OSError) as e:
                raise StorageError(descriptor.table, str(e), item=record.get("index")) from e

    async def sync_generic(self, descriptor: ResourceDescriptor) -> SyncReport:
        """
        Sincroniza un recurso sin tablas hijas.

        Todos los items en vuelo terminan; el fallo reportado es el del
        primer item fallido en el orden del listado remoto.
        """
        logger.info(f"Sincronizando {descriptor.remote_name} -> {descriptor.table} (genérico)")
        try:
            async with self._client() as client:
                entries = await client.list_resource(descriptor.remote_name)
                logger.info(f"{descriptor.remote_name}: {len(entries)} items en el listado remoto")

                semaphore = asyncio.Semaphore(max(1, self._options.max_concurrency))
                results = await asyncio.gather(
                    *(self._sync_generic_item(client, descriptor, e, semaphore) for e in entries),
                    return_exceptions=True,
                )
        except SyncException as e:
            logger.error(f"Sync {descriptor.remote_name} falló: {e.message}")
            return SyncReport(descriptor.remote_name, descriptor.display_name, 0, 0, e)

        failures = [r for r in results if isinstance(r, BaseException)]
        succeeded = len(results) - len(failures)
        if not failures:
            logger.info(f"Sync {descriptor.remote_name} OK: {succeeded} registros")
            return SyncReport(descriptor.remote_name, descriptor.display_name, len(entries), succeeded)

        for error in failures:
            if not isinstance(error, SyncException):
                logger.opt(exception=error).error(
                    f"Error inesperado en {descriptor.remote_name}: {type(error).__name__}"
                )

        first = failures[0]
        if not isinstance(first, SyncException):
            raise first
        logger.error(
            f"Sync {descriptor.remote_name} falló ({len(failures)}/{len(results)} items): {first.message}"
        )
        return SyncReport(descriptor.remote_name, descriptor.display_name, len(entries), succeeded, first)

    # ------------------------------------------------------------------
    # Camino enriquecido
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _connection(self, descriptor: ResourceDescriptor) -> AsyncIterator[AsyncConnection]:
        """Conexión única de la corrida; se cierra en toda salida."""
        try:
            conn = await self._engine.connect()
        except (SQLAlchemyError, OSError) as e:
            raise StorageError(descriptor.table, f"no se pudo abrir la conexión: {e}") from e
        try:
            yield conn
        finally:
            await conn.close()

    async def sync_enriched(self, descriptor: ResourceDescriptor) -> SyncReport:
        """
        Sincroniza un recurso con tablas hijas, item por item, sobre una
        sola conexión (cerrada en toda salida).

        Por item: Fetching -> Mapping -> transacción (padre + hijas) -> commit.
        Ante cualquier error: rollback del item y se abortan los restantes;
        los items anteriores quedan confirmados.
        """
        logger.info(f"Sincronizando {descriptor.remote_name} -> {descriptor.table} (enriquecido)")
        attempted = 0
        succeeded = 0
        try:
            async with self._client() as client:
                entries = await client.list_resource(descriptor.remote_name)
                logger.info(f"{descriptor.remote_name}: {len(entries)} items en el listado remoto")

                async with self._connection(descriptor) as conn:
                    for entry in entries:
                        attempted += 1
                        await self._sync_enriched_item(conn, client, descriptor, entry)
                        succeeded += 1
        except SyncException as e:
            logger.error(
                f"Sync {descriptor.remote_name} abortado en el item {attempted} "
                f"({succeeded} confirmados): {e.message}"
            )
            return SyncReport(descriptor.remote_name, descriptor.display_name, attempted, succeeded, e)

        logger.info(f"Sync {descriptor.remote_name} OK: {succeeded} registros")
        return SyncReport(descriptor.remote_name, descriptor.display_name, attempted, succeeded)

    async def _sync_enriched_item(
        self,
        conn: AsyncConnection,
        client: Dnd5eApiClient,
        descriptor: ResourceDescriptor,
        entry: IndexEntry,
    ) -> None:
        bundle = await self._fetch_bundle(client, descriptor, entry)
        record, children = self._map_item(descriptor, bundle)
        key = record.get(descriptor.key_columns[0])
        logger.debug(f"Procesando {descriptor.remote_name}: {entry.name} ({key})")

        try:
            async with conn.begin():
                await self._write_item(conn, descriptor, record, children)
        except SyncException:
            logger.warning(f"Rollback de {descriptor.table} {key}")
            raise
        except SQLAlchemyError as e:
            logger.warning(f"Rollback de {descriptor.table} {key}")
            raise StorageError(descriptor.table, str(e), item=key) from e
