"""
Repositorio SQL (SQLAlchemy Core async) para:
- tabla padre (UPSERT por clave natural)
- tablas hijas (reemplazo completo por snapshot: DELETE + INSERT)

El SQL se construye con el `insert()` específico del dialecto
(postgresql / sqlite / mysql); todos los valores van parametrizados.
El caller controla las transacciones.
"""

from __future__ import annotations

from typing import Any, Iterable, Sequence

from sqlalchemy import MetaData, Table, delete, func, insert
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from dnd_mirror.infrastructure.database.session import Base
from dnd_mirror.shared.exceptions.sync import StorageError

from .types import FlatRecord

# Columna de auditoría presente en las tablas padre
LAST_UPDATED_COLUMN = "last_updated"

_ON_CONFLICT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}
_ON_DUPLICATE_KEY_DIALECTS = {
    "mysql": mysql.insert,
    "mariadb": mysql.insert,
}


def _error_reason(e: SQLAlchemyError) -> str:
    orig = getattr(e, "orig", None)
    return str(orig) if orig is not None else str(e)


def dedupe_records(records: Iterable[FlatRecord], key_columns: Sequence[str]) -> list[FlatRecord]:
    """
    Elimina filas cuya clave compuesta ya apareció (gana la primera vista).
    Sin key_columns se devuelven todas las filas.
    """
    rows = list(records)
    if not key_columns:
        return rows

    seen: set[tuple[Any, ...]] = set()
    unique: list[FlatRecord] = []
    for row in rows:
        key = tuple(row.get(c) for c in key_columns)
        if key in seen:
            continue
        seen.add(key)
        unique.append(row)
    return unique


def build_upsert_statement(table: Table, key_columns: Sequence[str], record: FlatRecord, dialect_name: str):
    """
    INSERT ...; en conflicto por clave natural, actualiza toda columna no-clave.

    - last_updated se refresca en cada UPSERT si la tabla la tiene.
    - Si no hay columnas que actualizar el conflicto se ignora (no-op).
    """
    missing = [c for c in key_columns if record.get(c) is None]
    if missing:
        raise StorageError(table.name, f"falta la clave natural {missing}")

    update_cols = [c for c in record if c not in key_columns]

    if dialect_name in _ON_CONFLICT_DIALECTS:
        stmt = _ON_CONFLICT_DIALECTS[dialect_name](table).values(record)
        set_ = {c: stmt.excluded[c] for c in update_cols}
        if LAST_UPDATED_COLUMN in table.c and LAST_UPDATED_COLUMN not in record:
            set_[LAST_UPDATED_COLUMN] = func.now()
        if not set_:
            return stmt.on_conflict_do_nothing(index_elements=list(key_columns))
        return stmt.on_conflict_do_update(index_elements=list(key_columns), set_=set_)

    if dialect_name in _ON_DUPLICATE_KEY_DIALECTS:
        stmt = _ON_DUPLICATE_KEY_DIALECTS[dialect_name](table).values(record)
        set_ = {c: stmt.inserted[c] for c in update_cols}
        if LAST_UPDATED_COLUMN in table.c and LAST_UPDATED_COLUMN not in record:
            set_[LAST_UPDATED_COLUMN] = func.now()
        if not set_:
            # MySQL no tiene DO NOTHING: asignar la clave a sí misma es un no-op
            set_ = {c: stmt.inserted[c] for c in key_columns}
        return stmt.on_duplicate_key_update(set_)

    raise StorageError(table.name, f"dialecto no soportado para UPSERT: {dialect_name}")


class SqlSyncRepository:
    def __init__(self, metadata: MetaData = Base.metadata) -> None:
        self._metadata = metadata

    def table(self, name: str) -> Table:
        try:
            return self._metadata.tables[name]
        except KeyError:
            raise StorageError(name, "tabla no declarada en el esquema") from None

    async def upsert(
        self,
        conn: AsyncConnection,
        *,
        table: str,
        key_columns: Sequence[str],
        record: FlatRecord,
    ) -> int:
        """
        UPSERT de una fila padre. Idempotente: repetirlo con la misma fila
        solo vuelve a escribir los mismos valores.

        Returns:
            filas afectadas según el driver
        """
        target = self.table(table)
        stmt = build_upsert_statement(target, key_columns, record, conn.dialect.name)
        try:
            result = await conn.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageError(table, _error_reason(e), item=record.get(key_columns[0])) from e
        return result.rowcount or 0

    async def replace_children(
        self,
        conn: AsyncConnection,
        *,
        table: str,
        parent_key_column: str,
        parent_key_value: Any,
        records: Iterable[FlatRecord],
        child_key_columns: Sequence[str] = (),
    ) -> int:
        """
        Reemplazo por snapshot completo de las filas hijas de un padre:
        1. DELETE de todas las filas con parent_key_column = parent_key_value
        2. INSERT de las filas actuales, deduplicadas por clave compuesta

        Debe ejecutarse dentro de la transacción del UPSERT del padre.

        Returns:
            filas insertadas
        """
        target = self.table(table)
        rows = [{**r, parent_key_column: parent_key_value} for r in records]
        rows = dedupe_records(rows, (parent_key_column, *child_key_columns) if child_key_columns else ())

        # executemany exige el mismo set de columnas en todas las filas
        columns: list[str] = []
        for row in rows:
            for c in row:
                if c not in columns:
                    columns.append(c)
        rows = [{c: row.get(c) for c in columns} for row in rows]

        try:
            await conn.execute(delete(target).where(target.c[parent_key_column] == parent_key_value))
            if rows:
                await conn.execute(insert(target), rows)
        except SQLAlchemyError as e:
            raise StorageError(table, _error_reason(e), item=parent_key_value) from e
        return len(rows)
