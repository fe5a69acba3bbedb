"""
Configuración del sync (recurso remoto -> tablas locales).

Aquí se define la forma de los descriptores estáticos:
- recurso remoto y tabla padre destino
- clave natural
- función de mapeo del documento a fila plana
- tablas hijas (relaciones uno-a-muchos embebidas en el detalle)

Este módulo no realiza I/O: solo define configuración.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Optional

from .types import DetailBundle, FlatRecord

if TYPE_CHECKING:
    from .api_client import Dnd5eApiClient

Mapper = Callable[[dict[str, Any]], FlatRecord]
Extractor = Callable[[DetailBundle], Iterable[FlatRecord]]
Enricher = Callable[["Dnd5eApiClient", dict[str, Any]], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class ChildTableDescriptor:
    """
    Tabla hija `<padre>_<relacion>`.

    child_key_columns:
        columnas que, junto a parent_key_column, forman la clave única
        compuesta. Se usan para deduplicar (gana el primero visto).
        Vacío = la tabla no tiene clave única y se insertan todas las filas.
    """

    table: str
    parent_key_column: str
    extract: Extractor
    child_key_columns: tuple[str, ...] = ()


@dataclass(frozen=True)
class ResourceDescriptor:
    """
    Config de un recurso remoto -> una tabla padre (+ hijas).

    NOTA sobre la clave:
    - La clave natural es el `index` de la API (estable, nunca regenerado).
    - `enrich` descarga sub-documentos referenciados por URL en el detalle,
      antes de abrir la transacción.
    """

    remote_name: str
    table: str
    mapper: Mapper
    key_columns: tuple[str, ...] = ("index",)
    children: tuple[ChildTableDescriptor, ...] = ()
    enrich: Optional[Enricher] = None
    label: Optional[str] = None

    @property
    def is_enriched(self) -> bool:
        return bool(self.children)

    @property
    def route_path(self) -> str:
        return f"/sync-{self.remote_name}"

    @property
    def display_name(self) -> str:
        return self.label or self.remote_name


@dataclass(frozen=True)
class SyncOptions:
    """Parámetros explícitos del orquestador (sin estado global)."""

    api_base_url: str = "https://www.dnd5eapi.co"
    timeout_s: float = 30.0
    max_concurrency: int = 8
