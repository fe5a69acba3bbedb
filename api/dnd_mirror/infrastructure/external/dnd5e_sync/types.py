"""
Tipos y utilidades puras para el pipeline API D&D 5e -> base de datos.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from dnd_mirror.shared.exceptions.sync import MappingError

# Fila plana lista para persistir: columna -> escalar o texto JSON
FlatRecord = dict[str, Any]

_MISSING = object()


@dataclass(frozen=True)
class IndexEntry:
    """Entrada ligera del listado de un recurso ({name, url})."""

    name: str
    url: str


@dataclass(frozen=True)
class DetailBundle:
    """
    Documento de detalle de un item más los sub-documentos auxiliares
    que referencia (p.ej. tabla de niveles o lista de conjuros de una clase).
    """

    detail: dict[str, Any]
    extras: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> Optional[str]:
        return self.detail.get("index")


def _walk(doc: Any, path: tuple[str, ...]) -> Any:
    current = doc
    for part in path:
        if not isinstance(current, dict) or current.get(part) is None:
            return _MISSING
        current = current[part]
    return current


def required(doc: dict[str, Any], *path: str) -> Any:
    """
    Lee un campo que el esquema exige no-null.

    Raises:
        MappingError: si el campo (o algún tramo del path) no existe o es null.
    """
    value = _walk(doc, path)
    if value is _MISSING:
        raise MappingError(".".join(path), item=doc.get("index") if isinstance(doc, dict) else None)
    return value


def optional(doc: dict[str, Any], *path: str, default: Any = None) -> Any:
    """Lee un campo opcional; si falta devuelve `default` (None = valor ausente)."""
    value = _walk(doc, path)
    return default if value is _MISSING else value


def join_paragraphs(value: Any) -> Optional[str]:
    """
    Une un array de párrafos con línea en blanco ("\\n\\n").
    Algunos recursos (rules, alignments) ya traen `desc` como string.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    return "\n\n".join(str(p) for p in value)


def to_json(value: Any) -> Optional[str]:
    """Serializa un sub-objeto/array a texto JSON compacto (None se mantiene ausente)."""
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def indexes_of(items: Optional[Iterable[Any]], *path: str) -> list[Any]:
    """
    Extrae el `index` (o el path indicado) de cada referencia de una lista.
    Entradas sin el campo se omiten.
    """
    field_path = path or ("index",)
    out = []
    for item in items or []:
        value = _walk(item, field_path)
        if value is not _MISSING:
            out.append(value)
    return out
