"""
Registro de recursos sincronizables.

Despacho puro: nombre de recurso -> descriptor -> camino genérico o
enriquecido del orquestador. Sin lógica propia.
"""

from __future__ import annotations

from typing import Iterable, Optional

from dnd_mirror.shared.exceptions.sync import UnknownResource

from .sync_config import ResourceDescriptor
from .sync_service import SyncOrchestrator, SyncReport
from .table_mappings import RESOURCES


class SyncRegistry:
    """Catálogo ordenado (orden de dependencias del panel de control)."""

    def __init__(self, resources: Iterable[ResourceDescriptor] = RESOURCES) -> None:
        self._resources: dict[str, ResourceDescriptor] = {}
        for descriptor in resources:
            if descriptor.remote_name in self._resources:
                raise ValueError(f"Recurso duplicado en el catálogo: {descriptor.remote_name}")
            self._resources[descriptor.remote_name] = descriptor

    def __iter__(self):
        return iter(self._resources.values())

    def __len__(self) -> int:
        return len(self._resources)

    def names(self) -> list[str]:
        return list(self._resources)

    def get(self, name: str) -> ResourceDescriptor:
        try:
            return self._resources[name]
        except KeyError:
            raise UnknownResource(name) from None

    def select(self, names: Optional[Iterable[str]] = None) -> list[ResourceDescriptor]:
        """
        Descriptores pedidos, siempre en el orden del catálogo.
        Sin nombres = todos.
        """
        if not names:
            return list(self)
        wanted = {self.get(n).remote_name for n in names}
        return [d for d in self if d.remote_name in wanted]

    async def run(self, orchestrator: SyncOrchestrator, name: str) -> SyncReport:
        descriptor = self.get(name)
        if descriptor.is_enriched:
            return await orchestrator.sync_enriched(descriptor)
        return await orchestrator.sync_generic(descriptor)


registry = SyncRegistry()
