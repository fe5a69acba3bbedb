"""
Endpoints para sincronizacion de la API D&D 5e.
Un GET por recurso (/sync-<recurso>), disparado desde el panel de control.
"""
from typing import Callable, List

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from dnd_mirror.api.dependencies.sync_deps import get_sync_orchestrator
from dnd_mirror.infrastructure.external.dnd5e_sync.registry import registry
from dnd_mirror.infrastructure.external.dnd5e_sync.sync_config import ResourceDescriptor
from dnd_mirror.infrastructure.external.dnd5e_sync.sync_service import SyncOrchestrator


router = APIRouter(tags=["Sync"])


class SyncResponseDTO(BaseModel):
    """Resultado de la sincronizacion de un recurso."""
    success: bool
    message: str


class SyncResourceDTO(BaseModel):
    """Recurso disponible para sincronizar."""
    name: str
    path: str
    table: str
    enriched: bool


@router.get("/sync-resources", response_model=List[SyncResourceDTO])
async def list_sync_resources() -> List[SyncResourceDTO]:
    """Lista los recursos sincronizables en orden de dependencias."""
    return [
        SyncResourceDTO(
            name=d.remote_name,
            path=d.route_path,
            table=d.table,
            enriched=d.is_enriched,
        )
        for d in registry
    ]


def _build_sync_endpoint(descriptor: ResourceDescriptor) -> Callable:
    async def sync_resource(
        orchestrator: SyncOrchestrator = Depends(get_sync_orchestrator)
    ) -> JSONResponse:
        report = await registry.run(orchestrator, descriptor.remote_name)
        body = SyncResponseDTO(success=report.success, message=report.message)
        return JSONResponse(
            status_code=status.HTTP_200_OK if report.success else status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(),
        )

    sync_resource.__name__ = f"sync_{descriptor.table}"
    return sync_resource


for _descriptor in registry:
    router.add_api_route(
        _descriptor.route_path,
        _build_sync_endpoint(_descriptor),
        methods=["GET"],
        response_model=SyncResponseDTO,
        responses={500: {"model": SyncResponseDTO}},
        summary=f"Sincronizar {_descriptor.remote_name}",
    )
