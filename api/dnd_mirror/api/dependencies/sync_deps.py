"""
Dependencias para inyeccion del orquestador de sincronizacion.
"""
from fastapi import Depends

from dnd_mirror.core.config import settings
from dnd_mirror.infrastructure.database.session import get_engine
from dnd_mirror.infrastructure.external.dnd5e_sync.sync_config import SyncOptions
from dnd_mirror.infrastructure.external.dnd5e_sync.sync_service import SyncOrchestrator


def get_sync_options() -> SyncOptions:
    """
    Opciones del orquestador construidas desde Settings.

    Returns:
        SyncOptions: URL base de la API remota, timeout y limite de concurrencia
    """
    return SyncOptions(
        api_base_url=settings.DND_API_BASE_URL,
        timeout_s=settings.REMOTE_TIMEOUT_S,
        max_concurrency=settings.SYNC_MAX_CONCURRENCY,
    )


def get_sync_orchestrator(
    options: SyncOptions = Depends(get_sync_options)
) -> SyncOrchestrator:
    """
    Dependencia para obtener el orquestador de sincronizacion.

    Args:
        options: Opciones explicitas del orquestador

    Returns:
        SyncOrchestrator: Orquestador sobre el engine compartido
    """
    return SyncOrchestrator(get_engine(), options)
