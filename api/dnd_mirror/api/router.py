"""
Router principal de la API.
Las rutas de sincronizacion cuelgan de la raiz (/sync-<recurso>).
"""
from fastapi import APIRouter

from dnd_mirror.api.endpoints import sync


api_router = APIRouter()

api_router.include_router(sync.router)
