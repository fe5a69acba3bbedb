"""
Gestión del engine de base de datos.

El sync trabaja a nivel de conexión (Core), no de sesión ORM: cada
sincronización de recurso abre su propia conexión y controla sus
transacciones de forma explícita.
"""
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

from dnd_mirror.core.config import Settings, settings


# Base para modelos de SQLAlchemy
Base = declarative_base()

_engine: Optional[AsyncEngine] = None


def _create_engine_args(config: Settings, url: str) -> dict:
    """
    Construye los argumentos del engine segun el tipo de base de datos.
    PostgreSQL/MySQL usan pool de conexiones, SQLite no lo soporta.
    """
    args = {
        "echo": config.DEBUG,
        "future": True,
    }

    if not url.startswith("sqlite"):
        args.update({
            "pool_size": config.DB_POOL_SIZE,
            "max_overflow": config.DB_MAX_OVERFLOW,
            "pool_pre_ping": True,  # Verifica conexion antes de usar
        })

    return args


def create_engine_from_settings(config: Settings) -> AsyncEngine:
    """Crea un engine async a partir de una configuracion explicita."""
    url = config.effective_database_url
    return create_async_engine(url, **_create_engine_args(config, url))


def get_engine() -> AsyncEngine:
    """
    Engine compartido de la aplicacion (lazy).

    Se crea en el primer uso para que importar el paquete no requiera
    el driver de la base de datos configurada.
    """
    global _engine
    if _engine is None:
        _engine = create_engine_from_settings(settings)
    return _engine


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """Inicializa la base de datos creando todas las tablas."""
    target = engine or get_engine()
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Cierra las conexiones de la base de datos."""
    global _engine
    if _engine is not None:
        await _engine.dispose()
        _engine = None
