"""
CLI: sincroniza todos los recursos D&D 5e (o un subconjunto) en orden.

Reproduce lo que hace el panel de control: dispara cada recurso en el
orden de dependencias y se detiene en el primer recurso que falla.

Variables de entorno:
  - DATABASE_URL (o DATABASE_HOST/PORT/USER/PASSWORD/NAME)
  - DND_API_BASE_URL (opcional)
  - SYNC_MAX_CONCURRENCY (opcional)

Ejecución:
  python scripts/sync_all.py
  python scripts/sync_all.py --only skills --only monsters
  python scripts/sync_all.py --list
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from loguru import logger
from dotenv import load_dotenv

# Permite ejecutar este script desde cualquier cwd sin configurar PYTHONPATH.
# La carpeta "api" contiene el paquete raíz `dnd_mirror/`.
_API_ROOT = Path(__file__).resolve().parents[1]
if str(_API_ROOT) not in sys.path:
    sys.path.insert(0, str(_API_ROOT))

load_dotenv(_API_ROOT / ".env", override=False)
load_dotenv(_API_ROOT.parent / ".env", override=False)

from dnd_mirror.core.config import settings
from dnd_mirror.infrastructure.database.session import create_engine_from_settings, init_db
from dnd_mirror.infrastructure.external.dnd5e_sync.registry import registry
from dnd_mirror.infrastructure.external.dnd5e_sync.sync_config import SyncOptions
from dnd_mirror.infrastructure.external.dnd5e_sync.sync_service import SyncOrchestrator
from dnd_mirror.shared.exceptions.sync import UnknownResource


async def run(names: list[str], max_concurrency: int) -> int:
    descriptors = registry.select(names)
    engine = create_engine_from_settings(settings)
    try:
        await init_db(engine)
        orchestrator = SyncOrchestrator(
            engine,
            SyncOptions(
                api_base_url=settings.DND_API_BASE_URL,
                timeout_s=settings.REMOTE_TIMEOUT_S,
                max_concurrency=max_concurrency,
            ),
        )
        for descriptor in descriptors:
            report = await registry.run(orchestrator, descriptor.remote_name)
            if not report.success:
                logger.error(f"{descriptor.remote_name}: {report.message}")
                return 1
            logger.success(report.message)
    finally:
        await engine.dispose()

    logger.info(f"Sincronizados {len(descriptors)} recursos")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Sincroniza la API D&D 5e a la base de datos local.")
    parser.add_argument(
        "--only",
        action="append",
        default=[],
        metavar="RECURSO",
        help="Recurso a sincronizar (repetible). Por defecto: todos.",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="Solo lista los recursos disponibles en orden.",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        default=settings.SYNC_MAX_CONCURRENCY,
        help="Máximo de items simultáneos en recursos sin tablas hijas.",
    )
    args = parser.parse_args()

    if args.list:
        for descriptor in registry:
            kind = "enriquecido" if descriptor.is_enriched else "genérico"
            print(f"{descriptor.remote_name:<22} {descriptor.route_path:<28} {kind}")
        return 0

    try:
        registry.select(args.only)
    except UnknownResource as e:
        raise SystemExit(e.message)

    return asyncio.run(run(args.only, args.concurrency))


if __name__ == "__main__":
    raise SystemExit(main())
