"""
Configuración de base de datos.

Importa todos los modelos para que se registren con Base
antes de crear las tablas.
"""
from dnd_mirror.infrastructure.database import models  # noqa: F401
