"""
Excepciones del pipeline de sincronización API D&D 5e -> base de datos.

Taxonomía:
- RemoteUnavailable: fallo de red/transporte o status no-2xx de la API remota
- RemoteMalformed: la respuesta no tiene la forma de documento esperada
- MappingError: falta un campo requerido (no-null en el esquema) en el documento
- StorageError: violación de constraint, conexión u otro fallo de base de datos
"""
from typing import Any, Dict, Optional

from dnd_mirror.shared.exceptions.base import AppException


class SyncException(AppException):
    """Excepción base para errores de sincronización (siempre HTTP 500)."""

    def __init__(self, message: str, error_code: str = "SYNC_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=500,
            error_code=error_code,
            details=details
        )


class RemoteUnavailable(SyncException):
    """No se pudo alcanzar la API remota (red, transporte o status de error)."""

    def __init__(self, locator: str, reason: str, status: Optional[int] = None):
        details: Dict[str, Any] = {"locator": locator}
        if status is not None:
            details["status"] = status
        super().__init__(
            message=f"API remota no disponible para {locator}: {reason}",
            error_code="REMOTE_UNAVAILABLE",
            details=details
        )


class RemoteMalformed(SyncException):
    """La API remota respondió algo que no es el documento esperado."""

    def __init__(self, locator: str, reason: str):
        super().__init__(
            message=f"Respuesta inesperada de {locator}: {reason}",
            error_code="REMOTE_MALFORMED",
            details={"locator": locator}
        )


class MappingError(SyncException):
    """Falta un campo requerido en el documento de detalle."""

    def __init__(self, field: str, item: Optional[str] = None):
        target = f" en '{item}'" if item else ""
        super().__init__(
            message=f"Campo requerido '{field}' ausente{target}",
            error_code="MAPPING_ERROR",
            details={"field": field, "item": item}
        )
        self.field = field
        self.item = item


class StorageError(SyncException):
    """Error de base de datos durante la escritura de un item."""

    def __init__(self, table: str, reason: str, item: Optional[str] = None):
        target = f" {item}" if item else ""
        super().__init__(
            message=f"Fallo en {table}{target}: {reason}",
            error_code="STORAGE_ERROR",
            details={"table": table, "item": item}
        )
        self.table = table
        self.item = item


class UnknownResource(AppException):
    """Nombre de recurso que no está en el catálogo de sincronización."""

    def __init__(self, name: str):
        super().__init__(
            message=f"Recurso desconocido: {name}",
            status_code=404,
            error_code="UNKNOWN_RESOURCE",
            details={"resource": name}
        )
