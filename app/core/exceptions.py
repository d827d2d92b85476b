"""
Errores de dominio del motor de membresías y asistencia.

Todas las excepciones son recuperables por el llamador: los endpoints las
convierten en respuestas HTTP a través del handler registrado en app.main.
Conflictos y cuotas son resultados de negocio esperados, no errores de sistema.
"""
from typing import Any, Dict, Optional

from fastapi import status


class GymAPIError(Exception):
    """Base de todos los errores de negocio."""
    status_code: int = status.HTTP_400_BAD_REQUEST
    code: str = "error"
    default_message: str = "Error de negocio"

    def __init__(self, message: Optional[str] = None, **context: Any):
        self.message = message or self.default_message
        self.context = context
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "code": self.code}


# === NotFound ===

class NotFoundError(GymAPIError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Recurso no encontrado"


class TenantNotFound(NotFoundError):
    code = "tenant_not_found"
    default_message = "Gimnasio no encontrado"


class StudentNotFound(NotFoundError):
    code = "student_not_found"
    default_message = "Alumno no encontrado"


class PlanNotFound(NotFoundError):
    code = "plan_not_found"
    default_message = "Plan de membresía no encontrado"


class CheckInNotFound(NotFoundError):
    code = "check_in_not_found"
    default_message = "Registro de asistencia no encontrado"


# === Conflict ===

class ConflictError(GymAPIError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Conflicto con el estado actual"


class DuplicateDNI(ConflictError):
    code = "duplicate_dni"
    default_message = "Ya existe un alumno con ese DNI en el gimnasio"


class DuplicateCheckIn(ConflictError):
    code = "duplicate_check_in"
    default_message = "El alumno ya registró su asistencia hoy"


class DuplicateName(ConflictError):
    code = "duplicate_name"
    default_message = "Ya existe un plan con ese nombre en el gimnasio"


class PlanInUse(ConflictError):
    code = "plan_in_use"
    default_message = "El plan tiene alumnos asociados"


# === Quota ===

class QuotaExceeded(GymAPIError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "quota_exceeded"
    default_message = "El gimnasio alcanzó el límite de alumnos de su plan"


# === PreconditionFailed ===

class PreconditionFailed(GymAPIError):
    status_code = status.HTTP_412_PRECONDITION_FAILED
    code = "precondition_failed"
    default_message = "Precondición no cumplida"


class MembershipInactive(PreconditionFailed):
    code = "membership_inactive"
    default_message = "La membresía del alumno no está activa"


class TenantInactive(PreconditionFailed):
    code = "tenant_inactive"
    default_message = "El gimnasio está desactivado"


# === AccessDenied ===

class AccessDenied(GymAPIError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "access_denied"
    default_message = "Acceso denegado"


class TenantMismatch(AccessDenied):
    code = "tenant_mismatch"
    default_message = "El alumno no pertenece a este gimnasio"


class FeatureNotAvailable(AccessDenied):
    code = "feature_not_available"
    default_message = "La suscripción del gimnasio no incluye esta funcionalidad"


# === Validation ===

class ValidationError(GymAPIError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"
    default_message = "Datos inválidos"


class ImmutableField(ValidationError):
    code = "immutable_field"
    default_message = "El campo no puede modificarse"


# === Unavailable ===

class Unavailable(GymAPIError):
    """Fallo transitorio del almacenamiento (timeout, conexión perdida)."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "unavailable"
    default_message = "Servicio temporalmente no disponible"
