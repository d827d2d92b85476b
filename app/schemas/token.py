from typing import Optional
from enum import Enum

from pydantic import BaseModel


class CallerRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"  # Operador de la plataforma, acceso a todos los gimnasios
    GYM_OWNER = "GYM_OWNER"
    STAFF = "STAFF"              # Recepción: alumnos y asistencias


class TokenPayload(BaseModel):
    sub: str  # ID del usuario
    gym_id: Optional[int] = None
    role: CallerRole = CallerRole.STAFF
    exp: Optional[int] = None  # Fecha de expiración
