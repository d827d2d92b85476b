from typing import Optional, Dict
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator
import pytz

from app.models.gym import SubscriptionStatus


class SubscriptionPlan(BaseModel):
    id: int
    name: str
    price_cents: int
    max_students: Optional[int] = None
    features: Dict[str, bool] = {}
    is_active: bool

    class Config:
        from_attributes = True


class GymBase(BaseModel):
    """Esquema base para gimnasios (tenants)"""
    name: str = Field(..., title="Nombre del gimnasio", max_length=255)
    address: Optional[str] = Field(None, title="Dirección física del gimnasio", max_length=255)
    phone: Optional[str] = Field(None, title="Número de teléfono", max_length=20)
    email: Optional[EmailStr] = Field(None, title="Email de contacto del gimnasio")
    timezone: str = Field(
        'America/Argentina/Buenos_Aires',
        title="Zona horaria del gimnasio",
        max_length=50,
        description="Timezone en formato pytz (ej: 'America/Argentina/Buenos_Aires')",
    )
    currency: str = Field("ARS", min_length=3, max_length=3)

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, v):
        if v not in pytz.all_timezones_set:
            raise ValueError(f"Zona horaria inválida: {v}. Debe ser una zona horaria válida de pytz.")
        return v


class GymCreate(GymBase):
    """Esquema para crear un nuevo gimnasio"""
    subscription_plan_id: Optional[int] = None


class GymUpdate(BaseModel):
    """
    Modificación parcial de los datos del gimnasio.

    Cambiar la zona horaria mueve los límites de día de las operaciones
    siguientes; las asistencias ya registradas conservan su check_in_day.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=20)
    email: Optional[EmailStr] = None
    timezone: Optional[str] = Field(None, max_length=50)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v is not None and v not in pytz.all_timezones_set:
            raise ValueError(f"Zona horaria inválida: {v}. Debe ser una zona horaria válida de pytz.")
        return v


class Gym(GymBase):
    id: int
    subscription_plan_id: Optional[int] = None
    subscription_status: SubscriptionStatus
    total_students: int
    active_students: int
    total_check_ins: int
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TenantLimitStatus(BaseModel):
    """Uso actual del cupo de alumnos del gimnasio"""
    current_active_students: int
    max_students: Optional[int] = None  # None = ilimitado
    over_limit: bool


class GymStats(BaseModel):
    total_students: int
    active_students: int
    total_check_ins: int
