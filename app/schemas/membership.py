from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field, field_validator

from app.models.membership import DurationType


# === Esquemas Base ===

class MembershipPlanBase(BaseModel):
    """Esquema base para planes de membresía"""
    name: str = Field(..., min_length=1, max_length=100, description="Nombre del plan")
    description: Optional[str] = Field(None, description="Descripción del plan")
    price_cents: int = Field(..., ge=0, description="Precio en centavos")
    currency: str = Field("ARS", min_length=3, max_length=3, description="Código de moneda")
    duration: int = Field(..., ge=1, description="Duración en la unidad de duration_type")
    duration_type: DurationType = Field(DurationType.MONTHS, description="Unidad de duración: days, months")
    features: List[str] = Field(default_factory=list, description="Características del plan")

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        return v.upper()


class MembershipPlanCreate(MembershipPlanBase):
    """Esquema para crear un plan de membresía"""
    # gym_id se obtiene del header X-Gym-ID
    pass


class MembershipPlanUpdate(BaseModel):
    """Esquema para actualizar un plan de membresía"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price_cents: Optional[int] = Field(None, ge=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    duration: Optional[int] = Field(None, ge=1)
    duration_type: Optional[DurationType] = None
    features: Optional[List[str]] = None
    is_active: Optional[bool] = None

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, v):
        return v.upper() if v is not None else v


class MembershipPlan(MembershipPlanBase):
    """Esquema completo de un plan de membresía"""
    id: int
    gym_id: int
    is_active: bool
    students_count: int
    created_at: datetime
    updated_at: Optional[datetime] = None
    price_amount: Optional[float] = None

    class Config:
        from_attributes = True


class MembershipPlanStats(BaseModel):
    """Estadísticas de uso de un plan"""
    plan_id: int
    plan_name: str
    total_students: int
    active_students: int
    expired_students: int
    inactive_students: int
    new_students_last_30_days: int
    revenue_cents: int


class PopularPlan(BaseModel):
    plan_id: int
    plan_name: str
    students_count: int
    price_cents: int
