from typing import Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field, field_validator

from app.models.student import MembershipStatus


class StudentBase(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    photo_url: Optional[str] = Field(None, max_length=500)


class StudentCreate(StudentBase):
    """Alta de alumno: el plan indicado define la primera membresía"""
    dni: str = Field(..., min_length=1, max_length=20, description="Documento, único por gimnasio")
    membership_plan_id: int

    @field_validator('dni')
    @classmethod
    def normalize_dni(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("El DNI no puede estar vacío")
        return v


class StudentUpdate(BaseModel):
    """
    Modificación parcial de un alumno.

    dni y check_in_token se aceptan en el payload solo para poder rechazarlos
    con un error explícito: no son modificables.
    """
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=30)
    photo_url: Optional[str] = Field(None, max_length=500)
    membership_plan_id: Optional[int] = None
    dni: Optional[str] = None
    check_in_token: Optional[str] = None


class RenewMembership(BaseModel):
    membership_plan_id: int


class Student(StudentBase):
    id: int
    gym_id: int
    dni: str
    check_in_token: str
    membership_plan_id: Optional[int] = None
    membership_status: MembershipStatus
    membership_start_date: Optional[datetime] = None
    membership_expiry_date: Optional[datetime] = None
    membership_last_payment: Optional[datetime] = None
    membership_price_cents: Optional[int] = None
    membership_duration: Optional[int] = None
    membership_duration_type: Optional[str] = None
    last_check_in: Optional[datetime] = None
    total_check_ins: int = 0
    join_date: datetime

    class Config:
        from_attributes = True


class MembershipStatusInfo(BaseModel):
    """Estado efectivo de la membresía de un alumno"""
    student_id: int
    status: MembershipStatus
    membership_plan_id: Optional[int] = None
    start_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    days_remaining: int
    can_access: bool
