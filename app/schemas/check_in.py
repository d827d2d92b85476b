from typing import Dict, Optional
from datetime import date, datetime
from pydantic import BaseModel, Field, model_validator

from app.models.check_in import CheckInMethod


class CheckInCreate(BaseModel):
    """
    Solicitud de entrada. El alumno se identifica por DNI o por el token de su QR,
    exactamente uno de los dos.
    """
    method: CheckInMethod
    dni: Optional[str] = Field(None, max_length=20)
    token: Optional[str] = Field(None, max_length=64)
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    notes: Optional[str] = Field(None, max_length=500)

    @model_validator(mode='after')
    def exactly_one_identifier(self):
        if bool(self.dni) == bool(self.token):
            raise ValueError("Debe indicarse exactamente uno de dni o token")
        return self

    model_config = {"extra": "forbid"}


class CheckIn(BaseModel):
    id: int
    student_id: int
    gym_id: int
    method: CheckInMethod
    timestamp: datetime
    check_in_day: date
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class PeakHour(BaseModel):
    hour: int = Field(..., ge=0, le=23)
    count: int


class MethodStats(BaseModel):
    total: int
    by_method: Dict[str, int]


class TodayAttendee(BaseModel):
    student_id: int
    full_name: str
    dni: str
    checked_in_at: datetime
    method: CheckInMethod
