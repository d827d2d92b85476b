from typing import Any, Dict, List, Optional
from datetime import date, datetime
from pydantic import BaseModel

from app.models.analytics import PeriodType


class CheckInSummary(BaseModel):
    total: int
    by_method: Dict[str, int]
    by_hour: Dict[int, int]


class StudentSummary(BaseModel):
    total: int
    active: int
    expired: int
    inactive: int
    new: int


class PlanRevenue(BaseModel):
    plan_id: Optional[int] = None
    plan_name: str
    total_cents: int
    count: int


class RevenueSummary(BaseModel):
    total_cents: int
    by_plan: List[PlanRevenue]


class AnalyticsReport(BaseModel):
    """Reporte de un gimnasio para el rango [start, end)"""
    gym_id: int
    start: datetime
    end: datetime
    check_ins: CheckInSummary
    students: StudentSummary
    revenue: RevenueSummary


class SnapshotRequest(BaseModel):
    period_type: PeriodType
    reference_date: Optional[date] = None


class AnalyticsSnapshot(BaseModel):
    id: int
    gym_id: int
    period_type: str
    period_start: date
    period_end: date
    data: Dict[str, Any]
    generated_at: datetime

    class Config:
        from_attributes = True
