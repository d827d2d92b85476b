"""
Endpoints de asistencia: registro de entradas y consultas.
"""
from datetime import date, datetime, timedelta
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, Query, status
from fastapi.concurrency import run_in_threadpool
from redis.asyncio import Redis
from sqlalchemy.orm import Session

from app.core.tenant import TenantContext, get_tenant_context
from app.core.timezone_utils import local_midnight_utc
from app.db.redis_client import get_redis_client
from app.db.session import get_db
from app.schemas.check_in import (
    CheckIn as CheckInSchema,
    CheckInCreate,
    MethodStats,
    PeakHour,
    TodayAttendee,
)
from app.schemas.common import Page, to_page
from app.services.cache_service import CacheService
from app.services.check_in import check_in_service
from app.services.gym import gym_service

router = APIRouter()


def _range_bounds(
    db: Session, gym_id: int, start_date: Optional[date], end_date: Optional[date]
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Convierte fechas locales inclusivas del gimnasio al rango UTC [inicio, fin)."""
    if start_date is None and end_date is None:
        return None, None
    gym = gym_service.get_gym(db, gym_id)
    start = end = None
    if start_date is not None:
        start = local_midnight_utc(start_date, gym.timezone)
    if end_date is not None:
        end = local_midnight_utc(end_date + timedelta(days=1), gym.timezone)
    return start, end


@router.post("", response_model=CheckInSchema, status_code=status.HTTP_201_CREATED)
async def register_check_in(
    check_in_in: CheckInCreate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
    redis_client: Optional[Redis] = Depends(get_redis_client),
):
    """
    Registrar la entrada de un alumno por DNI o token de acceso.

    Errores: 404 alumno inexistente, 403 token de otro gimnasio o método no
    habilitado, 412 membresía no vigente, 409 ya registró entrada hoy.
    """
    check_in = await run_in_threadpool(
        check_in_service.register_check_in, db, context.gym_id, check_in_in
    )
    await CacheService.invalidate_dashboard(redis_client, context.gym_id)
    return check_in


@router.get("", response_model=Page[CheckInSchema])
def list_check_ins(
    start_date: Optional[date] = Query(None, description="Fecha local inicial (inclusive)"),
    end_date: Optional[date] = Query(None, description="Fecha local final (inclusive)"),
    student_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    start, end = _range_bounds(db, context.gym_id, start_date, end_date)
    result = check_in_service.list_check_ins(
        db,
        context.gym_id,
        start=start,
        end=end,
        student_id=student_id,
        skip=(page - 1) * page_size,
        limit=page_size,
    )
    return to_page(result, CheckInSchema)


@router.get("/peak-hours", response_model=List[PeakHour])
def get_peak_hours(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    top_n: Optional[int] = Query(None, ge=1, le=24),
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    start, end = _range_bounds(db, context.gym_id, start_date, end_date)
    return check_in_service.get_peak_hours(db, context.gym_id, start=start, end=end, top_n=top_n)


@router.get("/stats/methods", response_model=MethodStats)
def get_stats_by_method(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    start, end = _range_bounds(db, context.gym_id, start_date, end_date)
    return check_in_service.get_stats_by_method(db, context.gym_id, start=start, end=end)


@router.get("/today", response_model=List[TodayAttendee])
def get_today_attendees(
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    return check_in_service.get_today_attendees(db, context.gym_id)


@router.get("/{check_in_id}", response_model=CheckInSchema)
def get_check_in(
    check_in_id: int,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    return check_in_service.get_check_in(db, context.gym_id, check_in_id)
