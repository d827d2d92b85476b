"""
Endpoints de métricas del gimnasio actual.
"""
from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.concurrency import run_in_threadpool
from redis.asyncio import Redis
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.tenant import TenantContext, require_roles
from app.core.timezone_utils import local_range_bounds_utc
from app.db.redis_client import get_redis_client
from app.db.session import get_db
from app.models.analytics import PeriodType
from app.schemas.analytics import AnalyticsReport, AnalyticsSnapshot, SnapshotRequest
from app.schemas.token import CallerRole
from app.services.analytics import analytics_service
from app.services.cache_service import CacheService, dashboard_cache_key
from app.services.gym import gym_service

router = APIRouter()

owner_only = require_roles(CallerRole.GYM_OWNER)


@router.get("/dashboard", response_model=AnalyticsReport)
async def get_dashboard_stats(
    db: Session = Depends(get_db),
    context: TenantContext = Depends(owner_only),
    redis_client: Optional[Redis] = Depends(get_redis_client),
):
    """
    Métricas del mes en curso (hora local del gimnasio). Cacheado en Redis.
    """
    async def db_fetch():
        return await run_in_threadpool(analytics_service.get_dashboard_stats, db, context.gym_id)

    return await CacheService.get_or_set(
        redis_client=redis_client,
        cache_key=dashboard_cache_key(context.gym_id),
        db_fetch_func=db_fetch,
        model_class=AnalyticsReport,
        expiry_seconds=get_settings().CACHE_TTL_DASHBOARD,
    )


@router.get("/report", response_model=AnalyticsReport)
def get_report(
    start_date: date = Query(..., description="Fecha local inicial (inclusive)"),
    end_date: date = Query(..., description="Fecha local final (inclusive)"),
    db: Session = Depends(get_db),
    context: TenantContext = Depends(owner_only),
):
    if end_date < start_date:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end_date debe ser posterior o igual a start_date",
        )
    gym = gym_service.get_gym(db, context.gym_id)
    start, end = local_range_bounds_utc(start_date, end_date + timedelta(days=1), gym.timezone)
    return analytics_service.build_report(db, context.gym_id, start, end)


@router.post("/snapshots", response_model=AnalyticsSnapshot, status_code=status.HTTP_201_CREATED)
def generate_snapshot(
    request: SnapshotRequest,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(owner_only),
):
    """Genera (o regenera) el snapshot del período que contiene reference_date."""
    return analytics_service.generate_snapshot(
        db, context.gym_id, request.period_type, request.reference_date
    )


@router.get("/snapshots", response_model=List[AnalyticsSnapshot])
def list_snapshots(
    period_type: Optional[PeriodType] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    context: TenantContext = Depends(owner_only),
):
    return analytics_service.list_snapshots(
        db, context.gym_id, period_type=period_type, skip=skip, limit=limit
    )
