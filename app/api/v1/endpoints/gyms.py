"""
Endpoints de gimnasios (tenants): datos del gimnasio actual, cupo y
administración de la plataforma.
"""
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, status
from fastapi.concurrency import run_in_threadpool
from redis.asyncio import Redis
from sqlalchemy.orm import Session

from app.core.auth import require_super_admin
from app.core.tenant import TenantContext, get_tenant_context, require_roles
from app.db.redis_client import get_redis_client
from app.db.session import get_db
from app.schemas.common import Page, to_page
from app.schemas.gym import Gym as GymSchema, GymCreate, GymStats, GymUpdate, SubscriptionPlan, TenantLimitStatus
from app.schemas.token import CallerRole, TokenPayload
from app.services.cache_service import CacheService
from app.services.gym import gym_service
from app.services.tenant_limit import tenant_limit_policy

router = APIRouter()


@router.get("/subscription-plans", response_model=List[SubscriptionPlan])
def list_subscription_plans(
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    return gym_service.list_subscription_plans(db)


@router.get("/current", response_model=GymSchema)
def get_current_gym(
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    return gym_service.get_gym(db, context.gym_id)


@router.put("/current", response_model=GymSchema)
async def update_current_gym(
    gym_in: GymUpdate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(require_roles(CallerRole.GYM_OWNER)),
    redis_client: Optional[Redis] = Depends(get_redis_client),
):
    """Datos de contacto, zona horaria y moneda del gimnasio actual."""
    gym = await run_in_threadpool(gym_service.update_gym, db, gym_id=context.gym_id, gym_in=gym_in)
    await CacheService.invalidate_dashboard(redis_client, context.gym_id)
    return gym


@router.get("/current/limits", response_model=TenantLimitStatus)
def get_current_limits(
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    """Alumnos activos contra el máximo del plan de suscripción."""
    return tenant_limit_policy.evaluate(db, context.gym_id)


@router.post("/current/recompute-stats", response_model=GymStats)
def recompute_current_stats(
    db: Session = Depends(get_db),
    context: TenantContext = Depends(require_roles(CallerRole.GYM_OWNER)),
):
    return gym_service.recompute_stats(db, gym_id=context.gym_id)


@router.get("", response_model=Page[GymSchema])
def list_gyms(
    is_active: Optional[bool] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    caller: TokenPayload = Depends(require_super_admin),
):
    """[SUPER_ADMIN] Listado de gimnasios."""
    return to_page(gym_service.list_gyms(db, is_active=is_active, skip=skip, limit=limit), GymSchema)


@router.post("", response_model=GymSchema, status_code=status.HTTP_201_CREATED)
def create_gym(
    gym_in: GymCreate,
    db: Session = Depends(get_db),
    caller: TokenPayload = Depends(require_super_admin),
):
    """[SUPER_ADMIN] Alta de un gimnasio."""
    return gym_service.create_gym(db, gym_in=gym_in)


@router.put("/{gym_id}/subscription", response_model=GymSchema)
def change_subscription_plan(
    gym_id: int,
    subscription_plan_id: Optional[int] = Body(None, embed=True),
    db: Session = Depends(get_db),
    caller: TokenPayload = Depends(require_super_admin),
):
    """[SUPER_ADMIN] Cambiar el plan de suscripción (null = sin límites)."""
    return gym_service.change_subscription_plan(db, gym_id, subscription_plan_id)


@router.post("/{gym_id}/deactivate", response_model=GymSchema)
def deactivate_gym(
    gym_id: int,
    db: Session = Depends(get_db),
    caller: TokenPayload = Depends(require_super_admin),
):
    """[SUPER_ADMIN] Baja lógica de un gimnasio."""
    return gym_service.deactivate_gym(db, gym_id=gym_id)
