"""
Endpoints para gestión de planes de membresía del gimnasio actual.
"""
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.tenant import TenantContext, get_tenant_context, require_roles
from app.db.session import get_db
from app.schemas.membership import (
    MembershipPlan,
    MembershipPlanCreate,
    MembershipPlanStats,
    MembershipPlanUpdate,
    PopularPlan,
)
from app.schemas.token import CallerRole
from app.services.membership_plan import membership_plan_service

router = APIRouter()

owner_only = require_roles(CallerRole.GYM_OWNER)


@router.post("", response_model=MembershipPlan, status_code=status.HTTP_201_CREATED)
def create_membership_plan(
    plan_data: MembershipPlanCreate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(owner_only),
):
    """
    [OWNER] Crear un plan de membresía. El nombre es único en el gimnasio.
    """
    return membership_plan_service.create_plan(db, context.gym_id, plan_data)


@router.get("", response_model=List[MembershipPlan])
def list_membership_plans(
    active_only: bool = Query(True, description="Solo planes activos"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    return membership_plan_service.list_plans(
        db, context.gym_id, active_only=active_only, skip=skip, limit=limit
    )


@router.get("/popular", response_model=List[PopularPlan])
def get_popular_plans(
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    context: TenantContext = Depends(owner_only),
):
    return membership_plan_service.get_popular_plans(db, context.gym_id, limit=limit)


@router.get("/{plan_id}", response_model=MembershipPlan)
def get_membership_plan(
    plan_id: int,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    return membership_plan_service.get_plan(db, context.gym_id, plan_id)


@router.patch("/{plan_id}", response_model=MembershipPlan)
def update_membership_plan(
    plan_id: int,
    plan_update: MembershipPlanUpdate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(owner_only),
):
    """
    [OWNER] Actualizar un plan. Precio y duración no cambian mientras tenga alumnos (409).
    """
    return membership_plan_service.update_plan(db, context.gym_id, plan_id, plan_update)


@router.post("/{plan_id}/retire", response_model=MembershipPlan)
def retire_membership_plan(
    plan_id: int,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(owner_only),
):
    """
    [OWNER] Retirar un plan sin alumnos asociados. No se elimina.
    """
    return membership_plan_service.retire_plan(db, context.gym_id, plan_id)


@router.get("/{plan_id}/stats", response_model=MembershipPlanStats)
def get_membership_plan_stats(
    plan_id: int,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(owner_only),
):
    return membership_plan_service.get_plan_stats(db, context.gym_id, plan_id)
