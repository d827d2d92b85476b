"""
Endpoints de alumnos del gimnasio actual.

- Alta con primera membresía (con control de cupo del plan de suscripción)
- Consulta, búsqueda y modificación de datos de contacto
- Renovación de membresía y baja lógica
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.concurrency import run_in_threadpool
from redis.asyncio import Redis
from sqlalchemy.orm import Session

from app.core.tenant import TenantContext, get_tenant_context
from app.db.redis_client import get_redis_client
from app.db.session import get_db
from app.models.student import MembershipStatus
from app.schemas.check_in import CheckIn as CheckInSchema
from app.schemas.common import Page, to_page
from app.schemas.student import (
    MembershipStatusInfo,
    RenewMembership,
    Student as StudentSchema,
    StudentCreate,
    StudentUpdate,
)
from app.services.cache_service import CacheService
from app.services.check_in import check_in_service
from app.services.student import student_service

router = APIRouter()


@router.post("", response_model=StudentSchema, status_code=status.HTTP_201_CREATED)
async def create_student(
    student_in: StudentCreate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
    redis_client: Optional[Redis] = Depends(get_redis_client),
):
    """
    Registrar un alumno con su primera membresía.

    Errores: 409 DNI duplicado, 404 plan inexistente o retirado,
    403 cupo del plan de suscripción alcanzado.
    """
    student = await run_in_threadpool(student_service.create_student, db, context.gym_id, student_in)
    await CacheService.invalidate_dashboard(redis_client, context.gym_id)
    return student


@router.get("", response_model=Page[StudentSchema])
def list_students(
    membership_status: Optional[MembershipStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=100),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    page = student_service.list_students(
        db, context.gym_id, status=membership_status, search=search, skip=skip, limit=limit
    )
    return to_page(page, StudentSchema)


@router.get("/by-dni/{dni}", response_model=StudentSchema)
def get_student_by_dni(
    dni: str,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    return student_service.get_student_by_dni(db, context.gym_id, dni)


@router.get("/{student_id}", response_model=StudentSchema)
def get_student(
    student_id: int,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    return student_service.get_student(db, context.gym_id, student_id)


@router.patch("/{student_id}", response_model=StudentSchema)
async def update_student(
    student_id: int,
    patch: StudentUpdate,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
    redis_client: Optional[Redis] = Depends(get_redis_client),
):
    """
    Modificar datos de contacto. DNI y token de acceso no son modificables (422).
    Cambiar el plan renueva la membresía con el plan nuevo.
    """
    student = await run_in_threadpool(
        student_service.update_student, db, context.gym_id, student_id, patch
    )
    if patch.membership_plan_id is not None:
        await CacheService.invalidate_dashboard(redis_client, context.gym_id)
    return student


@router.delete("/{student_id}", response_model=StudentSchema)
async def delete_student(
    student_id: int,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
    redis_client: Optional[Redis] = Depends(get_redis_client),
):
    """Baja lógica: el alumno queda inactive y conserva su historial."""
    student = await run_in_threadpool(student_service.delete_student, db, context.gym_id, student_id)
    await CacheService.invalidate_dashboard(redis_client, context.gym_id)
    return student


@router.get("/{student_id}/membership", response_model=MembershipStatusInfo)
def get_membership_status(
    student_id: int,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    return student_service.get_membership_status(db, context.gym_id, student_id)


@router.post("/{student_id}/renew", response_model=StudentSchema)
async def renew_membership(
    student_id: int,
    renew_in: RenewMembership,
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
    redis_client: Optional[Redis] = Depends(get_redis_client),
):
    student = await run_in_threadpool(
        student_service.renew_membership, db, context.gym_id, student_id, renew_in.membership_plan_id
    )
    await CacheService.invalidate_dashboard(redis_client, context.gym_id)
    return student


@router.get("/{student_id}/check-ins", response_model=Page[CheckInSchema])
def get_student_check_ins(
    student_id: int,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    context: TenantContext = Depends(get_tenant_context),
):
    page = check_in_service.get_student_check_ins(db, context.gym_id, student_id, skip=skip, limit=limit)
    return to_page(page, CheckInSchema)
