from typing import List, Optional, Callable
from datetime import datetime, timedelta
import logging

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import DuplicateName, PlanInUse, PlanNotFound, TenantNotFound
from app.core.timezone_utils import utcnow
from app.db.session import retry_on_db_error
from app.models.gym import Gym
from app.models.membership import MembershipPlan
from app.models.student import Student, MembershipStatus
from app.repositories.gym import gym_repository
from app.repositories.membership_plan import membership_plan_repository
from app.schemas.membership import (
    MembershipPlanCreate,
    MembershipPlanUpdate,
    MembershipPlanStats,
    PopularPlan,
)

logger = logging.getLogger(__name__)

# Campos que no pueden cambiar mientras el plan tenga alumnos
_LOCKED_WHEN_IN_USE = ("price_cents", "duration", "duration_type")


class MembershipPlanService:
    """Servicio para gestionar el catálogo de planes de membresía de cada gimnasio"""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    # === Lectura ===

    def get_plan(self, db: Session, gym_id: int, plan_id: int) -> MembershipPlan:
        """Plan del gimnasio (activo o retirado)."""
        plan = membership_plan_repository.get(db, plan_id, gym_id=gym_id)
        if plan is None:
            raise PlanNotFound(plan_id=plan_id, gym_id=gym_id)
        return plan

    def get_active_plan(self, db: Session, gym_id: int, plan_id: int) -> MembershipPlan:
        """Plan del gimnasio que además puede asignarse a alumnos."""
        plan = self.get_plan(db, gym_id, plan_id)
        if not plan.is_active:
            logger.info(f"Plan {plan_id} del gym {gym_id} está retirado")
            raise PlanNotFound("El plan de membresía no está activo", plan_id=plan_id, gym_id=gym_id)
        return plan

    def list_plans(
        self, db: Session, gym_id: int, active_only: bool = True, skip: int = 0, limit: int = 100
    ) -> List[MembershipPlan]:
        return membership_plan_repository.list_for_gym(
            db, gym_id, active_only=active_only, skip=skip, limit=limit
        )

    # === Escritura ===

    def create_plan(self, db: Session, gym_id: int, plan_in: MembershipPlanCreate) -> MembershipPlan:
        """
        Crear un nuevo plan de membresía.

        El nombre debe ser único en el gimnasio, considerando también los
        planes retirados.
        """
        if db.get(Gym, gym_id) is None:
            raise TenantNotFound(gym_id=gym_id)

        if membership_plan_repository.get_by_name(db, gym_id, plan_in.name):
            logger.info(f"Nombre de plan duplicado '{plan_in.name}' en gym {gym_id}")
            raise DuplicateName(name=plan_in.name)

        plan_data = plan_in.model_dump()
        plan_data["duration_type"] = plan_in.duration_type.value
        plan_data["students_count"] = 0
        plan_data["is_active"] = True

        try:
            db_plan = membership_plan_repository.create(db, obj_in=plan_data, gym_id=gym_id)
        except IntegrityError:
            db.rollback()
            logger.info(f"Colisión de nombre '{plan_in.name}' al crear plan en gym {gym_id}")
            raise DuplicateName(name=plan_in.name)

        logger.info(f"Plan de membresía creado: {db_plan.name} (ID: {db_plan.id}) para gym {gym_id}")
        return db_plan

    def update_plan(
        self, db: Session, gym_id: int, plan_id: int, patch: MembershipPlanUpdate
    ) -> MembershipPlan:
        """
        Actualizar un plan.

        Precio y duración quedan congelados mientras el plan tenga alumnos.
        Descripción, características, moneda y el flag de activo cambian libremente.
        """
        db_plan = self.get_plan(db, gym_id, plan_id)
        update_data = patch.model_dump(exclude_unset=True)
        # null solo tiene sentido para la descripción
        update_data = {k: v for k, v in update_data.items() if v is not None or k == "description"}
        if "duration_type" in update_data:
            update_data["duration_type"] = update_data["duration_type"].value

        if db_plan.is_in_use:
            changed = [
                field for field in _LOCKED_WHEN_IN_USE
                if field in update_data and update_data[field] != getattr(db_plan, field)
            ]
            if changed:
                logger.info(f"Plan {plan_id} en uso por {db_plan.students_count} alumnos, no se puede cambiar {changed}")
                raise PlanInUse(
                    "No se puede modificar precio o duración de un plan con alumnos asociados",
                    plan_id=plan_id,
                    fields=changed,
                )

        new_name = update_data.get("name")
        if new_name and new_name != db_plan.name:
            if membership_plan_repository.get_by_name(
                db, gym_id, new_name, active_only=True, exclude_id=plan_id
            ):
                raise DuplicateName(name=new_name)

        try:
            db_plan = membership_plan_repository.update(db, db_obj=db_plan, obj_in=update_data)
        except IntegrityError:
            db.rollback()
            # El nombre coincide con un plan retirado
            raise DuplicateName(name=new_name)

        logger.info(f"Plan de membresía actualizado: {db_plan.id}")
        return db_plan

    def retire_plan(self, db: Session, gym_id: int, plan_id: int) -> MembershipPlan:
        """
        Retirar un plan (baja lógica). Solo si no tiene alumnos asociados.

        Se toma el lock del gimnasio para serializarse con altas y renovaciones
        que podrían asignar el plan al mismo tiempo.
        """
        db_plan = self.get_plan(db, gym_id, plan_id)
        try:
            gym_repository.lock(db, gym_id, self.clock())
            result = db.execute(
                update(MembershipPlan)
                .where(
                    MembershipPlan.id == plan_id,
                    MembershipPlan.gym_id == gym_id,
                    MembershipPlan.students_count == 0,
                )
                .values(is_active=False, updated_at=self.clock())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                db.rollback()
                logger.info(f"Plan {plan_id} del gym {gym_id} en uso, no se puede retirar")
                raise PlanInUse(plan_id=plan_id)
            db.commit()
        except PlanInUse:
            raise
        except Exception:
            db.rollback()
            raise

        db.refresh(db_plan)
        logger.info(f"Plan de membresía retirado: {plan_id}")
        return db_plan

    def increment_usage(self, db: Session, plan_id: int, delta: int) -> None:
        """Ajusta students_count dentro de la transacción del llamador."""
        membership_plan_repository.increment_usage(db, plan_id, delta)

    # === Estadísticas ===

    @retry_on_db_error()
    def get_plan_stats(
        self, db: Session, gym_id: int, plan_id: int, now: Optional[datetime] = None
    ) -> MembershipPlanStats:
        """Conteo de alumnos por estado e ingresos del plan."""
        db_plan = self.get_plan(db, gym_id, plan_id)
        now = now or self.clock()

        rows = (
            db.query(Student.membership_status, func.count(Student.id))
            .filter(Student.gym_id == gym_id, Student.membership_plan_id == plan_id)
            .group_by(Student.membership_status)
            .all()
        )
        by_status = {status: count for status, count in rows}

        new_students = (
            db.query(func.count(Student.id))
            .filter(
                Student.gym_id == gym_id,
                Student.membership_plan_id == plan_id,
                Student.join_date >= now - timedelta(days=30),
            )
            .scalar()
        ) or 0

        revenue = (
            db.query(func.coalesce(func.sum(Student.membership_price_cents), 0))
            .filter(Student.gym_id == gym_id, Student.membership_plan_id == plan_id)
            .scalar()
        ) or 0

        return MembershipPlanStats(
            plan_id=db_plan.id,
            plan_name=db_plan.name,
            total_students=sum(by_status.values()),
            active_students=by_status.get(MembershipStatus.active, 0),
            expired_students=by_status.get(MembershipStatus.expired, 0),
            inactive_students=by_status.get(MembershipStatus.inactive, 0),
            new_students_last_30_days=new_students,
            revenue_cents=int(revenue),
        )

    @retry_on_db_error()
    def get_popular_plans(self, db: Session, gym_id: int, limit: int = 5) -> List[PopularPlan]:
        """Planes con más alumnos asociados."""
        plans = (
            db.query(MembershipPlan)
            .filter(MembershipPlan.gym_id == gym_id, MembershipPlan.students_count > 0)
            .order_by(MembershipPlan.students_count.desc(), MembershipPlan.id)
            .limit(limit)
            .all()
        )
        return [
            PopularPlan(
                plan_id=plan.id,
                plan_name=plan.name,
                students_count=plan.students_count,
                price_cents=plan.price_cents,
            )
            for plan in plans
        ]


membership_plan_service = MembershipPlanService()
