from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
import logging

from app.core.exceptions import NotFoundError, TenantNotFound
from app.models.check_in import CheckIn
from app.models.gym import Gym, SubscriptionPlan
from app.models.membership import MembershipPlan
from app.models.student import Student, MembershipStatus
from app.schemas.common import Page
from app.schemas.gym import GymCreate, GymStats, GymUpdate
from app.repositories.gym import gym_repository, subscription_plan_repository

logger = logging.getLogger(__name__)


class GymService:
    def _get_subscription_plan(self, db: Session, subscription_plan_id: int) -> SubscriptionPlan:
        plan = subscription_plan_repository.get(db, subscription_plan_id)
        if plan is None or not plan.is_active:
            raise NotFoundError("Plan de suscripción no encontrado", subscription_plan_id=subscription_plan_id)
        return plan

    def create_gym(self, db: Session, *, gym_in: GymCreate) -> Gym:
        """
        Crear un nuevo gimnasio.

        Args:
            db: Sesión de base de datos
            gym_in: Datos del gimnasio a crear

        Returns:
            El gimnasio creado
        """
        if gym_in.subscription_plan_id is not None:
            self._get_subscription_plan(db, gym_in.subscription_plan_id)

        gym_data = gym_in.model_dump()
        gym_data["currency"] = gym_data["currency"].upper()
        try:
            gym = gym_repository.create(db, obj_in=gym_data)
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.info(f"Gimnasio creado: {gym.name} (ID: {gym.id})")
        return gym

    def get_gym(self, db: Session, gym_id: int) -> Gym:
        """
        Obtener un gimnasio por su ID.

        Raises:
            TenantNotFound: si no existe
        """
        gym = gym_repository.get(db, id=gym_id)
        if gym is None:
            raise TenantNotFound(gym_id=gym_id)
        return gym

    def list_gyms(
        self, db: Session, *, is_active: Optional[bool] = None, skip: int = 0, limit: int = 100
    ) -> Page:
        """Listado de gimnasios de la plataforma, con filtro opcional por estado."""
        filters = {"is_active": is_active} if is_active is not None else None
        items = gym_repository.get_multi(db, skip=skip, limit=limit, filters=filters)
        total = gym_repository.count(db, filters=filters)
        return Page(items=items, total=total, skip=skip, limit=limit)

    def update_gym(self, db: Session, *, gym_id: int, gym_in: GymUpdate) -> Gym:
        """
        Actualizar datos de contacto, zona horaria o moneda del gimnasio.

        Raises:
            TenantNotFound: si no existe
        """
        gym = self.get_gym(db, gym_id)
        # name, timezone y currency no admiten null
        update_data = {
            field: value
            for field, value in gym_in.model_dump(exclude_unset=True).items()
            if value is not None or field not in ("name", "timezone", "currency")
        }
        if not update_data:
            return gym
        if update_data.get("currency"):
            update_data["currency"] = update_data["currency"].upper()

        old_timezone = gym.timezone
        try:
            gym = gym_repository.update(db, db_obj=gym, obj_in=update_data)
        except SQLAlchemyError:
            db.rollback()
            raise

        if gym.timezone != old_timezone:
            logger.info(f"Gym {gym_id} cambió de zona horaria: {old_timezone} -> {gym.timezone}")
        logger.info(f"Gimnasio actualizado: {gym_id} {sorted(update_data)}")
        return gym

    def list_subscription_plans(self, db: Session) -> List[SubscriptionPlan]:
        return subscription_plan_repository.get_active(db)

    def change_subscription_plan(self, db: Session, gym_id: int, subscription_plan_id: Optional[int]) -> Gym:
        """
        Cambia el tier del gimnasio. Bajar a un plan con menos cupo no da de
        baja alumnos: solo impide nuevas altas hasta volver bajo el límite.
        """
        gym = self.get_gym(db, gym_id)
        if subscription_plan_id is not None:
            self._get_subscription_plan(db, subscription_plan_id)
        try:
            gym = gym_repository.update(db, db_obj=gym, obj_in={"subscription_plan_id": subscription_plan_id})
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.info(f"Gym {gym_id} cambió a plan de suscripción {subscription_plan_id}")
        return gym

    def deactivate_gym(self, db: Session, *, gym_id: int) -> Gym:
        """Baja lógica: los gimnasios nunca se eliminan."""
        gym = self.get_gym(db, gym_id)
        try:
            gym = gym_repository.update(db, db_obj=gym, obj_in={"is_active": False})
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.info(f"Gimnasio desactivado: {gym_id}")
        return gym

    def recompute_stats(self, db: Session, *, gym_id: int) -> GymStats:
        """
        Reconstruye los contadores agregados del gimnasio y el uso de sus
        planes a partir de las tablas de alumnos y asistencias.
        """
        self.get_gym(db, gym_id)

        total_students = (
            db.query(func.count(Student.id))
            .filter(Student.gym_id == gym_id, Student.membership_status != MembershipStatus.inactive)
            .scalar()
        ) or 0
        active_students = (
            db.query(func.count(Student.id))
            .filter(Student.gym_id == gym_id, Student.membership_status == MembershipStatus.active)
            .scalar()
        ) or 0
        total_check_ins = (
            db.query(func.count(CheckIn.id)).filter(CheckIn.gym_id == gym_id).scalar()
        ) or 0

        plan_usage = dict(
            db.query(Student.membership_plan_id, func.count(Student.id))
            .filter(
                Student.gym_id == gym_id,
                Student.membership_plan_id.isnot(None),
                Student.membership_status != MembershipStatus.inactive,
            )
            .group_by(Student.membership_plan_id)
            .all()
        )

        try:
            db.execute(
                update(Gym)
                .where(Gym.id == gym_id)
                .values(
                    total_students=total_students,
                    active_students=active_students,
                    total_check_ins=total_check_ins,
                )
                .execution_options(synchronize_session=False)
            )
            plan_ids = [row[0] for row in db.query(MembershipPlan.id).filter(MembershipPlan.gym_id == gym_id).all()]
            for plan_id in plan_ids:
                db.execute(
                    update(MembershipPlan)
                    .where(MembershipPlan.id == plan_id)
                    .values(students_count=plan_usage.get(plan_id, 0))
                    .execution_options(synchronize_session=False)
                )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        logger.info(
            f"Contadores recalculados para gym {gym_id}: "
            f"{total_students} alumnos, {active_students} activos, {total_check_ins} asistencias"
        )
        return GymStats(
            total_students=total_students,
            active_students=active_students,
            total_check_ins=total_check_ins,
        )


gym_service = GymService()
