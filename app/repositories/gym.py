from typing import Optional, List
from datetime import datetime

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from app.models.gym import Gym, SubscriptionPlan
from app.repositories.base import BaseRepository
from app.schemas.gym import GymCreate


class GymRepository(BaseRepository[Gym, GymCreate, GymCreate]):
    """Repositorio para operaciones sobre gimnasios (tenants)"""

    def get_active_gyms(self, db: Session, *, skip: int = 0, limit: int = 1000) -> List[Gym]:
        """
        Obtener gimnasios activos.

        Args:
            db: Sesión de base de datos
            skip: Registros a omitir (paginación)
            limit: Máximo de registros a devolver

        Returns:
            Lista de gimnasios activos
        """
        return (
            db.query(self.model)
            .filter(Gym.is_active == True)
            .order_by(Gym.id)
            .offset(skip)
            .limit(limit)
            .all()
        )

    def lock(self, db: Session, gym_id: int, now: datetime) -> bool:
        """
        Toma el lock de escritura de la fila del gimnasio hasta el fin de la
        transacción actual (row lock en PostgreSQL, write lock en SQLite).

        Returns:
            False si el gimnasio no existe
        """
        result = db.execute(
            update(Gym)
            .where(Gym.id == gym_id)
            .values(updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def increment_counters(
        self, db: Session, gym_id: int, *, total_students: int = 0,
        active_students: int = 0, total_check_ins: int = 0
    ) -> None:
        """Ajuste atómico de los contadores agregados, sin commit."""
        values = {}
        if total_students:
            values["total_students"] = _floored(Gym.total_students, total_students)
        if active_students:
            values["active_students"] = _floored(Gym.active_students, active_students)
        if total_check_ins:
            values["total_check_ins"] = _floored(Gym.total_check_ins, total_check_ins)
        if not values:
            return
        db.execute(
            update(Gym)
            .where(Gym.id == gym_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )


def _floored(column, delta: int):
    """column + delta sin bajar de cero."""
    return case((column + delta < 0, 0), else_=column + delta)


class SubscriptionPlanRepository(BaseRepository[SubscriptionPlan, SubscriptionPlan, SubscriptionPlan]):

    def get_by_name(self, db: Session, name: str) -> Optional[SubscriptionPlan]:
        return db.query(SubscriptionPlan).filter(SubscriptionPlan.name == name).first()

    def get_active(self, db: Session) -> List[SubscriptionPlan]:
        return (
            db.query(SubscriptionPlan)
            .filter(SubscriptionPlan.is_active == True)
            .order_by(SubscriptionPlan.sort_order, SubscriptionPlan.id)
            .all()
        )


gym_repository = GymRepository(Gym)
subscription_plan_repository = SubscriptionPlanRepository(SubscriptionPlan)
