"""
Política de cupo de alumnos por gimnasio.

El cupo se deriva del plan de suscripción del gimnasio (max_students) y se
compara siempre contra un conteo real de alumnos efectivamente activos, nunca
contra los contadores agregados del gimnasio.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.core.exceptions import QuotaExceeded, TenantNotFound
from app.core.timezone_utils import utcnow
from app.models.gym import Gym
from app.repositories.student import student_repository
from app.schemas.gym import TenantLimitStatus

logger = logging.getLogger(__name__)


class TenantLimitPolicy:
    """Evalúa si un gimnasio está dentro del cupo de su plan. Solo lectura."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    def evaluate(self, db: Session, gym_id: int, now: Optional[datetime] = None) -> TenantLimitStatus:
        gym = db.get(Gym, gym_id)
        if gym is None:
            raise TenantNotFound(gym_id=gym_id)

        now = now or self.clock()
        max_students = gym.subscription_plan.max_students if gym.subscription_plan else None
        current = student_repository.count_effectively_active(db, gym_id, now)

        return TenantLimitStatus(
            current_active_students=current,
            max_students=max_students,
            over_limit=max_students is not None and current >= max_students,
        )

    def ensure_within_limit(self, db: Session, gym_id: int, now: Optional[datetime] = None) -> TenantLimitStatus:
        """
        Lanza QuotaExceeded si no queda cupo para un alumno activo más.
        Para que el resultado sea confiable el llamador debe tener tomado el
        lock del gimnasio en la misma transacción.
        """
        status = self.evaluate(db, gym_id, now)
        if status.over_limit:
            logger.info(
                f"Cupo alcanzado en gym {gym_id}: "
                f"{status.current_active_students}/{status.max_students} alumnos activos"
            )
            raise QuotaExceeded(
                gym_id=gym_id,
                current=status.current_active_students,
                max_students=status.max_students,
            )
        return status


tenant_limit_policy = TenantLimitPolicy()
