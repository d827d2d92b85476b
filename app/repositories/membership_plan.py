from typing import Optional, List

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from app.models.membership import MembershipPlan
from app.repositories.base import BaseRepository
from app.schemas.membership import MembershipPlanCreate, MembershipPlanUpdate


class MembershipPlanRepository(BaseRepository[MembershipPlan, MembershipPlanCreate, MembershipPlanUpdate]):
    """Repositorio de planes de membresía de cada gimnasio"""

    def get_by_name(
        self, db: Session, gym_id: int, name: str, *,
        active_only: bool = False, exclude_id: Optional[int] = None
    ) -> Optional[MembershipPlan]:
        """
        Buscar un plan por nombre exacto dentro del gimnasio.

        Args:
            active_only: Considerar solo planes activos
            exclude_id: Ignorar este plan (útil al renombrar)
        """
        query = db.query(MembershipPlan).filter(
            MembershipPlan.gym_id == gym_id,
            MembershipPlan.name == name,
        )
        if active_only:
            query = query.filter(MembershipPlan.is_active == True)
        if exclude_id is not None:
            query = query.filter(MembershipPlan.id != exclude_id)
        return query.first()

    def list_for_gym(
        self, db: Session, gym_id: int, *, active_only: bool = True, skip: int = 0, limit: int = 100
    ) -> List[MembershipPlan]:
        query = db.query(MembershipPlan).filter(MembershipPlan.gym_id == gym_id)
        if active_only:
            query = query.filter(MembershipPlan.is_active == True)
        return query.order_by(MembershipPlan.price_cents, MembershipPlan.id).offset(skip).limit(limit).all()

    def increment_usage(self, db: Session, plan_id: int, delta: int) -> None:
        """students_count += delta de forma atómica, nunca por debajo de cero. Sin commit."""
        new_value = MembershipPlan.students_count + delta
        db.execute(
            update(MembershipPlan)
            .where(MembershipPlan.id == plan_id)
            .values(students_count=case((new_value < 0, 0), else_=new_value))
            .execution_options(synchronize_session=False)
        )


membership_plan_repository = MembershipPlanRepository(MembershipPlan)
