from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Date, JSON, UniqueConstraint
from enum import Enum as PyEnum

from app.core.timezone_utils import utcnow
from app.db.base_class import Base


class PeriodType(str, PyEnum):
    daily = "daily"
    weekly = "weekly"    # Semana iniciada en domingo
    monthly = "monthly"


class AnalyticsSnapshot(Base):
    """
    Resumen persistido de métricas de un gimnasio para un período.
    Regenerar un período reemplaza el snapshot existente.
    """
    __tablename__ = "analytics_snapshots"
    __table_args__ = (
        UniqueConstraint("gym_id", "period_type", "period_start", name="uq_snapshot_gym_period"),
    )

    id = Column(Integer, primary_key=True, index=True)
    gym_id = Column(Integer, ForeignKey("gyms.id"), nullable=False, index=True)
    period_type = Column(String(10), nullable=False)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    data = Column(JSON, nullable=False, default=dict)
    generated_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<AnalyticsSnapshot(gym_id={self.gym_id}, {self.period_type} {self.period_start})>"
