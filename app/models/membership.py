from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
import enum

from app.core.timezone_utils import utcnow
from app.db.base_class import Base


class DurationType(str, enum.Enum):
    """
    Unidad de duración de un plan de membresía.
    """
    DAYS = "days"       # Días exactos
    MONTHS = "months"   # Meses calendario


class MembershipPlan(Base):
    """
    Planes de membresía para gimnasios.
    Cada gimnasio puede tener múltiples planes con diferentes precios y duraciones.
    Un plan con alumnos asociados no puede retirarse ni cambiar precio o duración.
    """
    __tablename__ = "membership_plans"
    __table_args__ = (
        UniqueConstraint("gym_id", "name", name="uq_membership_plan_gym_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    gym_id = Column(Integer, ForeignKey("gyms.id"), nullable=False, index=True)

    # Información básica del plan
    name = Column(String(100), nullable=False)  # "Mensual", "Trimestral", "Pase 10 días"
    description = Column(Text, nullable=True)

    # Pricing
    price_cents = Column(Integer, nullable=False)  # Precio en centavos (ej: 1500000 = $15.000,00)
    currency = Column(String(3), default="ARS", nullable=False)

    # Duración y características
    duration = Column(Integer, nullable=False)
    duration_type = Column(String(10), nullable=False, default=DurationType.MONTHS.value)
    features = Column(JSON, nullable=False, default=list)  # ["Musculación", "Clases grupales"]
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Denormalizado: alumnos actualmente asociados al plan
    students_count = Column(Integer, default=0, nullable=False)

    # Fechas
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relaciones
    gym = relationship("Gym", back_populates="membership_plans")
    students = relationship("Student", back_populates="membership_plan")

    def __repr__(self):
        return f"<MembershipPlan(id={self.id}, name='{self.name}', gym_id={self.gym_id})>"

    @property
    def price_amount(self) -> float:
        """Convertir precio de centavos a la unidad principal de la moneda"""
        return self.price_cents / 100.0

    @property
    def is_in_use(self) -> bool:
        return (self.students_count or 0) > 0
