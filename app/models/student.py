from sqlalchemy import (
    Column, Integer, String, ForeignKey, DateTime, UniqueConstraint, Index, Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum

from app.core.timezone_utils import utcnow
from app.db.base_class import Base


class MembershipStatus(str, PyEnum):
    """Estados de la membresía de un alumno"""
    active = "active"
    inactive = "inactive"  # Baja lógica del alumno
    expired = "expired"


class Student(Base):
    """
    Alumno de un gimnasio con su membresía vigente.

    Los campos membership_* son una copia del plan al momento del alta o la
    renovación, de modo que editar el plan después no altera vencimientos ni
    precios ya cobrados.
    """
    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("gym_id", "dni", name="uq_student_gym_dni"),
        UniqueConstraint("gym_id", "check_in_token", name="uq_student_gym_token"),
        Index("ix_students_status_expiry", "membership_status", "membership_expiry_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    gym_id = Column(Integer, ForeignKey("gyms.id"), nullable=False, index=True)

    # Datos personales
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    dni = Column(String(20), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    photo_url = Column(String(500), nullable=True)

    # Token del QR de acceso (G{gym_id}_{hash}), inmutable
    check_in_token = Column(String(64), nullable=False, index=True)

    # Membresía
    membership_plan_id = Column(Integer, ForeignKey("membership_plans.id"), nullable=True, index=True)
    membership_status = Column(
        SQLEnum(MembershipStatus, name="membership_status_enum"),
        nullable=False,
        default=MembershipStatus.active,
    )
    membership_start_date = Column(DateTime, nullable=True)
    membership_expiry_date = Column(DateTime, nullable=True)
    membership_last_payment = Column(DateTime, nullable=True)
    membership_price_cents = Column(Integer, nullable=True)
    membership_duration = Column(Integer, nullable=True)
    membership_duration_type = Column(String(10), nullable=True)

    # Derivados de la asistencia
    last_check_in = Column(DateTime, nullable=True)
    total_check_ins = Column(Integer, nullable=False, default=0)

    join_date = Column(DateTime, default=utcnow, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relaciones
    gym = relationship("Gym", back_populates="students")
    membership_plan = relationship("MembershipPlan", back_populates="students")
    check_ins = relationship("CheckIn", back_populates="student", order_by="CheckIn.timestamp.desc()")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def is_effectively_active(self, now) -> bool:
        """Activo en estado y sin vencimiento pasado respecto de `now`."""
        return (
            self.membership_status == MembershipStatus.active
            and self.membership_expiry_date is not None
            and self.membership_expiry_date >= now
        )

    def __repr__(self):
        return f"<Student(id={self.id}, dni='{self.dni}', gym_id={self.gym_id}, status={self.membership_status})>"
