from sqlalchemy import (
    Column, Integer, ForeignKey, DateTime, Date, Float, Text, UniqueConstraint, Index,
    Enum as SQLEnum
)
from sqlalchemy.orm import relationship
from enum import Enum as PyEnum

from app.core.timezone_utils import utcnow
from app.db.base_class import Base


class CheckInMethod(str, PyEnum):
    """Medio por el cual se identificó al alumno en la entrada"""
    dni = "dni"
    qr = "qr"
    camera = "camera"


class CheckIn(Base):
    """
    Registro de asistencia de un alumno. Inmutable una vez creado.

    check_in_day es la fecha calendario local del gimnasio: la restricción
    única (student_id, check_in_day) impide dos entradas el mismo día.
    """
    __tablename__ = "check_ins"
    __table_args__ = (
        UniqueConstraint("student_id", "check_in_day", name="uq_check_in_student_day"),
        Index("ix_check_ins_gym_timestamp", "gym_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    gym_id = Column(Integer, ForeignKey("gyms.id"), nullable=False, index=True)

    method = Column(SQLEnum(CheckInMethod, name="check_in_method_enum"), nullable=False)
    timestamp = Column(DateTime, default=utcnow, nullable=False)
    check_in_day = Column(Date, nullable=False)

    # Ubicación opcional del dispositivo
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)

    student = relationship("Student", back_populates="check_ins")

    def __repr__(self):
        return f"<CheckIn(id={self.id}, student_id={self.student_id}, day={self.check_in_day}, method={self.method})>"
