from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from typing import TYPE_CHECKING
from enum import Enum as PyEnum

from app.core.timezone_utils import utcnow
from app.db.base_class import Base

# Imports condicionales para evitar referencias circulares
if TYPE_CHECKING:
    from app.models.membership import MembershipPlan
    from app.models.student import Student


class SubscriptionStatus(str, PyEnum):
    """Estado de la suscripción del gimnasio a la plataforma"""
    active = "active"
    cancelled = "cancelled"
    expired = "expired"


class SubscriptionPlan(Base):
    """
    Plan de suscripción (tier SaaS) que contrata un gimnasio.
    Es global: no pertenece a ningún tenant.
    """
    __tablename__ = "subscription_plans"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False, unique=True)  # "Básico", "Pro", "Enterprise"
    price_cents = Column(Integer, nullable=False, default=0)
    max_students = Column(Integer, nullable=True)  # None = ilimitado
    # {"qr_access": true, "camera_access": false, "analytics": true, ...}
    features = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, default=True, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    gyms = relationship("Gym", back_populates="subscription_plan")

    def has_feature(self, feature: str) -> bool:
        return bool((self.features or {}).get(feature, False))

    def __repr__(self):
        return f"<SubscriptionPlan(id={self.id}, name='{self.name}', max_students={self.max_students})>"


class Gym(Base):
    """
    Modelo para representar un gimnasio (tenant) en el sistema.
    Cada gimnasio tiene sus propios alumnos, planes de membresía y asistencias.

    Los contadores agregados son informativos: las decisiones de límite se
    toman siempre contando filas reales de alumnos.
    """
    __tablename__ = "gyms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    address = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    email = Column(String(100), nullable=True)
    timezone = Column(String(50), nullable=False, default="America/Argentina/Buenos_Aires")
    currency = Column(String(3), nullable=False, default="ARS")

    # Suscripción a la plataforma
    subscription_plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=True, index=True)
    subscription_status = Column(
        SQLEnum(SubscriptionStatus, name="subscription_status_enum"),
        nullable=False,
        default=SubscriptionStatus.active,
    )

    # Contadores agregados
    total_students = Column(Integer, nullable=False, default=0)
    active_students = Column(Integer, nullable=False, default=0)
    total_check_ins = Column(Integer, nullable=False, default=0)

    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relaciones
    subscription_plan = relationship("SubscriptionPlan", back_populates="gyms")
    membership_plans = relationship("MembershipPlan", back_populates="gym")
    students = relationship("Student", back_populates="gym")

    def __repr__(self):
        return f"<Gym(id={self.id}, name='{self.name}', timezone='{self.timezone}')>"
