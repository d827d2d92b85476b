import os

# Configuración de entorno para tests, antes de importar la aplicación
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "False"
os.environ["REDIS_ENABLED"] = "False"
os.environ["EMAILS_ENABLED"] = "False"
os.environ["WORKER_API_KEY"] = "test-worker-key"
os.environ["SECRET_KEY"] = "test-secret-key-with-enough-length-123"
os.environ["DEBUG_MODE"] = "False"
os.environ["LOG_DIR"] = ""

from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.auth import create_access_token
from app.db.base import Base
from app.db.session import get_db
from app.models.gym import Gym, SubscriptionPlan
from app.models.membership import DurationType
from app.schemas.membership import MembershipPlanCreate
from app.schemas.student import StudentCreate
from app.schemas.token import CallerRole
from app.services.analytics import AnalyticsService
from app.services.check_in import CheckInService
from app.services.membership_plan import MembershipPlanService
from app.services.notification_service import EmailNotificationService
from app.services.student import StudentService
from app.services.tenant_limit import TenantLimitPolicy


class FixedClock:
    """Reloj controlable para los servicios: devuelve siempre `now` (UTC naive)."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return self.now


# 10/03/2025 12:00 UTC = 09:00 en Buenos Aires (UTC-3, sin horario de verano)
START = datetime(2025, 3, 10, 12, 0, 0)


@pytest.fixture(scope="function")
def db_engine():
    """Base SQLite en memoria, nueva para cada test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def notifier():
    return Mock(spec=EmailNotificationService)


@pytest.fixture
def plan_service(clock):
    return MembershipPlanService(clock=clock)


@pytest.fixture
def limit_policy(clock):
    return TenantLimitPolicy(clock=clock)


@pytest.fixture
def student_service(plan_service, limit_policy, notifier, clock):
    return StudentService(
        plan_service=plan_service,
        limit_policy=limit_policy,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture
def check_in_service(student_service, clock):
    return CheckInService(students=student_service, clock=clock)


@pytest.fixture
def analytics_service(clock):
    return AnalyticsService(clock=clock)


# === Datos de prueba ===

@pytest.fixture
def basic_tier(db):
    """Plan de suscripción con cupo de 2 alumnos y solo acceso por DNI."""
    tier = SubscriptionPlan(
        name="Básico",
        price_cents=0,
        max_students=2,
        features={"qr_access": False, "camera_access": False},
    )
    db.add(tier)
    db.commit()
    db.refresh(tier)
    return tier


@pytest.fixture
def pro_tier(db):
    tier = SubscriptionPlan(
        name="Pro",
        price_cents=2000000,
        max_students=None,
        features={"qr_access": True, "camera_access": True},
    )
    db.add(tier)
    db.commit()
    db.refresh(tier)
    return tier


@pytest.fixture
def make_gym(db):
    def _make_gym(name="Gym Centro", subscription_plan=None, timezone="America/Argentina/Buenos_Aires"):
        gym = Gym(
            name=name,
            timezone=timezone,
            subscription_plan_id=subscription_plan.id if subscription_plan else None,
        )
        db.add(gym)
        db.commit()
        db.refresh(gym)
        return gym
    return _make_gym


@pytest.fixture
def gym(make_gym, pro_tier):
    return make_gym(subscription_plan=pro_tier)


@pytest.fixture
def make_plan(db, plan_service):
    def _make_plan(gym, name="Mensual", price_cents=1500000, duration=1, duration_type=DurationType.MONTHS):
        return plan_service.create_plan(
            db,
            gym.id,
            MembershipPlanCreate(
                name=name,
                price_cents=price_cents,
                duration=duration,
                duration_type=duration_type,
            ),
        )
    return _make_plan


@pytest.fixture
def monthly_plan(gym, make_plan):
    return make_plan(gym)


@pytest.fixture
def make_student(db, student_service):
    def _make_student(gym, plan, dni="30111222", first_name="Juan", last_name="Pérez", email="juan@test.com"):
        return student_service.create_student(
            db,
            gym.id,
            StudentCreate(
                first_name=first_name,
                last_name=last_name,
                dni=dni,
                email=email,
                membership_plan_id=plan.id,
            ),
        )
    return _make_student


# === Cliente HTTP ===

@pytest.fixture(scope="function")
def client(db):
    """
    Cliente de prueba que usa la sesión de la base de test.
    """
    from main import app

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Headers con un JWT firmado para el gimnasio y rol indicados."""
    def _auth_headers(gym_id, role=CallerRole.GYM_OWNER, header_gym_id=None, sub="user-1"):
        token = create_access_token(sub=sub, gym_id=gym_id, role=role)
        return {
            "Authorization": f"Bearer {token}",
            "X-Gym-ID": str(header_gym_id if header_gym_id is not None else gym_id),
        }
    return _auth_headers
