"""
Tests de concurrencia sobre una base SQLite en archivo: altas simultáneas no
superan el cupo y entradas simultáneas del mismo alumno registran una sola.
"""
import threading
from unittest.mock import Mock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.exceptions import DuplicateCheckIn, QuotaExceeded
from app.db.base import Base
from app.models.check_in import CheckInMethod
from app.models.gym import Gym, SubscriptionPlan
from app.schemas.check_in import CheckInCreate
from app.schemas.membership import MembershipPlanCreate
from app.schemas.student import StudentCreate
from app.services.check_in import CheckInService
from app.services.membership_plan import MembershipPlanService
from app.services.notification_service import EmailNotificationService
from app.services.student import StudentService
from app.services.tenant_limit import TenantLimitPolicy


@pytest.fixture
def file_session_factory(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'gym.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def services(clock):
    plan_service = MembershipPlanService(clock=clock)
    students = StudentService(
        plan_service=plan_service,
        limit_policy=TenantLimitPolicy(clock=clock),
        notifier=Mock(spec=EmailNotificationService),
        clock=clock,
    )
    return plan_service, students, CheckInService(students=students, clock=clock)


@pytest.fixture
def limited_gym(file_session_factory, services):
    plan_service, _, _ = services
    db = file_session_factory()
    try:
        tier = SubscriptionPlan(name="Básico", max_students=3, features={"qr_access": True})
        db.add(tier)
        db.commit()
        gym = Gym(name="Gym Concurrente", subscription_plan_id=tier.id)
        db.add(gym)
        db.commit()
        plan = plan_service.create_plan(
            db, gym.id, MembershipPlanCreate(name="Mensual", price_cents=1500000, duration=1)
        )
        return gym.id, plan.id
    finally:
        db.close()


def run_concurrently(workers):
    """Ejecuta cada callable en su propio hilo, arrancando todos a la vez."""
    barrier = threading.Barrier(len(workers))
    results = [None] * len(workers)

    def target(index, work):
        barrier.wait()
        try:
            results[index] = work()
        except Exception as e:  # el resultado del hilo es la excepción
            results[index] = e

    threads = [threading.Thread(target=target, args=(i, w)) for i, w in enumerate(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    return results


def test_concurrent_creates_respect_quota(file_session_factory, services, limited_gym, clock):
    _, students, _ = services
    gym_id, plan_id = limited_gym

    def create(dni):
        def work():
            db = file_session_factory()
            try:
                student = students.create_student(
                    db, gym_id,
                    StudentCreate(first_name="Alumno", last_name=dni, dni=dni, membership_plan_id=plan_id),
                )
                return student.id
            finally:
                db.close()
        return work

    results = run_concurrently([create(str(40000000 + i)) for i in range(6)])

    created = [r for r in results if isinstance(r, int)]
    rejected = [r for r in results if isinstance(r, QuotaExceeded)]
    assert len(created) == 3
    assert len(rejected) == 3

    db = file_session_factory()
    try:
        assert students.limit_policy.evaluate(db, gym_id).current_active_students == 3
        gym = db.get(Gym, gym_id)
        assert gym.active_students == 3
        assert gym.total_students == 3
    finally:
        db.close()


def test_concurrent_check_ins_register_once(file_session_factory, services, limited_gym):
    _, students, check_ins = services
    gym_id, plan_id = limited_gym

    db = file_session_factory()
    try:
        student = students.create_student(
            db, gym_id,
            StudentCreate(first_name="Ana", last_name="Gómez", dni="35000111", membership_plan_id=plan_id),
        )
        dni = student.dni
    finally:
        db.close()

    def check_in():
        db = file_session_factory()
        try:
            return check_ins.register_check_in(
                db, gym_id, CheckInCreate(method=CheckInMethod.dni, dni=dni)
            ).id
        finally:
            db.close()

    results = run_concurrently([check_in for _ in range(4)])

    assert len([r for r in results if isinstance(r, int)]) == 1
    assert len([r for r in results if isinstance(r, DuplicateCheckIn)]) == 3
