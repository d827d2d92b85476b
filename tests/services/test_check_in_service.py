"""
Tests para CheckInService: una entrada por día local, membresía vigente,
aislamiento entre gimnasios y métodos habilitados por la suscripción.
"""
from datetime import date, datetime

import pytest

from app.core.exceptions import (
    CheckInNotFound,
    DuplicateCheckIn,
    FeatureNotAvailable,
    MembershipInactive,
    StudentNotFound,
    TenantMismatch,
)
from app.models.check_in import CheckInMethod
from app.models.membership import DurationType
from app.models.student import MembershipStatus
from app.schemas.check_in import CheckInCreate


def by_dni(dni, method=CheckInMethod.dni):
    return CheckInCreate(method=method, dni=dni)


def by_token(token, method=CheckInMethod.qr):
    return CheckInCreate(method=method, token=token)


class TestRegisterCheckIn:

    def test_one_check_in_per_local_day(self, db, gym, monthly_plan, make_student, check_in_service, clock):
        student = make_student(gym, monthly_plan, dni="30111222")

        # 09:00 local
        check_in = check_in_service.register_check_in(db, gym.id, by_dni("30111222"))
        assert check_in.check_in_day == date(2025, 3, 10)
        assert check_in.method == CheckInMethod.dni

        # 18:00 local, mismo día
        clock.set(datetime(2025, 3, 10, 21, 0))
        with pytest.raises(DuplicateCheckIn):
            check_in_service.register_check_in(db, gym.id, by_dni("30111222"))

        # 23:30 local sigue siendo el mismo día aunque en UTC ya es el 11
        clock.set(datetime(2025, 3, 11, 2, 30))
        with pytest.raises(DuplicateCheckIn):
            check_in_service.register_check_in(db, gym.id, by_dni("30111222"))

        # Día siguiente
        clock.set(datetime(2025, 3, 11, 12, 0))
        second = check_in_service.register_check_in(db, gym.id, by_dni("30111222"))
        assert second.check_in_day == date(2025, 3, 11)

        db.refresh(student)
        db.refresh(gym)
        assert student.total_check_ins == 2
        assert student.last_check_in == datetime(2025, 3, 11, 12, 0)
        assert gym.total_check_ins == 2

    def test_check_in_by_token(self, db, gym, monthly_plan, make_student, check_in_service):
        student = make_student(gym, monthly_plan)
        check_in = check_in_service.register_check_in(db, gym.id, by_token(student.check_in_token))
        assert check_in.student_id == student.id
        assert check_in.method == CheckInMethod.qr

    def test_expired_membership_rejected(self, db, gym, make_plan, make_student, check_in_service, clock):
        day_pass = make_plan(gym, name="Pase diario", price_cents=100000, duration=1, duration_type=DurationType.DAYS)
        student = make_student(gym, day_pass)
        clock.advance(days=2)

        # El estado guardado todavía es active: se vence al intentar entrar
        with pytest.raises(MembershipInactive):
            check_in_service.register_check_in(db, gym.id, by_dni(student.dni))
        db.refresh(student)
        assert student.membership_status == MembershipStatus.expired

    def test_check_in_at_exact_expiry(self, db, gym, monthly_plan, make_student, check_in_service, clock):
        student = make_student(gym, monthly_plan)
        clock.set(student.membership_expiry_date)

        check_in = check_in_service.register_check_in(db, gym.id, by_dni(student.dni))
        assert check_in.student_id == student.id
        db.refresh(student)
        assert student.membership_status == MembershipStatus.active

    def test_inactive_student_rejected(self, db, gym, monthly_plan, make_student, student_service, check_in_service):
        student = make_student(gym, monthly_plan)
        student_service.delete_student(db, gym.id, student.id)
        with pytest.raises(MembershipInactive):
            check_in_service.register_check_in(db, gym.id, by_dni(student.dni))

    def test_unknown_dni(self, db, gym, check_in_service):
        with pytest.raises(StudentNotFound):
            check_in_service.register_check_in(db, gym.id, by_dni("00000000"))


class TestTenantIsolation:

    def test_token_from_other_gym(self, db, gym, make_gym, pro_tier, monthly_plan, make_student, check_in_service):
        other = make_gym(name="Gym Norte", subscription_plan=pro_tier)
        student = make_student(gym, monthly_plan)
        with pytest.raises(TenantMismatch):
            check_in_service.register_check_in(db, other.id, by_token(student.check_in_token))

    def test_dni_from_other_gym(self, db, gym, make_gym, pro_tier, monthly_plan, make_student, check_in_service):
        other = make_gym(name="Gym Norte", subscription_plan=pro_tier)
        make_student(gym, monthly_plan, dni="30111222")
        with pytest.raises(StudentNotFound):
            check_in_service.register_check_in(db, other.id, by_dni("30111222"))


class TestMethodGating:

    def test_qr_requires_feature(self, db, make_gym, basic_tier, make_plan, make_student, check_in_service):
        basic_gym = make_gym(name="Gym Barrio", subscription_plan=basic_tier)
        plan = make_plan(basic_gym)
        student = make_student(basic_gym, plan)

        with pytest.raises(FeatureNotAvailable):
            check_in_service.register_check_in(db, basic_gym.id, by_token(student.check_in_token))
        with pytest.raises(FeatureNotAvailable):
            check_in_service.register_check_in(db, basic_gym.id, by_dni(student.dni, method=CheckInMethod.camera))

        check_in = check_in_service.register_check_in(db, basic_gym.id, by_dni(student.dni))
        assert check_in.method == CheckInMethod.dni

    def test_gym_without_tier_allows_all_methods(self, db, make_gym, make_plan, make_student, check_in_service):
        free_gym = make_gym(name="Gym Libre")
        plan = make_plan(free_gym)
        student = make_student(free_gym, plan)
        check_in = check_in_service.register_check_in(db, free_gym.id, by_token(student.check_in_token))
        assert check_in.method == CheckInMethod.qr


class TestCheckInQueries:

    @pytest.fixture
    def attendance(self, db, gym, monthly_plan, make_student, check_in_service, clock):
        """Cinco alumnos entrando a distintas horas locales del 10/03."""
        entries = [
            ("1", datetime(2025, 3, 10, 12, 0), CheckInMethod.dni),   # 09:00 local
            ("2", datetime(2025, 3, 10, 21, 0), CheckInMethod.qr),    # 18:00 local
            ("3", datetime(2025, 3, 10, 21, 30), CheckInMethod.qr),   # 18:30 local
            ("4", datetime(2025, 3, 10, 12, 10), CheckInMethod.dni),  # 09:10 local
            ("5", datetime(2025, 3, 10, 10, 0), CheckInMethod.camera),  # 07:00 local
        ]
        for dni, _, _ in entries:
            make_student(gym, monthly_plan, dni=dni)
        for dni, moment, method in entries:
            clock.set(moment)
            check_in_service.register_check_in(db, gym.id, by_dni(dni, method=method))
        return entries

    def test_peak_hours_order(self, db, gym, attendance, check_in_service):
        peaks = check_in_service.get_peak_hours(db, gym.id)
        assert [(p.hour, p.count) for p in peaks] == [(9, 2), (18, 2), (7, 1)]

    def test_peak_hours_top_n(self, db, gym, attendance, check_in_service):
        peaks = check_in_service.get_peak_hours(db, gym.id, top_n=1)
        assert [(p.hour, p.count) for p in peaks] == [(9, 2)]

    def test_stats_by_method(self, db, gym, attendance, check_in_service):
        stats = check_in_service.get_stats_by_method(db, gym.id)
        assert stats.total == 5
        assert stats.by_method == {"dni": 2, "qr": 2, "camera": 1}

    def test_list_check_ins_paginated(self, db, gym, attendance, check_in_service):
        page = check_in_service.list_check_ins(db, gym.id, skip=0, limit=2)
        assert page.total == 5
        assert len(page.items) == 2
        # Más recientes primero
        assert page.items[0].timestamp == datetime(2025, 3, 10, 21, 30)

    def test_today_attendees(self, db, gym, attendance, check_in_service, clock):
        clock.set(datetime(2025, 3, 11, 1, 0))  # 22:00 local del 10/03
        attendees = check_in_service.get_today_attendees(db, gym.id)
        assert sorted(a.dni for a in attendees) == ["1", "2", "3", "4", "5"]

        clock.set(datetime(2025, 3, 11, 12, 0))
        assert check_in_service.get_today_attendees(db, gym.id) == []

    def test_get_check_in_is_scoped_to_gym(self, db, gym, make_gym, attendance, check_in_service):
        first = check_in_service.list_check_ins(db, gym.id).items[0]
        assert check_in_service.get_check_in(db, gym.id, first.id).id == first.id

        other = make_gym(name="Gym Norte")
        with pytest.raises(CheckInNotFound):
            check_in_service.get_check_in(db, other.id, first.id)

    def test_purge_old_check_ins(self, db, gym, attendance, check_in_service, clock):
        clock.set(datetime(2025, 3, 20, 12, 0))
        assert check_in_service.purge_old_check_ins(db, retention_days=30) == 0
        clock.set(datetime(2025, 6, 20, 12, 0))
        assert check_in_service.purge_old_check_ins(db, retention_days=30) == 5
        assert check_in_service.list_check_ins(db, gym.id).total == 0
