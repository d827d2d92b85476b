"""
Tests para AnalyticsService: períodos locales, reporte y snapshots.
"""
from datetime import date, datetime

import pytest

from app.core.timezone_utils import local_range_bounds_utc
from app.models.analytics import PeriodType
from app.models.check_in import CheckInMethod
from app.schemas.check_in import CheckInCreate
from app.services.analytics import period_bounds


class TestPeriodBounds:

    def test_daily(self):
        assert period_bounds(PeriodType.daily, date(2025, 3, 12)) == (date(2025, 3, 12), date(2025, 3, 13))

    def test_weekly_starts_on_sunday(self):
        # 12/03/2025 es miércoles
        assert period_bounds(PeriodType.weekly, date(2025, 3, 12)) == (date(2025, 3, 9), date(2025, 3, 16))
        # Un domingo inicia su propia semana
        assert period_bounds(PeriodType.weekly, date(2025, 3, 9)) == (date(2025, 3, 9), date(2025, 3, 16))

    def test_monthly(self):
        assert period_bounds(PeriodType.monthly, date(2025, 12, 31)) == (date(2025, 12, 1), date(2026, 1, 1))


class TestAnalyticsReport:

    @pytest.fixture
    def activity(self, db, gym, monthly_plan, make_plan, make_student, student_service, check_in_service, clock):
        quarterly = make_plan(gym, name="Trimestral", price_cents=4000000, duration=3)
        s1 = make_student(gym, monthly_plan, dni="1")
        s2 = make_student(gym, quarterly, dni="2")
        s3 = make_student(gym, monthly_plan, dni="3")
        student_service.delete_student(db, gym.id, s3.id)

        check_in_service.register_check_in(db, gym.id, CheckInCreate(method=CheckInMethod.dni, dni=s1.dni))
        check_in_service.register_check_in(db, gym.id, CheckInCreate(method=CheckInMethod.qr, token=s2.check_in_token))
        return s1, s2, s3

    def test_build_report(self, db, gym, activity, analytics_service):
        start, end = local_range_bounds_utc(date(2025, 3, 1), date(2025, 4, 1), gym.timezone)
        report = analytics_service.build_report(db, gym.id, start, end)

        assert report.check_ins.total == 2
        assert report.check_ins.by_method == {"dni": 1, "qr": 1, "camera": 0}
        assert report.check_ins.by_hour[9] == 2
        assert report.students.total == 3
        assert report.students.active == 2
        assert report.students.inactive == 1
        assert report.students.expired == 0
        assert report.students.new == 3
        assert report.revenue.total_cents == 1500000 * 2 + 4000000
        assert report.revenue.by_plan[0].plan_name == "Trimestral"

    def test_report_counts_lapsed_members_as_expired(self, db, gym, activity, analytics_service, clock):
        clock.set(datetime(2025, 4, 15, 12, 0))
        report = analytics_service.get_dashboard_stats(db, gym.id)
        assert report.students.active == 1
        assert report.students.expired == 1
        assert report.check_ins.total == 0

    def test_snapshot_is_replaced_on_regeneration(self, db, gym, activity, analytics_service):
        first = analytics_service.generate_snapshot(db, gym.id, PeriodType.daily, date(2025, 3, 10))
        second = analytics_service.generate_snapshot(db, gym.id, PeriodType.daily, date(2025, 3, 10))

        assert first.id == second.id
        assert second.period_start == date(2025, 3, 10)
        assert second.period_end == date(2025, 3, 11)
        assert second.data["check_ins"]["total"] == 2

        snapshots = analytics_service.list_snapshots(db, gym.id, period_type=PeriodType.daily)
        assert len(snapshots) == 1

    def test_previous_period_snapshots(self, db, gym, activity, analytics_service, clock):
        clock.set(datetime(2025, 3, 11, 12, 0))
        generated, errors = analytics_service.generate_previous_period_snapshots(db, PeriodType.daily)
        assert generated == 1
        assert errors == []
        snapshot = analytics_service.list_snapshots(db, gym.id)[0]
        assert snapshot.period_start == date(2025, 3, 10)

    def test_purge_expired_snapshots(self, db, gym, activity, analytics_service, clock):
        analytics_service.generate_snapshot(db, gym.id, PeriodType.monthly, date(2025, 3, 10))
        clock.set(datetime(2026, 6, 1, 12, 0))
        assert analytics_service.purge_expired_snapshots(db, retention_days=365) == 1
        assert analytics_service.list_snapshots(db, gym.id) == []
