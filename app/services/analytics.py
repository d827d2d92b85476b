"""
Métricas agregadas por gimnasio.

Servicio de solo lectura sobre alumnos, planes y asistencias: nunca modifica
esas tablas. Los snapshots persistidos guardan el mismo reporte que se calcula
bajo demanda y se pueden regenerar.
"""
import logging
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Callable, List, Optional, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy import and_, case, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import TenantNotFound
from app.core.timezone_utils import local_date, local_hour, local_range_bounds_utc, utcnow
from app.db.session import retry_on_db_error
from app.models.analytics import AnalyticsSnapshot, PeriodType
from app.models.check_in import CheckInMethod
from app.models.gym import Gym
from app.models.membership import MembershipPlan
from app.models.student import Student, MembershipStatus
from app.repositories.check_in import check_in_repository
from app.repositories.gym import gym_repository
from app.schemas.analytics import (
    AnalyticsReport,
    CheckInSummary,
    PlanRevenue,
    RevenueSummary,
    StudentSummary,
)

logger = logging.getLogger(__name__)


def period_bounds(period_type: PeriodType, reference_date: date) -> Tuple[date, date]:
    """
    Días locales [inicio, fin) del período que contiene reference_date.
    Las semanas empiezan en domingo.
    """
    period_type = PeriodType(period_type)
    if period_type == PeriodType.daily:
        return reference_date, reference_date + timedelta(days=1)
    if period_type == PeriodType.weekly:
        start = reference_date - timedelta(days=(reference_date.weekday() + 1) % 7)
        return start, start + timedelta(days=7)
    start = reference_date.replace(day=1)
    return start, start + relativedelta(months=1)


class AnalyticsService:

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self.clock = clock

    def _get_gym(self, db: Session, gym_id: int) -> Gym:
        gym = db.get(Gym, gym_id)
        if gym is None:
            raise TenantNotFound(gym_id=gym_id)
        return gym

    # === Secciones del reporte ===

    def _check_in_summary(self, db: Session, gym: Gym, start: datetime, end: datetime) -> CheckInSummary:
        by_method = {method.value: 0 for method in CheckInMethod}
        for method, count in check_in_repository.count_by_method(db, gym.id, start, end):
            by_method[CheckInMethod(method).value] = count

        hours = Counter(local_hour(ts, gym.timezone) for ts in check_in_repository.timestamps(db, gym.id, start, end))
        by_hour = {hour: hours.get(hour, 0) for hour in range(24)}

        return CheckInSummary(total=sum(by_method.values()), by_method=by_method, by_hour=by_hour)

    def _student_summary(self, db: Session, gym_id: int, start: datetime, end: datetime, now: datetime) -> StudentSummary:
        """Estados efectivos a `now`: un active con vencimiento pasado cuenta como expired."""
        effectively_active = and_(
            Student.membership_status == MembershipStatus.active,
            Student.membership_expiry_date >= now,
        )
        row = (
            db.query(
                func.count(Student.id),
                func.sum(case((effectively_active, 1), else_=0)),
                func.sum(case((Student.membership_status == MembershipStatus.inactive, 1), else_=0)),
                func.sum(case((and_(Student.join_date >= start, Student.join_date < end), 1), else_=0)),
            )
            .filter(Student.gym_id == gym_id)
            .one()
        )
        total, active, inactive, new = (int(value or 0) for value in row)
        return StudentSummary(
            total=total,
            active=active,
            expired=total - active - inactive,
            inactive=inactive,
            new=new,
        )

    def _revenue_summary(self, db: Session, gym_id: int, start: datetime, end: datetime) -> RevenueSummary:
        """Precios congelados de las membresías iniciadas en el rango, por plan."""
        rows = (
            db.query(
                Student.membership_plan_id,
                MembershipPlan.name,
                func.coalesce(func.sum(Student.membership_price_cents), 0),
                func.count(Student.id),
            )
            .outerjoin(MembershipPlan, MembershipPlan.id == Student.membership_plan_id)
            .filter(
                Student.gym_id == gym_id,
                Student.membership_start_date >= start,
                Student.membership_start_date < end,
            )
            .group_by(Student.membership_plan_id, MembershipPlan.name)
            .all()
        )
        by_plan = [
            PlanRevenue(plan_id=plan_id, plan_name=name or "Sin plan", total_cents=int(total), count=count)
            for plan_id, name, total, count in rows
        ]
        by_plan.sort(key=lambda item: (-item.total_cents, item.plan_name))
        return RevenueSummary(total_cents=sum(item.total_cents for item in by_plan), by_plan=by_plan)

    # === Reportes ===

    @retry_on_db_error()
    def build_report(self, db: Session, gym_id: int, start: datetime, end: datetime) -> AnalyticsReport:
        """Reporte completo del gimnasio para el rango [start, end) en UTC."""
        gym = self._get_gym(db, gym_id)
        now = self.clock()
        return AnalyticsReport(
            gym_id=gym_id,
            start=start,
            end=end,
            check_ins=self._check_in_summary(db, gym, start, end),
            students=self._student_summary(db, gym_id, start, end, now),
            revenue=self._revenue_summary(db, gym_id, start, end),
        )

    def get_dashboard_stats(self, db: Session, gym_id: int) -> AnalyticsReport:
        """Reporte del mes calendario local en curso."""
        gym = self._get_gym(db, gym_id)
        today = local_date(self.clock(), gym.timezone)
        month_start, month_end = period_bounds(PeriodType.monthly, today)
        start, end = local_range_bounds_utc(month_start, month_end, gym.timezone)
        return self.build_report(db, gym_id, start, end)

    # === Snapshots ===

    def generate_snapshot(
        self, db: Session, gym_id: int, period_type: PeriodType, reference_date: Optional[date] = None
    ) -> AnalyticsSnapshot:
        """
        Calcula y persiste el reporte del período. Si ya existe un snapshot
        para el período se reemplaza.
        """
        gym = self._get_gym(db, gym_id)
        period_type = PeriodType(period_type)
        reference_date = reference_date or local_date(self.clock(), gym.timezone)
        period_start, period_end = period_bounds(period_type, reference_date)
        start, end = local_range_bounds_utc(period_start, period_end, gym.timezone)

        data = self.build_report(db, gym_id, start, end).model_dump(mode="json")

        for attempt in range(2):
            try:
                snapshot = (
                    db.query(AnalyticsSnapshot)
                    .filter(
                        AnalyticsSnapshot.gym_id == gym_id,
                        AnalyticsSnapshot.period_type == period_type.value,
                        AnalyticsSnapshot.period_start == period_start,
                    )
                    .first()
                )
                if snapshot is None:
                    snapshot = AnalyticsSnapshot(
                        gym_id=gym_id,
                        period_type=period_type.value,
                        period_start=period_start,
                    )
                    db.add(snapshot)
                snapshot.period_end = period_end
                snapshot.data = data
                snapshot.generated_at = self.clock()
                db.commit()
                break
            except IntegrityError:
                # Otro proceso insertó el mismo período: reemplazarlo
                db.rollback()
                if attempt:
                    raise
            except SQLAlchemyError:
                db.rollback()
                raise

        db.refresh(snapshot)
        logger.info(f"Snapshot {period_type.value} generado para gym {gym_id} desde {period_start}")
        return snapshot

    def generate_previous_period_snapshots(self, db: Session, period_type: PeriodType) -> Tuple[int, List[str]]:
        """
        Genera para cada gimnasio activo el snapshot del último período local
        completo (ayer, la semana pasada o el mes pasado).
        """
        period_type = PeriodType(period_type)
        now = self.clock()
        generated = 0
        errors: List[str] = []
        for gym in gym_repository.get_active_gyms(db):
            today = local_date(now, gym.timezone)
            if period_type == PeriodType.weekly:
                reference = today - timedelta(days=7)
            else:
                reference = today - timedelta(days=1)
            try:
                self.generate_snapshot(db, gym.id, period_type, reference)
                generated += 1
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Error generando snapshot {period_type.value} del gym {gym.id}: {e}", exc_info=True)
                errors.append(f"gym {gym.id}: {e}")
        return generated, errors

    @retry_on_db_error()
    def list_snapshots(
        self,
        db: Session,
        gym_id: int,
        period_type: Optional[PeriodType] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[AnalyticsSnapshot]:
        query = db.query(AnalyticsSnapshot).filter(AnalyticsSnapshot.gym_id == gym_id)
        if period_type is not None:
            query = query.filter(AnalyticsSnapshot.period_type == PeriodType(period_type).value)
        return query.order_by(AnalyticsSnapshot.period_start.desc()).offset(skip).limit(limit).all()

    def purge_expired_snapshots(self, db: Session, retention_days: Optional[int] = None) -> int:
        retention_days = retention_days or get_settings().ANALYTICS_RETENTION_DAYS
        cutoff = self.clock() - timedelta(days=retention_days)
        try:
            deleted = (
                db.query(AnalyticsSnapshot)
                .filter(AnalyticsSnapshot.generated_at < cutoff)
                .delete(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.info(f"Snapshots anteriores a {cutoff} eliminados: {deleted}")
        return deleted


analytics_service = AnalyticsService()
