import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.exceptions import (
    CheckInNotFound,
    DuplicateCheckIn,
    FeatureNotAvailable,
    GymAPIError,
    MembershipInactive,
    StudentNotFound,
    TenantInactive,
    TenantMismatch,
    TenantNotFound,
)
from app.core.timezone_utils import local_date, local_hour, utcnow
from app.db.session import retry_on_db_error
from app.models.check_in import CheckIn, CheckInMethod
from app.models.gym import Gym
from app.models.student import Student
from app.repositories.check_in import check_in_repository
from app.repositories.gym import gym_repository
from app.repositories.student import student_repository
from app.schemas.check_in import CheckInCreate, MethodStats, PeakHour, TodayAttendee
from app.schemas.common import Page
from app.services.student import StudentService, student_service

logger = logging.getLogger(__name__)

# Funcionalidad del plan de suscripción requerida por cada método
_METHOD_FEATURES = {
    CheckInMethod.qr: "qr_access",
    CheckInMethod.camera: "camera_access",
}


class CheckInService:
    """
    Registro de asistencias: una entrada por alumno por día local del gimnasio,
    solo con membresía efectivamente activa.
    """

    def __init__(self, students: StudentService, clock: Callable[[], datetime] = utcnow):
        self.students = students
        self.clock = clock

    def _get_gym(self, db: Session, gym_id: int) -> Gym:
        gym = db.get(Gym, gym_id)
        if gym is None:
            raise TenantNotFound(gym_id=gym_id)
        return gym

    def _resolve_student(self, db: Session, gym_id: int, request: CheckInCreate) -> Student:
        if request.dni:
            student = student_repository.get_by_dni(db, gym_id, request.dni.strip())
            if student is None:
                raise StudentNotFound(gym_id=gym_id)
            return student

        student = student_repository.get_by_token(db, request.token.strip())
        if student is None:
            raise StudentNotFound(gym_id=gym_id)
        if student.gym_id != gym_id:
            logger.warning(f"Token de acceso de otro gimnasio presentado en gym {gym_id}")
            raise TenantMismatch(gym_id=gym_id)
        return student

    def register_check_in(self, db: Session, gym_id: int, request: CheckInCreate) -> CheckIn:
        """
        Registra la entrada de un alumno identificado por DNI o token.

        Raises:
            StudentNotFound: no existe el alumno en el gimnasio
            TenantMismatch: el token pertenece a otro gimnasio
            MembershipInactive: la membresía no está vigente
            FeatureNotAvailable: el plan de suscripción no habilita el método
            DuplicateCheckIn: el alumno ya registró su entrada hoy
        """
        now = self.clock()
        gym = self._get_gym(db, gym_id)
        if not gym.is_active:
            raise TenantInactive(gym_id=gym_id)

        student = self._resolve_student(db, gym_id, request)

        if not student.is_effectively_active(now):
            self.students.expire_if_due(db, student, now)
            logger.info(
                f"Entrada rechazada: alumno {student.id} con membresía {student.membership_status.value} "
                f"(gym {gym_id})"
            )
            raise MembershipInactive(student_id=student.id, status=student.membership_status.value)

        feature = _METHOD_FEATURES.get(request.method)
        if feature and gym.subscription_plan and not gym.subscription_plan.has_feature(feature):
            logger.info(f"Método {request.method.value} no habilitado para gym {gym_id}")
            raise FeatureNotAvailable(
                f"El plan de suscripción no incluye acceso por {request.method.value}",
                feature=feature,
            )

        day = local_date(now, gym.timezone)
        if check_in_repository.exists_for_day(db, student.id, day):
            logger.info(f"Entrada duplicada: alumno {student.id} el {day} (gym {gym_id})")
            raise DuplicateCheckIn(student_id=student.id, day=day.isoformat())

        try:
            check_in = CheckIn(
                student_id=student.id,
                gym_id=gym_id,
                method=request.method,
                timestamp=now,
                check_in_day=day,
                latitude=request.latitude,
                longitude=request.longitude,
                notes=request.notes,
            )
            db.add(check_in)
            db.flush()
            student_repository.register_check_in(db, student.id, now)
            gym_repository.increment_counters(db, gym_id, total_check_ins=1)
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Entrada concurrente duplicada: alumno {student.id} el {day}")
            raise DuplicateCheckIn(student_id=student.id, day=day.isoformat())
        except (GymAPIError, SQLAlchemyError):
            db.rollback()
            raise

        db.refresh(check_in)
        logger.info(f"Check-in registrado: alumno {student.id} gym {gym_id} via {request.method.value}")
        return check_in

    # === Consultas ===

    def get_check_in(self, db: Session, gym_id: int, check_in_id: int) -> CheckIn:
        check_in = check_in_repository.get(db, check_in_id, gym_id=gym_id)
        if check_in is None:
            raise CheckInNotFound(check_in_id=check_in_id, gym_id=gym_id)
        return check_in

    @retry_on_db_error()
    def list_check_ins(
        self,
        db: Session,
        gym_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        student_id: Optional[int] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Page:
        items, total = check_in_repository.list_range(
            db, gym_id, start=start, end=end, student_id=student_id, skip=skip, limit=limit
        )
        return Page(items=items, total=total, skip=skip, limit=limit)

    def get_student_check_ins(
        self, db: Session, gym_id: int, student_id: int, skip: int = 0, limit: int = 100
    ) -> Page:
        if not student_repository.exists(db, student_id, gym_id=gym_id):
            raise StudentNotFound(student_id=student_id, gym_id=gym_id)
        return self.list_check_ins(db, gym_id, student_id=student_id, skip=skip, limit=limit)

    @retry_on_db_error()
    def get_peak_hours(
        self,
        db: Session,
        gym_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        top_n: Optional[int] = None,
    ) -> List[PeakHour]:
        """
        Horas locales del gimnasio con más entradas en el rango.
        Orden: cantidad descendente, hora ascendente en empates.
        """
        gym = self._get_gym(db, gym_id)
        top_n = top_n or get_settings().PEAK_HOURS_TOP_N
        counts = Counter(
            local_hour(ts, gym.timezone)
            for ts in check_in_repository.timestamps(db, gym_id, start, end)
        )
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [PeakHour(hour=hour, count=count) for hour, count in ranked[:top_n]]

    @retry_on_db_error()
    def get_stats_by_method(
        self, db: Session, gym_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> MethodStats:
        by_method = {method.value: 0 for method in CheckInMethod}
        for method, count in check_in_repository.count_by_method(db, gym_id, start, end):
            by_method[CheckInMethod(method).value] = count
        return MethodStats(total=sum(by_method.values()), by_method=by_method)

    @retry_on_db_error()
    def get_today_attendees(self, db: Session, gym_id: int) -> List[TodayAttendee]:
        """Alumnos que registraron entrada en el día local actual del gimnasio."""
        gym = self._get_gym(db, gym_id)
        today = local_date(self.clock(), gym.timezone)
        return [
            TodayAttendee(
                student_id=check_in.student_id,
                full_name=check_in.student.full_name,
                dni=check_in.student.dni,
                checked_in_at=check_in.timestamp,
                method=check_in.method,
            )
            for check_in in check_in_repository.for_day(db, gym_id, today)
        ]

    def purge_old_check_ins(self, db: Session, retention_days: Optional[int] = None) -> int:
        """Elimina asistencias más antiguas que la retención configurada."""
        retention_days = retention_days or get_settings().CHECK_IN_RETENTION_DAYS
        cutoff = self.clock() - timedelta(days=retention_days)
        try:
            deleted = check_in_repository.delete_older_than(db, cutoff)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.info(f"Asistencias anteriores a {cutoff} eliminadas: {deleted}")
        return deleted


check_in_service = CheckInService(students=student_service)
