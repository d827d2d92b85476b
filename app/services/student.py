"""
Ciclo de vida de alumnos y de su membresía.

Estados de la membresía: active, expired, inactive.
- active -> expired: al vencer (lectura perezosa o barrido programado).
- expired | inactive -> active: solo por renovación.
- active | expired -> inactive: baja lógica del alumno.

Las transiciones que pueden superar el cupo del gimnasio (alta y renovación)
toman el lock de la fila del gimnasio y recuentan alumnos activos dentro de la
misma transacción antes de escribir.
"""
import hashlib
import logging
import math
import secrets
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import (
    ConflictError,
    DuplicateDNI,
    GymAPIError,
    ImmutableField,
    PlanNotFound,
    StudentNotFound,
    TenantInactive,
    TenantNotFound,
)
from app.core.timezone_utils import add_duration, local_date, local_day_bounds_utc, utcnow
from app.models.gym import Gym
from app.models.membership import MembershipPlan
from app.models.student import Student, MembershipStatus
from app.repositories.gym import gym_repository
from app.repositories.student import student_repository
from app.schemas.common import Page, SweepResult
from app.schemas.student import MembershipStatusInfo, StudentCreate, StudentUpdate
from app.services.membership_plan import MembershipPlanService, membership_plan_service
from app.services.notification_service import EmailNotificationService, notification_service
from app.services.tenant_limit import TenantLimitPolicy, tenant_limit_policy

logger = logging.getLogger(__name__)

_CONTACT_FIELDS = ("first_name", "last_name", "email", "phone", "photo_url")
_IMMUTABLE_FIELDS = ("dni", "check_in_token")


class StudentService:
    """Servicio de alumnos: altas, renovaciones, vencimientos y bajas"""

    def __init__(
        self,
        plan_service: MembershipPlanService,
        limit_policy: TenantLimitPolicy,
        notifier: EmailNotificationService,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.plan_service = plan_service
        self.limit_policy = limit_policy
        self.notifier = notifier
        self.clock = clock

    # === Helpers ===

    def _get_gym(self, db: Session, gym_id: int, require_active: bool = True) -> Gym:
        gym = db.get(Gym, gym_id)
        if gym is None:
            raise TenantNotFound(gym_id=gym_id)
        if require_active and not gym.is_active:
            raise TenantInactive(gym_id=gym_id)
        return gym

    def _generate_check_in_token(self, db: Session, gym_id: int) -> str:
        """
        Genera un token de acceso único dentro del gimnasio.
        El formato es: G{gym_id}_{hash}
        """
        while True:
            hash_input = f"{gym_id}_{secrets.token_hex(16)}"
            hash_short = hashlib.sha256(hash_input.encode()).hexdigest()[:12]
            token = f"G{gym_id}_{hash_short}"
            if not student_repository.token_exists(db, gym_id, token):
                return token

    @staticmethod
    def _apply_membership(student: Student, plan: MembershipPlan, now: datetime) -> None:
        """Copia los datos del plan en la membresía del alumno y fija el vencimiento."""
        student.membership_plan_id = plan.id
        student.membership_status = MembershipStatus.active
        student.membership_start_date = now
        student.membership_expiry_date = add_duration(now, plan.duration, plan.duration_type)
        student.membership_last_payment = now
        student.membership_price_cents = plan.price_cents
        student.membership_duration = plan.duration
        student.membership_duration_type = plan.duration_type

    def _lock_and_reload_plan(self, db: Session, gym_id: int, plan: MembershipPlan, now: datetime) -> None:
        """Toma el lock del gimnasio y confirma que el plan sigue activo."""
        if not gym_repository.lock(db, gym_id, now):
            raise TenantNotFound(gym_id=gym_id)
        db.refresh(plan)
        if not plan.is_active:
            raise PlanNotFound("El plan de membresía no está activo", plan_id=plan.id, gym_id=gym_id)

    def _notify_expired(self, student: Student) -> None:
        """El aviso es best-effort: un fallo al encolarlo no revierte el vencimiento."""
        try:
            self.notifier.send_expiry_notice(student.email, student.full_name)
        except Exception as e:
            logger.warning(f"No se pudo encolar el aviso de vencimiento del alumno {student.id}: {e}")

    def expire_if_due(self, db: Session, student: Student, now: datetime) -> Student:
        """Vencimiento perezoso: aplica active -> expired si corresponde."""
        if (
            student.membership_status != MembershipStatus.active
            or student.membership_expiry_date is None
            or student.membership_expiry_date >= now
        ):
            return student

        try:
            if student_repository.mark_expired(db, student.id, now):
                gym_repository.increment_counters(db, student.gym_id, active_students=-1)
                db.commit()
                logger.info(f"Membresía del alumno {student.id} vencida (gym {student.gym_id})")
            else:
                db.rollback()
                db.refresh(student)
                return student
        except SQLAlchemyError:
            db.rollback()
            raise
        db.refresh(student)
        self._notify_expired(student)
        return student

    # === Lectura ===

    def get_student(self, db: Session, gym_id: int, student_id: int) -> Student:
        student = student_repository.get(db, student_id, gym_id=gym_id)
        if student is None:
            raise StudentNotFound(student_id=student_id, gym_id=gym_id)
        return self.expire_if_due(db, student, self.clock())

    def get_student_by_dni(self, db: Session, gym_id: int, dni: str) -> Student:
        student = student_repository.get_by_dni(db, gym_id, dni.strip())
        if student is None:
            raise StudentNotFound(gym_id=gym_id)
        return self.expire_if_due(db, student, self.clock())

    def list_students(
        self,
        db: Session,
        gym_id: int,
        status: Optional[MembershipStatus] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Page:
        """Listado paginado. Antes de filtrar por estado se aplican los vencimientos pendientes del gimnasio."""
        self._get_gym(db, gym_id, require_active=False)
        self._expire_due_for_gym(db, gym_id, self.clock())
        items, total = student_repository.search(
            db, gym_id, status=status, search=search, skip=skip, limit=limit
        )
        return Page(items=items, total=total, skip=skip, limit=limit)

    def _expire_due_for_gym(self, db: Session, gym_id: int, now: datetime) -> int:
        candidates = student_repository.get_expired_candidates(db, now, gym_id=gym_id, limit=1000)
        if not candidates:
            return 0
        expired = 0
        try:
            for student_id, _ in candidates:
                if student_repository.mark_expired(db, student_id, now):
                    expired += 1
            if expired:
                gym_repository.increment_counters(db, gym_id, active_students=-expired)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        if expired:
            logger.info(f"{expired} membresías vencidas al listar alumnos del gym {gym_id}")
        return expired

    def get_membership_status(self, db: Session, gym_id: int, student_id: int) -> MembershipStatusInfo:
        now = self.clock()
        student = self.get_student(db, gym_id, student_id)
        can_access = student.is_effectively_active(now)
        days_remaining = 0
        if can_access:
            days_remaining = math.ceil((student.membership_expiry_date - now).total_seconds() / 86400)

        return MembershipStatusInfo(
            student_id=student.id,
            status=student.membership_status,
            membership_plan_id=student.membership_plan_id,
            start_date=student.membership_start_date,
            expiry_date=student.membership_expiry_date,
            days_remaining=days_remaining,
            can_access=can_access,
        )

    # === Escritura ===

    def create_student(self, db: Session, gym_id: int, student_in: StudentCreate) -> Student:
        """
        Alta de alumno con su primera membresía.

        Raises:
            DuplicateDNI: el DNI ya existe en el gimnasio
            PlanNotFound: el plan no es del gimnasio o está retirado
            QuotaExceeded: el gimnasio no tiene cupo para un alumno activo más
        """
        now = self.clock()
        self._get_gym(db, gym_id)

        if student_repository.get_by_dni(db, gym_id, student_in.dni):
            logger.info(f"DNI duplicado en gym {gym_id}")
            raise DuplicateDNI(gym_id=gym_id)

        plan = self.plan_service.get_active_plan(db, gym_id, student_in.membership_plan_id)

        try:
            self._lock_and_reload_plan(db, gym_id, plan, now)
            self.limit_policy.ensure_within_limit(db, gym_id, now)

            student = Student(
                gym_id=gym_id,
                first_name=student_in.first_name,
                last_name=student_in.last_name,
                dni=student_in.dni,
                email=student_in.email,
                phone=student_in.phone,
                photo_url=student_in.photo_url,
                check_in_token=self._generate_check_in_token(db, gym_id),
                total_check_ins=0,
                join_date=now,
                created_at=now,
                updated_at=now,
            )
            self._apply_membership(student, plan, now)
            db.add(student)
            db.flush()

            self.plan_service.increment_usage(db, plan.id, 1)
            gym_repository.increment_counters(db, gym_id, total_students=1, active_students=1)
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"Colisión de DNI al confirmar alta en gym {gym_id}")
            raise DuplicateDNI(gym_id=gym_id)
        except (GymAPIError, SQLAlchemyError):
            db.rollback()
            raise

        db.refresh(student)
        logger.info(f"Alumno creado: {student.id} en gym {gym_id} con plan {plan.id}")
        self.notifier.send_welcome(
            student.email, student.full_name, plan.name, student.membership_expiry_date
        )
        return student

    def renew_membership(self, db: Session, gym_id: int, student_id: int, plan_id: int) -> Student:
        """
        Renueva (o cambia) la membresía del alumno con un plan activo del gimnasio.

        Un alumno activo puede renovar por adelantado: el nuevo período empieza
        ahora. Si el alumno no está contando como activo se verifica el cupo.
        """
        return self._renew(db, gym_id, student_id, plan_id)

    def _renew(
        self,
        db: Session,
        gym_id: int,
        student_id: int,
        plan_id: int,
        changes: Optional[Dict[str, Any]] = None,
    ) -> Student:
        """Renovación en una sola transacción; `changes` se confirma junto con la membresía."""
        now = self.clock()
        self._get_gym(db, gym_id)

        student = student_repository.get(db, student_id, gym_id=gym_id)
        if student is None:
            raise StudentNotFound(student_id=student_id, gym_id=gym_id)

        try:
            plan = self.plan_service.get_active_plan(db, gym_id, plan_id)
            self._lock_and_reload_plan(db, gym_id, plan, now)
            db.refresh(student)

            was_counted = student.is_effectively_active(now)
            if not was_counted:
                self.limit_policy.ensure_within_limit(db, gym_id, now)

            old_plan_id = student.membership_plan_id
            old_status = student.membership_status

            for field, value in (changes or {}).items():
                setattr(student, field, value)
            self._apply_membership(student, plan, now)
            student.updated_at = now
            db.flush()

            if old_status == MembershipStatus.inactive:
                self.plan_service.increment_usage(db, plan.id, 1)
                gym_repository.increment_counters(db, gym_id, total_students=1, active_students=1)
            else:
                if old_plan_id != plan.id:
                    if old_plan_id is not None:
                        self.plan_service.increment_usage(db, old_plan_id, -1)
                    self.plan_service.increment_usage(db, plan.id, 1)
                if old_status == MembershipStatus.expired:
                    gym_repository.increment_counters(db, gym_id, active_students=1)
            db.commit()
        except (GymAPIError, SQLAlchemyError):
            db.rollback()
            raise

        db.refresh(student)
        logger.info(
            f"Membresía renovada: alumno {student.id} gym {gym_id} plan {plan.id} "
            f"(antes {old_status.value}), vence {student.membership_expiry_date}"
        )
        self.notifier.send_renewal(
            student.email, student.full_name, plan.name, student.membership_expiry_date
        )
        return student

    def update_student(self, db: Session, gym_id: int, student_id: int, patch: StudentUpdate) -> Student:
        """
        Modifica datos de contacto. dni y check_in_token son inmutables.
        Cambiar membership_plan_id equivale a renovar con el nuevo plan.
        """
        student = self.get_student(db, gym_id, student_id)
        update_data = patch.model_dump(exclude_unset=True)

        for field in _IMMUTABLE_FIELDS:
            if field in update_data and update_data[field] != getattr(student, field):
                logger.info(f"Intento de modificar {field} del alumno {student_id}")
                raise ImmutableField(f"El campo {field} no puede modificarse", field=field)

        contact_data = {
            field: update_data[field]
            for field in _CONTACT_FIELDS
            if field in update_data
            and (update_data[field] is not None or field not in ("first_name", "last_name"))
        }

        new_plan_id = update_data.get("membership_plan_id")
        if new_plan_id is not None and new_plan_id != student.membership_plan_id:
            student = self._renew(db, gym_id, student.id, new_plan_id, changes=contact_data)
            if contact_data:
                logger.info(f"Alumno {student.id} actualizado: {sorted(contact_data)}")
            return student

        if contact_data:
            contact_data["updated_at"] = self.clock()
            try:
                student = student_repository.update(db, db_obj=student, obj_in=contact_data)
            except SQLAlchemyError:
                db.rollback()
                raise
            logger.info(f"Alumno {student.id} actualizado: {sorted(contact_data)}")

        return student

    def delete_student(self, db: Session, gym_id: int, student_id: int) -> Student:
        """
        Baja lógica. Conserva historial de asistencias; DNI y token quedan reservados.
        """
        now = self.clock()
        student = self.get_student(db, gym_id, student_id)
        old_status = student.membership_status
        if old_status == MembershipStatus.inactive:
            return student

        try:
            if not student_repository.mark_inactive(db, student.id, old_status, now):
                db.rollback()
                raise ConflictError("El estado del alumno cambió durante la operación", student_id=student_id)
            if student.membership_plan_id is not None:
                self.plan_service.increment_usage(db, student.membership_plan_id, -1)
            gym_repository.increment_counters(
                db,
                gym_id,
                total_students=-1,
                active_students=-1 if old_status == MembershipStatus.active else 0,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        db.refresh(student)
        logger.info(f"Alumno {student.id} dado de baja en gym {gym_id}")
        return student

    # === Tareas programadas ===

    def process_expired_memberships(self, db: Session, batch_size: int = 500) -> SweepResult:
        """
        Barrido de vencimientos: active -> expired para todos los alumnos con
        vencimiento pasado. Una transacción por alumno; los errores se acumulan
        y no detienen el barrido. Repetirlo sin que pase el tiempo no afecta filas.
        """
        now = self.clock()
        affected = 0
        errors: List[str] = []
        last_id = 0

        while True:
            batch = student_repository.get_expired_candidates(db, now, after_id=last_id, limit=batch_size)
            if not batch:
                break
            for student_id, gym_id in batch:
                last_id = student_id
                try:
                    expired = student_repository.mark_expired(db, student_id, now)
                    if expired:
                        gym_repository.increment_counters(db, gym_id, active_students=-1)
                        db.commit()
                        affected += 1
                    else:
                        db.rollback()
                except SQLAlchemyError as e:
                    db.rollback()
                    logger.error(f"Error venciendo membresía del alumno {student_id}: {e}", exc_info=True)
                    errors.append(f"student {student_id}: {e}")
                    continue
                if expired:
                    student = db.get(Student, student_id)
                    if student is not None:
                        self._notify_expired(student)
            if len(batch) < batch_size:
                break

        logger.info(f"Barrido de vencimientos: {affected} membresías vencidas, {len(errors)} errores")
        return SweepResult(affected=affected, errors=errors)

    def send_expiry_reminders(self, db: Session, days_before: int = 7) -> int:
        """
        Avisa a los alumnos cuya membresía vence en el día local `hoy + days_before`
        de su gimnasio. Retorna la cantidad de avisos despachados.
        """
        now = self.clock()
        sent = 0
        for gym in gym_repository.get_active_gyms(db):
            today = local_date(now, gym.timezone)
            target_day = today + timedelta(days=days_before)
            start, end = local_day_bounds_utc(target_day, gym.timezone)
            for student in student_repository.get_expiring_between(db, gym.id, start, end):
                if not student.email:
                    continue
                self.notifier.send_expiry_reminder(
                    student.email, student.full_name, student.membership_expiry_date, days_before
                )
                sent += 1
        logger.info(f"Recordatorios de vencimiento enviados: {sent}")
        return sent


student_service = StudentService(
    plan_service=membership_plan_service,
    limit_policy=tenant_limit_policy,
    notifier=notification_service,
)
