from typing import Optional, List, Tuple
from datetime import datetime

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from app.models.student import Student, MembershipStatus
from app.repositories.base import BaseRepository
from app.schemas.student import StudentCreate, StudentUpdate


class StudentRepository(BaseRepository[Student, StudentCreate, StudentUpdate]):
    """Repositorio de alumnos"""

    def get_by_dni(self, db: Session, gym_id: int, dni: str) -> Optional[Student]:
        return db.query(Student).filter(Student.gym_id == gym_id, Student.dni == dni).first()

    def get_by_token(self, db: Session, token: str) -> Optional[Student]:
        """
        Buscar por token de acceso sin filtrar por gimnasio.
        El llamador debe verificar la pertenencia al tenant.
        """
        return db.query(Student).filter(Student.check_in_token == token).first()

    def token_exists(self, db: Session, gym_id: int, token: str) -> bool:
        query = db.query(Student.id).filter(Student.gym_id == gym_id, Student.check_in_token == token)
        return db.query(query.exists()).scalar()

    def count_effectively_active(self, db: Session, gym_id: int, now: datetime) -> int:
        """Alumnos con estado active cuyo vencimiento no pasó respecto de `now`."""
        return (
            db.query(func.count(Student.id))
            .filter(
                Student.gym_id == gym_id,
                Student.membership_status == MembershipStatus.active,
                Student.membership_expiry_date >= now,
            )
            .scalar()
        ) or 0

    def search(
        self,
        db: Session,
        gym_id: int,
        *,
        status: Optional[MembershipStatus] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[Student], int]:
        """
        Listado filtrable de alumnos del gimnasio.

        Args:
            status: Estado almacenado de la membresía
            search: Texto parcial sobre nombre, apellido, DNI o email

        Returns:
            (alumnos de la página, total sin paginar)
        """
        query = db.query(Student).filter(Student.gym_id == gym_id)
        if status is not None:
            query = query.filter(Student.membership_status == status)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    Student.first_name.ilike(pattern),
                    Student.last_name.ilike(pattern),
                    Student.dni.ilike(pattern),
                    Student.email.ilike(pattern),
                )
            )
        total = query.with_entities(func.count(Student.id)).scalar() or 0
        items = query.order_by(Student.last_name, Student.first_name, Student.id).offset(skip).limit(limit).all()
        return items, total

    def mark_expired(self, db: Session, student_id: int, now: datetime) -> bool:
        """
        active -> expired solo si el vencimiento ya pasó. Idempotente: una
        segunda llamada no afecta filas. Sin commit.

        Returns:
            True si esta llamada realizó la transición
        """
        result = db.execute(
            update(Student)
            .where(
                Student.id == student_id,
                Student.membership_status == MembershipStatus.active,
                Student.membership_expiry_date < now,
            )
            .values(membership_status=MembershipStatus.expired, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def get_expired_candidates(
        self, db: Session, now: datetime, *, gym_id: Optional[int] = None,
        after_id: int = 0, limit: int = 500
    ) -> List[Tuple[int, int]]:
        """(id, gym_id) de alumnos activos con vencimiento pasado, ordenados por id."""
        query = db.query(Student.id, Student.gym_id).filter(
            Student.membership_status == MembershipStatus.active,
            Student.membership_expiry_date < now,
            Student.id > after_id,
        )
        if gym_id is not None:
            query = query.filter(Student.gym_id == gym_id)
        rows = query.order_by(Student.id).limit(limit).all()
        return [(row[0], row[1]) for row in rows]

    def mark_inactive(self, db: Session, student_id: int, expected_status: MembershipStatus, now: datetime) -> bool:
        """Baja lógica condicionada al estado leído previamente. Sin commit."""
        result = db.execute(
            update(Student)
            .where(Student.id == student_id, Student.membership_status == expected_status)
            .values(membership_status=MembershipStatus.inactive, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def get_expiring_between(self, db: Session, gym_id: int, start: datetime, end: datetime) -> List[Student]:
        return (
            db.query(Student)
            .filter(
                Student.gym_id == gym_id,
                Student.membership_status == MembershipStatus.active,
                Student.membership_expiry_date >= start,
                Student.membership_expiry_date < end,
            )
            .all()
        )

    def register_check_in(self, db: Session, student_id: int, now: datetime) -> None:
        """Incremento atómico del contador de asistencias. Sin commit."""
        db.execute(
            update(Student)
            .where(Student.id == student_id)
            .values(total_check_ins=Student.total_check_ins + 1, last_check_in=now)
            .execution_options(synchronize_session=False)
        )


student_repository = StudentRepository(Student)
