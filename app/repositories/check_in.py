from typing import Optional, List, Tuple
from datetime import date, datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.check_in import CheckIn
from app.repositories.base import BaseRepository
from app.schemas.check_in import CheckInCreate


class CheckInRepository(BaseRepository[CheckIn, CheckInCreate, CheckInCreate]):
    """Repositorio de asistencias. Los registros nunca se modifican."""

    def exists_for_day(self, db: Session, student_id: int, day: date) -> bool:
        query = db.query(CheckIn.id).filter(CheckIn.student_id == student_id, CheckIn.check_in_day == day)
        return db.query(query.exists()).scalar()

    def _range_query(
        self, db: Session, gym_id: int, start: Optional[datetime], end: Optional[datetime],
        student_id: Optional[int] = None
    ):
        query = db.query(CheckIn).filter(CheckIn.gym_id == gym_id)
        if start is not None:
            query = query.filter(CheckIn.timestamp >= start)
        if end is not None:
            query = query.filter(CheckIn.timestamp < end)
        if student_id is not None:
            query = query.filter(CheckIn.student_id == student_id)
        return query

    def list_range(
        self, db: Session, gym_id: int, *, start: Optional[datetime] = None, end: Optional[datetime] = None,
        student_id: Optional[int] = None, skip: int = 0, limit: int = 100
    ) -> Tuple[List[CheckIn], int]:
        query = self._range_query(db, gym_id, start, end, student_id)
        total = query.with_entities(func.count(CheckIn.id)).scalar() or 0
        items = query.order_by(CheckIn.timestamp.desc(), CheckIn.id.desc()).offset(skip).limit(limit).all()
        return items, total

    def timestamps(self, db: Session, gym_id: int, start: Optional[datetime], end: Optional[datetime]) -> List[datetime]:
        rows = self._range_query(db, gym_id, start, end).with_entities(CheckIn.timestamp).all()
        return [row[0] for row in rows]

    def count_by_method(self, db: Session, gym_id: int, start: Optional[datetime], end: Optional[datetime]):
        return (
            self._range_query(db, gym_id, start, end)
            .with_entities(CheckIn.method, func.count(CheckIn.id))
            .group_by(CheckIn.method)
            .all()
        )

    def for_day(self, db: Session, gym_id: int, day: date) -> List[CheckIn]:
        return (
            db.query(CheckIn)
            .filter(CheckIn.gym_id == gym_id, CheckIn.check_in_day == day)
            .order_by(CheckIn.timestamp)
            .all()
        )

    def delete_older_than(self, db: Session, cutoff: datetime) -> int:
        """Borrado por retención. Sin commit."""
        return (
            db.query(CheckIn)
            .filter(CheckIn.timestamp < cutoff)
            .delete(synchronize_session=False)
        )


check_in_repository = CheckInRepository(CheckIn)
