"""
Endpoints invocados por un scheduler externo (cron, worker) con X-API-Key.
Permiten correr las tareas programadas fuera del proceso de la API.
"""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.core.worker_auth import verify_worker_api_key
from app.db.session import get_db
from app.schemas.common import SweepResult
from app.services.student import student_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/process-expired-memberships",
    response_model=SweepResult,
    dependencies=[Depends(verify_worker_api_key)],
)
def process_expired_memberships(db: Session = Depends(get_db)):
    """Barrido de vencimientos. Idempotente."""
    result = student_service.process_expired_memberships(db)
    logger.info(f"Barrido externo: {result.affected} vencidas, {len(result.errors)} errores")
    return result
