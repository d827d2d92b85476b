from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from datetime import timezone
import logging

from app.core.config import get_settings
from app.db.session import SessionLocal
from app.models.analytics import PeriodType
from app.services.analytics import analytics_service
from app.services.check_in import check_in_service
from app.services.student import student_service

logger = logging.getLogger(__name__)

# Variable global para mantener referencia al scheduler
_scheduler = None


def process_expired_memberships():
    """
    Barrido de membresías vencidas. Idempotente: puede correr tantas veces
    como haga falta.
    """
    logger.info("Running scheduled task: process_expired_memberships")
    db = SessionLocal()
    try:
        result = student_service.process_expired_memberships(db)
        if result.errors:
            logger.warning(f"Barrido con {len(result.errors)} errores: {result.errors[:5]}")
    except Exception as e:
        logger.error(f"Error in process_expired_memberships task: {str(e)}", exc_info=True)
        db.rollback()
    finally:
        db.close()


def send_expiry_reminders():
    """
    Avisa a los alumnos cuya membresía vence en EXPIRY_REMINDER_DAYS días
    """
    logger.info("Running scheduled task: send_expiry_reminders")
    db = SessionLocal()
    try:
        student_service.send_expiry_reminders(db, days_before=get_settings().EXPIRY_REMINDER_DAYS)
    except Exception as e:
        logger.error(f"Error in send_expiry_reminders task: {str(e)}", exc_info=True)
        db.rollback()
    finally:
        db.close()


def generate_snapshots(period_type: PeriodType):
    logger.info(f"Running scheduled task: generate_snapshots ({period_type.value})")
    db = SessionLocal()
    try:
        generated, errors = analytics_service.generate_previous_period_snapshots(db, period_type)
        logger.info(f"Snapshots {period_type.value} generados: {generated}, errores: {len(errors)}")
    except Exception as e:
        logger.error(f"Error in generate_snapshots task: {str(e)}", exc_info=True)
        db.rollback()
    finally:
        db.close()


def purge_old_data():
    """
    Aplica la retención de asistencias y de snapshots de analytics
    """
    logger.info("Running scheduled task: purge_old_data")
    db = SessionLocal()
    try:
        check_in_service.purge_old_check_ins(db)
        analytics_service.purge_expired_snapshots(db)
    except Exception as e:
        logger.error(f"Error in purge_old_data task: {str(e)}", exc_info=True)
        db.rollback()
    finally:
        db.close()


def init_scheduler():
    """
    Inicializa el programador de tareas
    """
    global _scheduler

    logger.info("Initializing scheduler with UTC timezone")
    _scheduler = AsyncIOScheduler(timezone=timezone.utc)

    # Vencimientos cada hora, a los 5 minutos
    _scheduler.add_job(
        process_expired_memberships,
        trigger=CronTrigger(minute=5),
        id='expire_memberships',
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    # Recordatorios de vencimiento una vez al día
    _scheduler.add_job(
        send_expiry_reminders,
        trigger=CronTrigger(hour=12, minute=0),
        id='expiry_reminders',
        replace_existing=True
    )

    # Snapshots: cada hora se regenera el día anterior de los gimnasios cuya
    # medianoche local ya pasó; semanal los domingos y mensual el día 1
    _scheduler.add_job(
        generate_snapshots,
        trigger=CronTrigger(minute=15),
        args=[PeriodType.daily],
        id='daily_snapshots',
        replace_existing=True,
        max_instances=1,
    )
    _scheduler.add_job(
        generate_snapshots,
        trigger=CronTrigger(day_of_week='sun', hour=6, minute=30),
        args=[PeriodType.weekly],
        id='weekly_snapshots',
        replace_existing=True
    )
    _scheduler.add_job(
        generate_snapshots,
        trigger=CronTrigger(day=1, hour=6, minute=45),
        args=[PeriodType.monthly],
        id='monthly_snapshots',
        replace_existing=True
    )

    # Retención de datos diariamente a las 3:15 AM
    _scheduler.add_job(
        purge_old_data,
        trigger=CronTrigger(hour=3, minute=15),
        id='data_retention',
        replace_existing=True
    )

    _scheduler.start()
    logger.info("Scheduler started with UTC timezone")
    return _scheduler


def shutdown_scheduler():
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
        logger.info("Scheduler detenido")
    _scheduler = None
