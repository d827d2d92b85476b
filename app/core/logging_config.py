import logging
import os
import sys
from logging.handlers import TimedRotatingFileHandler

from app.core.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"

# Loggers de librerías que solo interesan cuando algo falla
_QUIET_LOGGERS = ("apscheduler", "sqlalchemy.engine", "urllib3", "redis")


def setup_logging(settings: Settings = None) -> None:
    """
    Logging del proceso: consola siempre y, si LOG_DIR está definido, un
    archivo que rota a medianoche conservando LOG_BACKUP_DAYS días.
    """
    settings = settings or get_settings()
    level = logging.DEBUG if settings.DEBUG_MODE else logging.INFO
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_DIR:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        handlers.append(
            TimedRotatingFileHandler(
                os.path.join(settings.LOG_DIR, "gym_checkin.log"),
                when="midnight",
                backupCount=settings.LOG_BACKUP_DAYS,
                encoding="utf-8",
            )
        )

    root = logging.getLogger()
    root.setLevel(level)
    # Uvicorn puede haber registrado handlers antes
    root.handlers.clear()
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info("Logging configurado: nivel %s, archivo %s", logging.getLevelName(level), settings.LOG_DIR or "-")
