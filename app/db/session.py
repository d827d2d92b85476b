from functools import wraps
import logging
import time

from sqlalchemy import create_engine
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import get_settings
from app.core.exceptions import Unavailable

logger = logging.getLogger(__name__)

settings_instance = get_settings()
db_url = settings_instance.DATABASE_URL


def _engine_kwargs(url: str) -> dict:
    """Opciones del engine según el dialecto (timeouts siempre acotados)."""
    if url.startswith("sqlite"):
        return {
            "connect_args": {
                "check_same_thread": False,
                "timeout": settings_instance.DB_POOL_TIMEOUT,
            },
        }
    return {
        "pool_pre_ping": True,
        "pool_size": settings_instance.DB_POOL_SIZE,
        "max_overflow": settings_instance.DB_MAX_OVERFLOW,
        "pool_timeout": settings_instance.DB_POOL_TIMEOUT,
        "pool_recycle": 180,
        "connect_args": {
            "connect_timeout": settings_instance.DB_CONNECT_TIMEOUT,
            "options": f"-c statement_timeout={settings_instance.DB_STATEMENT_TIMEOUT_MS}",
        },
        "execution_options": {
            "isolation_level": "READ COMMITTED",
        },
    }


# Ocultar credenciales en el log
display_url = db_url.split("@")[-1] if "@" in db_url else db_url
logger.info(f"Creando engine de base de datos: {display_url}")

engine = create_engine(db_url, echo=False, **_engine_kwargs(db_url))

# Crear clase de sesión
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# Dependencia para obtener la sesión de DB
def get_db():
    db = SessionLocal()
    try:
        yield db
    except SQLAlchemyError as e:
        logger.error(f"Error de SQLAlchemy en la sesión: {e}", exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()


def retry_on_db_error(max_retries=None, delay=0.5):
    """
    Decorator para reintentar lecturas idempotentes ante errores transitorios de BD.

    Nunca debe aplicarse a operaciones que modifican datos: una mutación fallida
    se informa al llamador, que decide si reintentar.

    Args:
        max_retries: Número máximo de intentos (default: DB_READ_RETRIES)
        delay: Tiempo base de espera entre intentos en segundos.
               Se aplica backoff lineal: delay * (attempt + 1)

    Raises:
        Unavailable: si se agotan los intentos
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            attempts = max_retries or settings_instance.DB_READ_RETRIES
            for attempt in range(attempts):
                try:
                    return func(*args, **kwargs)
                except (OperationalError, DBAPIError) as e:
                    # La sesión queda inválida tras el error: liberar antes de reintentar
                    for arg in list(args) + list(kwargs.values()):
                        if isinstance(arg, Session):
                            arg.rollback()
                    if attempt < attempts - 1:
                        wait_time = delay * (attempt + 1)
                        logger.warning(
                            f"DB error in {func.__name__}, retry {attempt + 1}/{attempts} "
                            f"after {wait_time}s: {str(e)}"
                        )
                        time.sleep(wait_time)
                    else:
                        logger.error(
                            f"Max retries ({attempts}) reached for {func.__name__}: {str(e)}",
                            exc_info=True
                        )
                        raise Unavailable() from e
        return wrapper
    return decorator
