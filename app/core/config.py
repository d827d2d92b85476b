import os
from typing import List, Optional, Union
from functools import lru_cache
import logging

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Configurar el logger
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Permitir campos extra en .env
    )

    # Configuración básica
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me-in-production-please-32c")
    JWT_ALGORITHM: str = "HS256"

    # Información del proyecto
    PROJECT_NAME: str = "GymCheckIn API"
    PROJECT_DESCRIPTION: str = "API multi-tenant para gestión de alumnos, membresías y asistencia de gimnasios"
    VERSION: str = "0.1.0"

    # Debug mode
    DEBUG_MODE: bool = os.getenv("DEBUG_MODE", "True").lower() in ("true", "1", "t")
    LOG_DIR: str = os.getenv("LOG_DIR", "logs")  # vacío = solo consola
    LOG_BACKUP_DAYS: int = 14

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode='before')
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./gym.db")

    @field_validator("DATABASE_URL", mode="before")
    def ensure_proper_url_format(cls, v: Optional[str]) -> str:
        """Asegura que DATABASE_URL esté en el formato que espera SQLAlchemy."""
        if not v:
            return "sqlite:///./gym.db"
        if v.startswith('postgres://'):
            logger.info("Corrigiendo formato de postgres:// a postgresql://")
            return 'postgresql://' + v[len('postgres://'):]
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    # Timeouts de base de datos (segundos / milisegundos)
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "10"))
    DB_MAX_OVERFLOW: int = int(os.getenv("DB_MAX_OVERFLOW", "20"))
    DB_POOL_TIMEOUT: int = int(os.getenv("DB_POOL_TIMEOUT", "30"))
    DB_CONNECT_TIMEOUT: int = int(os.getenv("DB_CONNECT_TIMEOUT", "10"))
    DB_STATEMENT_TIMEOUT_MS: int = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "30000"))
    DB_READ_RETRIES: int = int(os.getenv("DB_READ_RETRIES", "3"))

    # Reglas de negocio
    DEFAULT_GYM_TIMEZONE: str = os.getenv("DEFAULT_GYM_TIMEZONE", "America/Argentina/Buenos_Aires")
    DEFAULT_CURRENCY: str = "ARS"
    CHECK_IN_RETENTION_DAYS: int = 90
    ANALYTICS_RETENTION_DAYS: int = 365
    EXPIRY_REMINDER_DAYS: int = 7
    PEAK_HOURS_TOP_N: int = 5

    @field_validator("DEFAULT_GYM_TIMEZONE")
    def validate_timezone(cls, v: str) -> str:
        import pytz
        if v not in pytz.all_timezones_set:
            raise ValueError(f"Zona horaria desconocida: {v}")
        return v

    # Email (API HTTP transaccional)
    EMAILS_ENABLED: bool = os.getenv("EMAILS_ENABLED", "False").lower() in ("true", "1", "t")
    EMAIL_API_URL: Optional[str] = os.getenv("EMAIL_API_URL", None)
    EMAIL_API_KEY: Optional[str] = os.getenv("EMAIL_API_KEY", None)
    EMAILS_FROM_EMAIL: Optional[str] = os.getenv("EMAILS_FROM_EMAIL", None)
    EMAILS_FROM_NAME: Optional[str] = os.getenv("EMAILS_FROM_NAME", None)
    EMAIL_TIMEOUT_SECONDS: int = 10
    NOTIFICATION_WORKERS: int = 4

    # Configuración de Redis
    REDIS_ENABLED: bool = os.getenv("REDIS_ENABLED", "False").lower() in ("true", "1", "t")
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    REDIS_POOL_MAX_CONNECTIONS: int = int(os.getenv("REDIS_POOL_MAX_CONNECTIONS", "50"))
    REDIS_POOL_SOCKET_TIMEOUT: int = int(os.getenv("REDIS_POOL_SOCKET_TIMEOUT", "5"))
    REDIS_POOL_HEALTH_CHECK_INTERVAL: int = int(os.getenv("REDIS_POOL_HEALTH_CHECK_INTERVAL", "30"))
    CACHE_TTL_DASHBOARD: int = 300  # 5 minutos para el dashboard

    @field_validator("REDIS_URL", mode="before")
    def clean_redis_url(cls, v: Optional[str]) -> str:
        if not v:
            return "redis://localhost:6379/0"
        # Eliminar comentarios (todo lo que sigue a #)
        if '#' in v:
            v = v.split('#')[0]
        return v.strip()

    # Configuración para el Worker / scheduler externo
    WORKER_API_KEY: str = os.getenv("WORKER_API_KEY", "")
    SCHEDULER_ENABLED: bool = os.getenv("SCHEDULER_ENABLED", "True").lower() in ("true", "1", "t")


# Usar una función con caché para obtener la configuración
@lru_cache()
def get_settings() -> Settings:
    settings = Settings()
    logger.info("Configuración cargada correctamente")
    return settings


settings = get_settings()
