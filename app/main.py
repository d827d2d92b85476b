import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
import logging

# Importar la función de configuración de logging
from app.core.logging_config import setup_logging

# Llamar a la configuración de logging ANTES de importar/crear otros elementos
setup_logging()

from app.api.v1.api import api_router
from app.core.config import get_settings
from app.core.exceptions import GymAPIError
from app.core.scheduler import init_scheduler, shutdown_scheduler
from app.db.base import Base
from app.db.redis_client import initialize_redis_pool, close_redis_client
from app.db.session import engine
from app.middleware.timing import TimingMiddleware
from app.services.notification_service import notification_service

logger = logging.getLogger(__name__)

# Obtener la instancia de configuración al inicio del módulo
settings_instance = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Lifespan: Startup iniciado...")

    # En SQLite (desarrollo) las tablas se crean directamente; en Postgres se usa Alembic
    if settings_instance.is_sqlite:
        Base.metadata.create_all(bind=engine)
        logger.info("Lifespan: Tablas SQLite verificadas.")

    # Inicializar el pool de conexiones Redis (opcional)
    try:
        await initialize_redis_pool()
    except Exception as e:
        logger.error(f"Lifespan: Error al inicializar Redis connection pool: {e}", exc_info=True)

    if settings_instance.SCHEDULER_ENABLED:
        app.state.scheduler = init_scheduler()
        logger.info("Lifespan: Scheduler inicializado.")

    yield  # Aplicación en ejecución

    logger.info("Lifespan: Shutdown iniciado...")
    shutdown_scheduler()

    try:
        await close_redis_client()
        logger.info("Lifespan: Connection pool de Redis cerrado.")
    except Exception as e:
        logger.error(f"Lifespan: Error cerrando Redis connection pool: {e}", exc_info=True)

    notification_service.shutdown()


app = FastAPI(
    title=settings_instance.PROJECT_NAME,
    description=settings_instance.PROJECT_DESCRIPTION,
    version=settings_instance.VERSION,
    openapi_url=f"{settings_instance.API_V1_STR}/openapi.json",
    docs_url=f"{settings_instance.API_V1_STR}/docs",
    redoc_url=f"{settings_instance.API_V1_STR}/redoc",
    lifespan=lifespan,
)


@app.exception_handler(GymAPIError)
async def gym_api_error_handler(request: Request, exc: GymAPIError):
    """Traduce los errores de negocio a respuestas HTTP con un código estable."""
    log_level = logging.WARNING if exc.status_code >= 409 else logging.INFO
    logger.log(log_level, f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(DBAPIError)
async def database_error_handler(request: Request, exc: DBAPIError):
    logger.error(f"Error de base de datos en {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Base de datos no disponible, reintente más tarde", "code": "unavailable"},
    )


# Añadir middleware para medir el tiempo de respuesta
app.add_middleware(TimingMiddleware)

# Configurar CORS para toda la aplicación
app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings_instance.BACKEND_CORS_ORIGINS],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=86400,  # 24 horas en segundos
)

# Incluir routers
app.include_router(api_router, prefix=settings_instance.API_V1_STR)


# Ruta raíz
@app.get("/")
def root():
    return {
        "message": "Bienvenido a la API",
        "docs": f"{settings_instance.API_V1_STR}/docs",
    }


@app.get("/health")
def health():
    """Verifica la conexión con la base de datos."""
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except OperationalError as e:
        logger.error(f"Health check fallido: {e}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "unavailable"},
        )
    return {"status": "healthy", "database": "ok"}


if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings_instance.DEBUG_MODE)
