"""
Cliente Redis con connection pooling (redis.asyncio).

Redis es opcional: se usa solo para cachear el dashboard de analytics. Si está
deshabilitado o no responde, las dependencias entregan None y los servicios
consultan directamente la base de datos.

Para usar en endpoints:
```python
@router.get("/dashboard")
async def dashboard(redis: Optional[Redis] = Depends(get_redis_client)):
    ...
```
"""

from redis.asyncio import ConnectionPool, Redis
from app.core.config import get_settings
import logging
from typing import AsyncIterator, Optional

logger = logging.getLogger(__name__)

# Declaración global del pool de conexiones
REDIS_POOL: Optional[ConnectionPool] = None


async def initialize_redis_pool() -> None:
    """
    Inicializa el pool de conexiones a Redis.
    Debe llamarse una sola vez al iniciar la aplicación.
    """
    global REDIS_POOL
    settings = get_settings()
    if REDIS_POOL is not None or not settings.REDIS_ENABLED:
        return

    try:
        logger.info(f"Inicializando connection pool para Redis en {settings.REDIS_URL.split('@')[-1]}...")
        REDIS_POOL = ConnectionPool.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            max_connections=settings.REDIS_POOL_MAX_CONNECTIONS,
            socket_timeout=settings.REDIS_POOL_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_POOL_SOCKET_TIMEOUT,
            health_check_interval=settings.REDIS_POOL_HEALTH_CHECK_INTERVAL,
            retry_on_timeout=True,
        )
        logger.info(
            f"Connection pool de Redis inicializado correctamente "
            f"(max_connections={settings.REDIS_POOL_MAX_CONNECTIONS})."
        )
    except ValueError as e:
        logger.error(f"Error al inicializar connection pool de Redis: {e}", exc_info=True)
        REDIS_POOL = None


async def get_redis_client() -> AsyncIterator[Optional[Redis]]:
    """
    Dependencia FastAPI: cliente Redis nuevo por request usando el pool compartido.
    Entrega None cuando Redis no está disponible.
    """
    if REDIS_POOL is None:
        await initialize_redis_pool()

    if REDIS_POOL is None:
        yield None
        return

    client = Redis(connection_pool=REDIS_POOL)
    try:
        yield client
    finally:
        # Cerrar cliente para devolver la conexión al pool
        try:
            await client.aclose()
        except Exception as e:
            logger.warning(f"Error cerrando cliente Redis: {e}")


async def close_redis_client() -> None:
    """
    Cierra el pool de conexiones Redis al finalizar la aplicación.
    """
    global REDIS_POOL

    if REDIS_POOL:
        logger.info("Cerrando connection pool de Redis...")
        await REDIS_POOL.disconnect()
        REDIS_POOL = None
        logger.info("Connection pool de Redis cerrado.")
