import json
import logging
from typing import Any, Optional, TypeVar, Type, Callable
from datetime import date, datetime

from pydantic import BaseModel
from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=BaseModel)


def json_serializer(obj):
    """Serializador JSON personalizado que maneja objetos datetime y date."""
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    raise TypeError(f"Tipo no serializable: {type(obj)}")


def dashboard_cache_key(gym_id: int) -> str:
    return f"analytics:dashboard:gym:{gym_id}"


class CacheService:
    """
    Servicio genérico para cachear modelos Pydantic usando Redis.
    Un fallo de Redis nunca hace fallar la operación: se consulta la BD.
    """

    @staticmethod
    async def get_or_set(
        redis_client: Optional[Redis],
        cache_key: str,
        db_fetch_func: Callable,
        model_class: Type[T],
        expiry_seconds: int = 300,  # 5 minutos por defecto
    ) -> Any:
        """
        Obtiene un objeto de Redis o lo establece si no existe.

        Args:
            redis_client: Cliente Redis a usar (None = sin caché)
            cache_key: Clave única para identificar el objeto en caché
            db_fetch_func: Función asíncrona que obtiene los datos si no están en caché
            model_class: Clase del modelo Pydantic que se debe devolver
            expiry_seconds: Tiempo de expiración en segundos

        Returns:
            Instancia de model_class
        """
        if not redis_client:
            logger.debug("Cliente Redis no disponible, ejecutando consulta sin caché")
            return await db_fetch_func()

        # Intentar obtener del caché
        try:
            cached_data = await redis_client.get(cache_key)
            if cached_data:
                logger.debug(f"Cache hit para clave: {cache_key}")
                try:
                    return model_class.model_validate(json.loads(cached_data))
                except (ValueError, TypeError) as e:
                    logger.warning(f"Ignorando datos en caché corruptos para {cache_key}: {e}")
                    await redis_client.delete(cache_key)
        except Exception as e:
            logger.error(f"Error al leer del caché: {str(e)}", exc_info=True)
            # Continuamos con la consulta a BD en caso de error

        logger.debug(f"Cache miss para clave: {cache_key}")
        data = await db_fetch_func()

        # Guardar en caché
        if data is not None:
            try:
                serialized_data = json.dumps(data.model_dump(), default=json_serializer)
                await redis_client.set(cache_key, serialized_data, ex=expiry_seconds)
                logger.debug(f"Datos guardados en caché con clave: {cache_key}, TTL: {expiry_seconds}s")
            except Exception as e:
                logger.error(f"Error al guardar en Redis para {cache_key}: {e}", exc_info=True)

        return data

    @staticmethod
    async def invalidate_dashboard(redis_client: Optional[Redis], gym_id: int) -> None:
        """Descarta el dashboard cacheado de un gimnasio tras un cambio de alumnos o asistencias."""
        if not redis_client:
            return
        try:
            await redis_client.delete(dashboard_cache_key(gym_id))
            logger.debug(f"Dashboard invalidado para gym {gym_id}")
        except Exception as e:
            logger.warning(f"No se pudo invalidar el dashboard del gym {gym_id}: {e}")
