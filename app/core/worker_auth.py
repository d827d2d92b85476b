import logging
import secrets
from fastapi import Security, HTTPException, status, Request
from fastapi.security import APIKeyHeader
from app.core.config import get_settings

logger = logging.getLogger(__name__)

# Definir el esquema de seguridad para la clave API
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


async def verify_worker_api_key(
    request: Request,
    api_key_header: str = Security(api_key_header)
):
    """
    Verifica que la petición de mantenimiento provenga de un scheduler externo
    autorizado (cron, worker) mediante la clave API.

    Raises:
        HTTPException: 401 si la clave es inválida o ausente,
                      500 si WORKER_API_KEY no está configurada
    """
    expected_api_key = get_settings().WORKER_API_KEY

    if not expected_api_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error de configuración: WORKER_API_KEY no está definida"
        )

    client_ip = request.client.host if request.client else "unknown"
    if not api_key_header:
        logger.warning(f"Petición de mantenimiento sin clave desde IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Autenticación de worker faltante"
        )

    # Comparación segura que previene ataques de temporización
    if not secrets.compare_digest(api_key_header, expected_api_key):
        logger.warning(f"Clave de worker inválida desde IP: {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Clave API del worker inválida"
        )

    return True
