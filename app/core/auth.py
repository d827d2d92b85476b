from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError

from app.core.config import get_settings
from app.core.timezone_utils import utcnow
from app.schemas.token import CallerRole, TokenPayload

# El token lo emite un servicio de identidad externo; aquí solo se verifica
bearer_scheme = HTTPBearer(auto_error=False)


def _credentials_exception(detail: str = "No se pudieron validar las credenciales") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def create_access_token(
    sub: str,
    gym_id: Optional[int],
    role: CallerRole,
    expires_delta: timedelta = timedelta(hours=1),
) -> str:
    """Firma un token HS256 con los claims que entiende la API (sub, gym_id, role)."""
    settings = get_settings()
    expire = utcnow() + expires_delta
    payload = {"sub": sub, "gym_id": gym_id, "role": role.value, "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenPayload:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return TokenPayload(**payload)
    except ExpiredSignatureError:
        raise _credentials_exception("El token ha expirado")
    except (JWTError, ValidationError):
        raise _credentials_exception()


async def get_current_caller(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> TokenPayload:
    """
    Verifica y decodifica el bearer token para obtener el llamador actual.
    """
    if credentials is None or not credentials.credentials:
        raise _credentials_exception("Autenticación requerida")
    return decode_access_token(credentials.credentials)


async def require_super_admin(caller: TokenPayload = Depends(get_current_caller)) -> TokenPayload:
    if caller.role != CallerRole.SUPER_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Se requiere rol SUPER_ADMIN",
        )
    return caller
