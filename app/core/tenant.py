from fastapi import Header, HTTPException, Depends, status
from pydantic import BaseModel
from typing import Optional
import logging

from app.core.auth import get_current_caller
from app.schemas.token import CallerRole, TokenPayload

logger = logging.getLogger("tenant_verification")


class TenantContext(BaseModel):
    """Gimnasio sobre el que opera la petición y quién la hace."""
    gym_id: int
    user_id: str
    role: CallerRole

    @property
    def is_super_admin(self) -> bool:
        return self.role == CallerRole.SUPER_ADMIN


async def get_tenant_id(
    x_gym_id: Optional[str] = Header(None, alias="X-Gym-ID")
) -> Optional[int]:
    """
    Obtiene el ID del tenant (gimnasio) únicamente del header X-Gym-ID.
    """
    if x_gym_id:
        try:
            return int(x_gym_id)
        except (ValueError, TypeError):
            logger.warning(f"Formato inválido para X-Gym-ID: {x_gym_id}")
            return None
    return None


async def get_tenant_context(
    tenant_id: Optional[int] = Depends(get_tenant_id),
    caller: TokenPayload = Depends(get_current_caller),
) -> TenantContext:
    """
    Valida el header X-Gym-ID contra los claims del token.

    Solo SUPER_ADMIN puede operar sobre un gimnasio distinto del de su token.
    """
    if tenant_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Header X-Gym-ID requerido",
        )

    if caller.role != CallerRole.SUPER_ADMIN and caller.gym_id != tenant_id:
        logger.warning(f"Usuario {caller.sub} (gym {caller.gym_id}) intentó acceder al gym {tenant_id}")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No tiene acceso a este gimnasio",
        )

    return TenantContext(gym_id=tenant_id, user_id=caller.sub, role=caller.role)


def require_roles(*roles: CallerRole):
    """Dependencia que además exige uno de los roles indicados (SUPER_ADMIN siempre pasa)."""
    async def _check(context: TenantContext = Depends(get_tenant_context)) -> TenantContext:
        if not context.is_super_admin and context.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Permisos insuficientes para esta operación",
            )
        return context
    return _check
