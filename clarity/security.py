import logging
from typing import Optional
from fastapi import Depends, Header, HTTPException, status, WebSocket
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from .models import Role, Tenant
from .services import jwt_service

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")

credentials_exception = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)

gym_not_found = HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gym not found")


class CurrentUser(BaseModel):
    """Authenticated caller as supplied by the access token."""
    userId: str
    role: Role
    tenantId: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def get_user_from_token(token: str) -> CurrentUser:
    token_data = jwt_service.decode_access_token(token)
    if not token_data:
        logger.warning("Token decode failed or missing subject")
        raise credentials_exception

    try:
        role = Role(token_data.role)
    except ValueError:
        logger.warning(f"Unknown role in token: {token_data.role}")
        raise credentials_exception

    if not token_data.tenantId:
        logger.warning(f"Token for {token_data.userId} carries no tenant")
        raise credentials_exception

    return CurrentUser(userId=token_data.userId, role=role, tenantId=token_data.tenantId)


async def get_current_user(token: str = Depends(oauth2_scheme)) -> CurrentUser:
    return get_user_from_token(token)


async def get_current_user_ws(websocket: WebSocket) -> CurrentUser:
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        # closing alone does not stop the dependency chain
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token is missing")

    try:
        return get_user_from_token(token)
    except HTTPException:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        raise


async def get_tenant_user(
    user: CurrentUser = Depends(get_current_user),
    x_tenant_id: Optional[str] = Header(default=None),
) -> CurrentUser:
    """
    Tenant resolution for tenant-scoped routes.

    The token's tenant is authoritative. When the client also names a gym through the
    X-Tenant-Id header, the slug must resolve to an active gym and to the same tenant,
    otherwise the gym is reported as not found.
    """
    if not x_tenant_id:
        return user

    tenant = await Tenant.find_one({"slug": x_tenant_id.lower(), "isActive": True})
    if tenant is None or str(tenant.id) != user.tenantId:
        logger.info(f"Tenant slug {x_tenant_id!r} rejected for user {user.userId}")
        raise gym_not_found
    return user
