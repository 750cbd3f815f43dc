from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from pydantic import BaseModel
from .. import config


class TokenData(BaseModel):
    """Claims the messaging service reads from an access token."""
    userId: Optional[str] = None
    role: Optional[str] = None
    tenantId: Optional[str] = None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed JWT access token.

    Args:
        data (dict): Payload to encode. The service expects `sub`, `role` and `tenant`.
        expires_delta (Optional[timedelta]): Token lifetime. Defaults to ACCESS_TOKEN_EXPIRE_MINUTES.

    Returns:
        str: The encoded token.
    """
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})

    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def decode_access_token(token: str) -> Optional[TokenData]:
    """
    Decode an access token.

    Returns:
        Optional[TokenData]: The claims, or None if the token is invalid, expired or has no subject.
    """
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError:
        return None

    user_id = payload.get("sub")
    if user_id is None:
        return None
    tenant = payload.get("tenant")
    return TokenData(
        userId=str(user_id),
        role=payload.get("role"),
        tenantId=str(tenant) if tenant else None
    )
