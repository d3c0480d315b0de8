import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError

from app.auth.schemas import CurrentUser
from app.auth.security import decode_access_token
from app.core.enums import Role

logger = logging.getLogger("classkeeper.auth")

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    """Resolve the caller's identity and tenant from the bearer token."""
    if credentials is None:
        raise _unauthorized("Authorization header required")
    if credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise _unauthorized("Invalid authorization header format")

    try:
        payload = decode_access_token(credentials.credentials)
        return CurrentUser(
            id=int(payload["user_id"]),
            school_id=int(payload["school_id"]),
            role=Role(payload["role"]),
        )
    except (JWTError, ValueError, TypeError) as exc:
        logger.debug("Rejected bearer token: %s", exc)
        raise _unauthorized("Invalid or expired token")
