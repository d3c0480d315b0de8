from datetime import datetime, timedelta, timezone
import secrets
from typing import Any, Dict, Optional, Tuple

import bcrypt
from jose import jwt

from app.core.config import settings

# Compared against when the username is unknown so both failure paths cost one bcrypt check
_DUMMY_HASH = bcrypt.hashpw(b"classkeeper-dummy-password", bcrypt.gensalt()).decode("utf-8")

REQUIRED_CLAIMS = ("user_id", "school_id", "role", "iat", "exp")


def hash_password(plain_password: str) -> str:
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(plain_password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        bcrypt.checkpw(plain_password.encode("utf-8"), _DUMMY_HASH.encode("utf-8"))
        return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # In case the stored hash is invalid/corrupted
        return False


def create_access_token(
    *, user_id: int, school_id: int, role: str, expires_delta: Optional[timedelta] = None
) -> str:
    if expires_delta is None:
        expires_delta = settings.jwt_expiry

    now = datetime.now(timezone.utc)
    to_encode = {
        "sub": str(user_id),
        "user_id": user_id,
        "school_id": school_id,
        "role": role,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify signature and expiry. Raises JWTError on any failure, ValueError on missing claims."""
    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    missing = [claim for claim in REQUIRED_CLAIMS if payload.get(claim) is None]
    if missing:
        raise ValueError(f"missing claims: {', '.join(missing)}")
    return payload


def create_refresh_token(*, expires_delta: Optional[timedelta] = None) -> Tuple[str, datetime]:
    if expires_delta is None:
        expires_delta = settings.refresh_token_expiry
    expire = datetime.now(timezone.utc) + expires_delta
    token = secrets.token_urlsafe(48)
    return token, expire
