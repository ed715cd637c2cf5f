# lensmanager/core/security.py

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from fastapi import status

from lensmanager.constants.error_codes import ErrorCode
from lensmanager.core.config import (
    JWT_ACCESS_SECRET_KEY,
    JWT_ALGORITHM,
    ACCESS_TOKEN_EXPIRE_MINUTES,
)
from lensmanager.core.exceptions import AppException


# =====================================================
# ACCESS TOKEN
# =====================================================
def create_access_token(
    user_id: int,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Tokens are issued by the upstream auth service; this mirrors its format."""
    now = datetime.now(timezone.utc)
    expire = now + (
        expires_delta
        if expires_delta
        else timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )

    payload = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": expire,
    }

    return jwt.encode(payload, JWT_ACCESS_SECRET_KEY, algorithm=JWT_ALGORITHM)


# =====================================================
# DECODE + VALIDATE TOKEN
# =====================================================
def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(
            token,
            JWT_ACCESS_SECRET_KEY,
            algorithms=[JWT_ALGORITHM],
        )
    except JWTError:
        raise AppException(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid or expired token",
            ErrorCode.UNAUTHORIZED,
        )

    if payload.get("type") != "access":
        raise AppException(
            status.HTTP_401_UNAUTHORIZED,
            "Invalid token type",
            ErrorCode.UNAUTHORIZED,
        )

    return payload
