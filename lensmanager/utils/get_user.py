import logging
from typing import Optional

from fastapi import Depends, Header, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from lensmanager.constants.error_codes import ErrorCode
from lensmanager.core.db import get_db
from lensmanager.core.exceptions import AppException
from lensmanager.core.security import decode_access_token
from lensmanager.models.users.user_models import User

logger = logging.getLogger("auth.guard")


async def get_current_user(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not authorization or not authorization.startswith("Bearer "):
        logger.warning("Missing bearer token")
        raise AppException(
            status.HTTP_401_UNAUTHORIZED,
            "Access denied",
            ErrorCode.UNAUTHORIZED,
        )

    token = authorization.split("Bearer ")[1].strip()
    payload = decode_access_token(token)

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        logger.warning("Token subject is not a user id")
        raise AppException(
            status.HTTP_401_UNAUTHORIZED,
            "Access denied",
            ErrorCode.UNAUTHORIZED,
        )

    result = await db.execute(
        select(User).where(User.id == user_id)
    )
    user = result.scalars().first()

    if not user:
        logger.warning("Token user not found", extra={"user_id": user_id})
        raise AppException(
            status.HTTP_401_UNAUTHORIZED,
            "User not found",
            ErrorCode.UNAUTHORIZED,
        )

    if not user.is_active:
        logger.warning("Inactive user access blocked", extra={"user_id": user.id})
        raise AppException(
            status.HTTP_403_FORBIDDEN,
            "User account is inactive",
            ErrorCode.PERMISSION_DENIED,
        )

    request.state.user = user
    return user
