"""
Bearer token authentication and role dependencies.

Identity is owned by another service: it issues JWTs whose subject is the
user's email. This module only verifies the token, loads the user row and
applies moderation state (inactive or blocked users are turned away).
"""

from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

import repositories.db_models as db_models
from authentication.permissions import has_permission, is_staff
from models.config import settings
from models.exceptions import (
    AuthenticationException,
    InactiveUserException,
    InsufficientPermissionsException,
    UserBannedException,
)
from repositories.database import get_db
from services.trust_state_service import user_is_blocked

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login")


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_user(
    token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)
) -> db_models.User:
    """
    Get the current authenticated user from the JWT token.

    Raises:
        AuthenticationException: If credentials are invalid or user not found.
    """
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except jwt.exceptions.ExpiredSignatureError:
        raise AuthenticationException("Session expired. Please log in again.")
    except jwt.exceptions.InvalidTokenError:
        raise AuthenticationException("Could not validate credentials")

    email = payload.get("sub")
    if email is None:
        raise AuthenticationException("Could not validate credentials")

    user = (
        db.query(db_models.User)
        .filter(db_models.User.email == str(email))
        .first()
    )
    if user is None:
        raise AuthenticationException("Could not validate credentials")
    return user


async def get_current_active_user(
    current_user: db_models.User = Depends(get_current_user),
) -> db_models.User:
    """
    Get the current user and verify they may act.

    Reads the synchronized trust state on the user row; no suspension
    history is consulted on the request path.

    Raises:
        InactiveUserException: If the user account has been deactivated.
        UserBannedException: If the user is suspended or their trust state
            is pending confirmation.
    """
    if not bool(current_user.is_active):
        raise InactiveUserException("Account has been deactivated")

    if user_is_blocked(current_user):
        if current_user.trust_state_stale and not current_user.is_suspended:
            raise UserBannedException(pending=True)
        raise UserBannedException(current_user.suspended_until)

    return current_user


async def get_staff_user(
    current_user: db_models.User = Depends(get_current_active_user),
) -> db_models.User:
    """
    Require a moderator or admin.

    Raises:
        InsufficientPermissionsException: If the user is not staff.
    """
    if not is_staff(current_user):
        raise InsufficientPermissionsException("Moderator permissions required")
    return current_user


async def get_admin_user(
    current_user: db_models.User = Depends(get_current_active_user),
) -> db_models.User:
    """
    Require admin role.

    Raises:
        InsufficientPermissionsException: If user is not an admin.
    """
    if current_user.role != db_models.UserRole.ADMIN:
        raise InsufficientPermissionsException("Not enough permissions")
    return current_user


def require_permission(
    permission: str,
) -> Callable[..., Awaitable[db_models.User]]:
    """
    Build a dependency that requires one staff capability.

    Usage: ``Depends(require_permission("can_manage_filters"))``
    """

    async def dependency(
        current_user: db_models.User = Depends(get_staff_user),
    ) -> db_models.User:
        if not has_permission(current_user, permission):
            raise InsufficientPermissionsException(
                f"Your role does not allow this action ({permission})"
            )
        return current_user

    return dependency
