from __future__ import annotations

from typing import Optional

from ..errors import ForbiddenError, UnauthorizedError
from ..models import User

ADMIN_ROLE = "admin"
NORMAL_ROLE = "normal"


def require_identity(user: Optional[User], *, allow_inactive: bool = False) -> User:
    if user is None:
        raise UnauthorizedError()
    if not allow_inactive and not user.is_active:
        raise ForbiddenError("Your account has been deactivated.")
    return user


def require_admin(user: Optional[User]) -> User:
    user = require_identity(user)
    if user.role != ADMIN_ROLE:
        raise ForbiddenError("Admin access required.")
    return user


def require_complete_profile(user: Optional[User]) -> User:
    user = require_identity(user)
    if not user.profile_completed_at:
        raise ForbiddenError("Please complete your profile setup first.")
    return user
