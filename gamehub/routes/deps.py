from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from ..core.config import SESSION_COOKIE_NAME
from ..core.security import decode_access_token
from ..db import get_db
from ..errors import UnauthorizedError
from ..models import User
from ..services.access import require_admin, require_complete_profile, require_identity


def _extract_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    cookie = request.cookies.get(SESSION_COOKIE_NAME)
    return cookie.strip() if cookie else None


def _resolve_user(request: Request, db: Session) -> Optional[User]:
    token = _extract_token(request)
    if not token:
        return None
    user_id = decode_access_token(token)
    if not user_id:
        return None
    return db.query(User).filter(User.id == user_id).first()


def get_current_user_optional(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    user = _resolve_user(request, db)
    if user is None or not user.is_active:
        return None
    return user


def get_current_user_allow_inactive(request: Request, db: Session = Depends(get_db)) -> User:
    user = _resolve_user(request, db)
    if user is None:
        raise UnauthorizedError()
    return user


def get_current_user(user: User = Depends(get_current_user_allow_inactive)) -> User:
    return require_identity(user)


def require_admin_user(user: User = Depends(get_current_user)) -> User:
    return require_admin(user)


def require_complete_profile_user(user: User = Depends(get_current_user)) -> User:
    return require_complete_profile(user)
