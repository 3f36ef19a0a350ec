from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..db import get_db, transaction
from ..errors import NotFoundError, ValidationError
from ..models import User
from ..schemas import ProfileUpdate, UserOut, UserPublicOut
from ..services.validation import normalize_url, require_text
from .deps import get_current_user, get_current_user_allow_inactive

router = APIRouter()


@router.get("/me", response_model=UserOut)
def get_me(current_user: User = Depends(get_current_user_allow_inactive)):
    # Deactivated users still need to see their ban reason to appeal it.
    return current_user


@router.patch("/me/profile", response_model=UserOut)
def update_profile(
    payload: ProfileUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    first_setup = current_user.profile_completed_at is None
    if first_setup and (payload.name is None or payload.avatar_url is None):
        raise ValidationError("Name and avatar are both required to complete your profile")
    if payload.name is None and payload.avatar_url is None:
        raise ValidationError("At least one of name or avatar_url must be provided")

    with transaction(db):
        if payload.name is not None:
            current_user.name = require_text(payload.name, "name", max_length=100)
        if payload.avatar_url is not None:
            current_user.avatar_url = normalize_url(payload.avatar_url, "avatar_url", "Avatar URL")
        if first_setup:
            current_user.profile_completed_at = datetime.utcnow()
    db.refresh(current_user)
    return current_user


@router.get("/{user_id}", response_model=UserPublicOut)
def get_user_profile(user_id: str, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User", user_id)
    return user
