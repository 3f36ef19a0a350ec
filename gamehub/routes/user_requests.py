import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import User
from ..schemas import UserRequestIn, UserRequestOut
from ..services import lifecycle
from .deps import get_current_user_allow_inactive

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=UserRequestOut, status_code=status.HTTP_201_CREATED)
def submit_user_request(
    payload: UserRequestIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_allow_inactive),
):
    request = lifecycle.submit_user_request(
        db,
        current_user,
        request_type=payload.request_type,
        appeal_text=payload.appeal_text,
        related_game_id=payload.related_game_id,
    )
    logger.info("User request %s (%s) submitted by %s", request.id, request.request_type, current_user.id)
    return request


@router.get("/my", response_model=List[UserRequestOut])
def my_user_requests(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user_allow_inactive),
):
    return lifecycle.list_user_requests_for_user(db, current_user.id)
