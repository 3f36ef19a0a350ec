import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import User
from ..schemas import GameAppealIn, GameModificationIn, GameRequestIn, GameRequestOut
from ..services import lifecycle
from .deps import get_current_user, require_complete_profile_user

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=GameRequestOut, status_code=status.HTTP_201_CREATED)
def submit_new_game(
    payload: GameRequestIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_complete_profile_user),
):
    request = lifecycle.submit_new_game_request(
        db,
        current_user,
        title=payload.title,
        game_url=payload.game_url,
        description=payload.description,
        tag_ids=payload.tag_ids,
        media=[item.model_dump() for item in payload.media],
    )
    logger.info("New game request %s submitted by %s", request.id, current_user.id)
    return request


@router.post("/modification", response_model=GameRequestOut, status_code=status.HTTP_201_CREATED)
def submit_modification(
    payload: GameModificationIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_complete_profile_user),
):
    request = lifecycle.submit_game_modification(
        db,
        current_user,
        payload.game_id,
        title=payload.title,
        game_url=payload.game_url,
        description=payload.description,
        tag_ids=payload.tag_ids,
        media=[item.model_dump() for item in payload.media],
        note=payload.note,
    )
    logger.info("Modification request %s for game %s submitted by %s", request.id, payload.game_id, current_user.id)
    return request


@router.post("/appeal", response_model=GameRequestOut, status_code=status.HTTP_201_CREATED)
def submit_appeal(
    payload: GameAppealIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_complete_profile_user),
):
    request = lifecycle.submit_game_appeal(db, current_user, payload.game_id, note=payload.note)
    logger.info("Appeal request %s for game %s submitted by %s", request.id, payload.game_id, current_user.id)
    return request


@router.get("/my", response_model=List[GameRequestOut])
def my_game_requests(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return lifecycle.list_game_requests_for_user(db, current_user.id)
