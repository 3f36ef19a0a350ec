import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.config import ADMIN_PAGE_SIZE
from ..db import get_db
from ..models import User
from ..schemas import (
    AdminActionListOut,
    DeactivateIn,
    GameOut,
    GameRequestOut,
    PendingGameRequestsOut,
    PendingUserRequestsOut,
    ReviewIn,
    UserOut,
    UserRequestOut,
)
from ..services import audit, lifecycle, moderation
from .deps import require_admin_user

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/game-requests", response_model=PendingGameRequestsOut)
def pending_game_requests(
    page: int = Query(1, ge=1),
    request_type: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin_user),
):
    total, rows = lifecycle.list_pending_game_requests(db, page=page, request_type=request_type)
    return {"items": rows, "total": total, "page": page, "page_size": ADMIN_PAGE_SIZE}


@router.post("/game-requests/{request_id}/approve", response_model=GameRequestOut)
def approve_game_request(
    request_id: str,
    payload: Optional[ReviewIn] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin_user),
):
    request = lifecycle.approve_game_request(
        db,
        request_id,
        admin,
        admin_response=payload.admin_response if payload else None,
    )
    logger.info(
        "Admin %s approved %s request %s (game %s)",
        admin.id,
        request.request_type,
        request.id,
        request.game_id,
    )
    return request


@router.post("/game-requests/{request_id}/reject", response_model=GameRequestOut)
def reject_game_request(
    request_id: str,
    payload: Optional[ReviewIn] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin_user),
):
    request = lifecycle.reject_game_request(
        db,
        request_id,
        admin,
        admin_response=payload.admin_response if payload else None,
    )
    logger.info("Admin %s rejected %s request %s", admin.id, request.request_type, request.id)
    return request


@router.get("/user-requests", response_model=PendingUserRequestsOut)
def pending_user_requests(
    page: int = Query(1, ge=1),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin_user),
):
    total, rows = lifecycle.list_pending_user_requests(db, page=page)
    return {"items": rows, "total": total, "page": page, "page_size": ADMIN_PAGE_SIZE}


@router.post("/user-requests/{request_id}/approve", response_model=UserRequestOut)
def approve_user_request(
    request_id: str,
    payload: Optional[ReviewIn] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin_user),
):
    request = lifecycle.approve_user_request(
        db,
        request_id,
        admin,
        admin_response=payload.admin_response if payload else None,
    )
    logger.info("Admin %s approved %s request %s", admin.id, request.request_type, request.id)
    return request


@router.post("/user-requests/{request_id}/reject", response_model=UserRequestOut)
def reject_user_request(
    request_id: str,
    payload: Optional[ReviewIn] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin_user),
):
    request = lifecycle.reject_user_request(
        db,
        request_id,
        admin,
        admin_response=payload.admin_response if payload else None,
    )
    logger.info("Admin %s rejected %s request %s", admin.id, request.request_type, request.id)
    return request


@router.post("/games/{game_id}/deactivate", response_model=GameOut)
def deactivate_game(
    game_id: str,
    payload: DeactivateIn,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin_user),
):
    game = moderation.deactivate_game(db, game_id, admin, reason=payload.reason)
    logger.info("Admin %s deactivated game %s", admin.id, game.id)
    return game


@router.post("/users/{user_id}/deactivate", response_model=UserOut)
def deactivate_user(
    user_id: str,
    payload: DeactivateIn,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin_user),
):
    user = moderation.deactivate_user(db, user_id, admin, reason=payload.reason)
    logger.info("Admin %s deactivated user %s", admin.id, user.id)
    return user


@router.get("/actions", response_model=AdminActionListOut)
def list_actions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    admin_id: Optional[str] = Query(None),
    game_request_id: Optional[str] = Query(None),
    user_request_id: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin_user),
):
    total, rows = audit.list_admin_actions(
        db,
        limit=limit,
        offset=offset,
        admin_id=admin_id,
        game_request_id=game_request_id,
        user_request_id=user_request_id,
    )
    return {"items": rows, "total": total, "limit": limit, "offset": offset}
