import math
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import User
from ..schemas import (
    GameListOut,
    GameOut,
    ReactionIn,
    ReactionOut,
    ReactionStateOut,
    SuperlikeOut,
    ViewIn,
    ViewOut,
)
from ..services import catalog, counters
from .deps import get_current_user, get_current_user_optional

router = APIRouter()


@router.get("", response_model=GameListOut)
def list_games(
    page: int = Query(1, ge=1),
    limit: int = Query(catalog.DEFAULT_GAME_PAGE_SIZE, ge=1, le=catalog.MAX_GAME_PAGE_SIZE),
    search: Optional[str] = Query(None),
    min_likes: Optional[int] = Query(None, ge=0),
    max_likes: Optional[int] = Query(None, ge=0),
    created_after: Optional[str] = Query(None),
    created_before: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    total, games = catalog.list_games(
        db,
        page=page,
        limit=limit,
        search=search,
        min_likes=min_likes,
        max_likes=max_likes,
        created_after=created_after,
        created_before=created_before,
    )
    return {
        "items": games,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit) if total else 0,
    }


@router.get("/{game_id}", response_model=GameOut)
def get_game(game_id: str, db: Session = Depends(get_db)):
    return catalog.get_game(db, game_id)


@router.get("/{game_id}/reaction", response_model=ReactionStateOut)
def get_my_reaction(
    game_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    catalog.get_game(db, game_id, include_inactive=True)
    return {
        "game_id": game_id,
        "reaction": counters.get_reaction(db, current_user.id, game_id),
        "superliked": counters.has_superliked(db, current_user.id, game_id),
    }


@router.post("/{game_id}/react", response_model=ReactionOut)
def react(
    game_id: str,
    payload: ReactionIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return counters.toggle_reaction(db, current_user, game_id, payload.type)


@router.post("/{game_id}/superlike", response_model=SuperlikeOut)
def superlike(
    game_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return counters.superlike_game(db, current_user, game_id)


@router.post("/{game_id}/view", response_model=ViewOut)
def record_view(
    game_id: str,
    request: Request,
    payload: Optional[ViewIn] = None,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user_optional),
):
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    ip_address = forwarded or (request.client.host if request.client else None)
    return counters.record_view(
        db,
        game_id,
        user=current_user,
        ip_address=ip_address,
        user_agent=request.headers.get("user-agent"),
        fingerprint=payload.fingerprint if payload else None,
    )
