from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ..db import transaction
from ..errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from ..models import Game, GameTag, Tag, User
from .access import require_admin
from .validation import clean_text, require_text

DEFAULT_GAME_PAGE_SIZE = 10
MAX_GAME_PAGE_SIZE = 50
TAG_NAME_MAX_LENGTH = 80


def parse_date(value: Any, field_name: str) -> Optional[datetime]:
    """Parse a ``YYYY-MM-DD`` query value. Blank input means no bound."""
    raw = str(value or "").strip()
    if not raw:
        return None
    try:
        return datetime.strptime(raw, "%Y-%m-%d")
    except ValueError:
        raise ValidationError(f"{field_name} must be a date in YYYY-MM-DD format", field=field_name) from None


def list_games(
    db: Session,
    *,
    page: int = 1,
    limit: int = DEFAULT_GAME_PAGE_SIZE,
    search: Optional[str] = None,
    min_likes: Optional[int] = None,
    max_likes: Optional[int] = None,
    created_after: Any = None,
    created_before: Any = None,
) -> tuple[int, list[Game]]:
    if page < 1:
        raise ValidationError("page must be at least 1", field="page")
    if not 1 <= limit <= MAX_GAME_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_GAME_PAGE_SIZE}", field="limit")
    if min_likes is not None and max_likes is not None and min_likes > max_likes:
        raise ValidationError("min_likes cannot exceed max_likes", field="min_likes")

    after = parse_date(created_after, "created_after")
    before = parse_date(created_before, "created_before")

    query = db.query(Game).filter(Game.is_active.is_(True))
    term = (search or "").strip()
    if term:
        query = query.filter(Game.title.ilike(f"%{term}%"))
    if min_likes is not None:
        query = query.filter(Game.count_likes >= min_likes)
    if max_likes is not None:
        query = query.filter(Game.count_likes <= max_likes)
    if after is not None:
        query = query.filter(Game.created_at >= after)
    if before is not None:
        # Inclusive of the whole day
        query = query.filter(Game.created_at < before + timedelta(days=1))

    total = query.count()
    games = (
        query.options(selectinload(Game.tags), selectinload(Game.media))
        .order_by(Game.created_at.desc(), Game.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return total, games


def get_game(db: Session, game_id: str, *, include_inactive: bool = False) -> Game:
    game = db.query(Game).filter(Game.id == game_id).first()
    if game is None:
        raise NotFoundError("Game", game_id)
    if not game.is_active and not include_inactive:
        raise InvalidStateError("Game is deactivated", details={"game_id": game_id})
    return game


def list_tags(db: Session) -> list[Tag]:
    return db.query(Tag).order_by(Tag.category.asc(), Tag.name.asc()).all()


def create_tag(db: Session, admin: Optional[User], *, name: Any, category: Any = None) -> Tag:
    admin = require_admin(admin)
    name = require_text(name, "name", max_length=TAG_NAME_MAX_LENGTH)
    category = clean_text(category)

    with transaction(db):
        if db.query(Tag.id).filter(Tag.name == name).first():
            raise ConflictError("Tag already exists", details={"name": name})
        tag = Tag(name=name, category=category, created_by=admin.id)
        db.add(tag)
        try:
            db.flush()
        except IntegrityError as exc:
            raise ConflictError("Tag already exists", details={"name": name}) from exc
    return tag


def list_games_for_tag(db: Session, tag_id: str) -> list[Game]:
    if db.query(Tag.id).filter(Tag.id == tag_id).first() is None:
        raise NotFoundError("Tag", tag_id)
    return (
        db.query(Game)
        .join(GameTag, GameTag.game_id == Game.id)
        .filter(GameTag.tag_id == tag_id, Game.is_active.is_(True))
        .order_by(Game.created_at.desc())
        .all()
    )
