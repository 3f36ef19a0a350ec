from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..db import transaction
from ..errors import InvalidStateError, NotFoundError
from ..models import Game, User
from .access import require_admin
from .validation import require_text


def deactivate_game(db: Session, game_id: str, admin: Optional[User], *, reason: Any) -> Game:
    admin = require_admin(admin)
    reason = require_text(reason, "reason")
    now = datetime.utcnow()

    with transaction(db):
        updated = (
            db.query(Game)
            .filter(Game.id == game_id, Game.is_active.is_(True))
            .update(
                {
                    Game.is_active: False,
                    Game.deactivated_at: now,
                    Game.deactivated_by: admin.id,
                    Game.deactivation_reason: reason,
                    Game.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        if not updated:
            if db.query(Game.id).filter(Game.id == game_id).first() is None:
                raise NotFoundError("Game", game_id)
            raise InvalidStateError("Game is already deactivated", details={"game_id": game_id})

    return db.query(Game).populate_existing().filter(Game.id == game_id).one()


def deactivate_user(db: Session, user_id: str, admin: Optional[User], *, reason: Any) -> User:
    admin = require_admin(admin)
    reason = require_text(reason, "reason")
    if user_id == admin.id:
        raise InvalidStateError("Admins cannot deactivate their own account")
    now = datetime.utcnow()

    with transaction(db):
        updated = (
            db.query(User)
            .filter(User.id == user_id, User.is_active.is_(True))
            .update(
                {
                    User.is_active: False,
                    User.deactivated_at: now,
                    User.deactivated_by: admin.id,
                    User.deactivation_reason: reason,
                    User.updated_at: now,
                },
                synchronize_session=False,
            )
        )
        if not updated:
            if db.query(User.id).filter(User.id == user_id).first() is None:
                raise NotFoundError("User", user_id)
            raise InvalidStateError("User is already deactivated", details={"user_id": user_id})

    return db.query(User).populate_existing().filter(User.id == user_id).one()


def restore_game(db: Session, game_id: str) -> bool:
    """Reactivate a game inside the caller's transaction. False if it does not exist."""
    now = datetime.utcnow()
    restored = (
        db.query(Game)
        .filter(Game.id == game_id)
        .update(
            {
                Game.is_active: True,
                Game.deactivated_at: None,
                Game.deactivated_by: None,
                Game.deactivation_reason: None,
                Game.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    return bool(restored)


def restore_user(db: Session, user_id: str) -> bool:
    now = datetime.utcnow()
    restored = (
        db.query(User)
        .filter(User.id == user_id)
        .update(
            {
                User.is_active: True,
                User.deactivated_at: None,
                User.deactivated_by: None,
                User.deactivation_reason: None,
                User.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    return bool(restored)
