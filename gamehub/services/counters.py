"""
Reaction, superlike and view counters.

The per-user rows (``GameReaction``, ``GameSuperlike``, ``GameView``) are the
source of truth. The denormalized totals on ``Game`` are only ever moved by
relative ``SET col = col + delta`` updates issued in the same transaction as
the row change, so concurrent requests never lose an increment.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core import config
from ..core.config import USER_AGENT_MAX_LENGTH
from ..db import transaction
from ..errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ResourceExhaustedError,
)
from ..models import Game, GameReaction, GameSuperlike, GameView, User
from .access import require_identity
from .validation import normalize_choice

REACTION_TYPES = ("like", "dislike")


@dataclass
class ReactionResult:
    action: str
    reaction: Optional[str]
    count_likes: int
    count_dislikes: int
    score: int


@dataclass
class SuperlikeResult:
    game_id: str
    count_superlikes: int
    superlikes_remaining: int


@dataclass
class ViewResult:
    game_id: str
    view_count: int


def toggle_reaction(
    db: Session,
    user: Optional[User],
    game_id: str,
    reaction_type: Any,
    *,
    allow_inactive_game: Optional[bool] = None,
) -> ReactionResult:
    """Add, remove or flip the caller's like/dislike on a game.

    Same type as the stored reaction removes it, the other type flips it,
    and no stored reaction adds one. ``score`` always equals likes minus
    dislikes after the update.
    """
    user = require_identity(user)
    reaction_type = normalize_choice(reaction_type, REACTION_TYPES, "type")
    if allow_inactive_game is None:
        allow_inactive_game = config.ALLOW_REACTIONS_ON_INACTIVE_GAMES

    with transaction(db):
        game = _lock_game(db, game_id)
        if not game.is_active and not allow_inactive_game:
            raise InvalidStateError("Game is deactivated", details={"game_id": game_id})

        existing = (
            db.query(GameReaction)
            .populate_existing()
            .filter(GameReaction.user_id == user.id, GameReaction.game_id == game_id)
            .first()
        )
        deltas = {"like": 0, "dislike": 0}
        if existing is None:
            db.add(GameReaction(user_id=user.id, game_id=game_id, reaction_type=reaction_type))
            deltas[reaction_type] += 1
            action, current = "added", reaction_type
        elif existing.reaction_type == reaction_type:
            db.delete(existing)
            deltas[reaction_type] -= 1
            action, current = "removed", None
        else:
            deltas[existing.reaction_type] -= 1
            deltas[reaction_type] += 1
            existing.reaction_type = reaction_type
            existing.updated_at = datetime.utcnow()
            action, current = "changed", reaction_type

        try:
            db.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "Another reaction for this game was recorded at the same time; retry",
                details={"game_id": game_id},
            ) from exc

        _apply_reaction_deltas(db, game_id, likes=deltas["like"], dislikes=deltas["dislike"])
        totals = (
            db.query(Game.count_likes, Game.count_dislikes, Game.score)
            .filter(Game.id == game_id)
            .one()
        )

    return ReactionResult(
        action=action,
        reaction=current,
        count_likes=totals.count_likes,
        count_dislikes=totals.count_dislikes,
        score=totals.score,
    )


def get_reaction(db: Session, user_id: str, game_id: str) -> Optional[str]:
    row = (
        db.query(GameReaction.reaction_type)
        .filter(GameReaction.user_id == user_id, GameReaction.game_id == game_id)
        .first()
    )
    return row.reaction_type if row else None


def has_superliked(db: Session, user_id: str, game_id: str) -> bool:
    return (
        db.query(GameSuperlike.id)
        .filter(GameSuperlike.user_id == user_id, GameSuperlike.game_id == game_id)
        .first()
        is not None
    )


def superlike_game(db: Session, user: Optional[User], game_id: str) -> SuperlikeResult:
    """Spend one unit of the caller's superlike budget on a game. Irreversible."""
    user = require_identity(user)

    with transaction(db):
        game = _lock_game(db, game_id)
        if not game.is_active:
            raise InvalidStateError("Game is deactivated", details={"game_id": game_id})
        if has_superliked(db, user.id, game_id):
            raise ConflictError("You already superliked this game", details={"game_id": game_id})

        spent = (
            db.query(User)
            .filter(
                User.id == user.id,
                User.is_active.is_(True),
                User.superlikes_remaining > 0,
            )
            .update(
                {
                    User.superlikes_remaining: User.superlikes_remaining - 1,
                    User.updated_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )
        if not spent:
            row = db.query(User.is_active).filter(User.id == user.id).first()
            if row is None:
                raise NotFoundError("User", user.id)
            if not row.is_active:
                raise ForbiddenError("Your account has been deactivated.")
            raise ResourceExhaustedError("superlikes", message="No superlikes remaining", limit=0)

        db.add(GameSuperlike(user_id=user.id, game_id=game_id))
        try:
            db.flush()
        except IntegrityError as exc:
            raise ConflictError("You already superliked this game", details={"game_id": game_id}) from exc

        db.query(Game).filter(Game.id == game_id).update(
            {Game.count_superlikes: Game.count_superlikes + 1},
            synchronize_session=False,
        )
        remaining = db.query(User.superlikes_remaining).filter(User.id == user.id).scalar()
        count = db.query(Game.count_superlikes).filter(Game.id == game_id).scalar()

    return SuperlikeResult(game_id=game_id, count_superlikes=count, superlikes_remaining=remaining)


def hash_ip(ip_address: Optional[str], salt: Optional[str] = None) -> Optional[str]:
    if not ip_address:
        return None
    salt = config.VIEW_HASH_SALT if salt is None else salt
    return hashlib.sha256(f"{salt}:{ip_address}".encode("utf-8")).hexdigest()


def record_view(
    db: Session,
    game_id: str,
    *,
    user: Optional[User] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
    fingerprint: Optional[str] = None,
) -> ViewResult:
    with transaction(db):
        if db.query(Game.id).filter(Game.id == game_id).first() is None:
            raise NotFoundError("Game", game_id)

        db.add(
            GameView(
                game_id=game_id,
                user_id=user.id if user is not None else None,
                ip_hash=hash_ip(ip_address),
                fingerprint=(fingerprint or "").strip()[:200] or None,
                user_agent=(user_agent or "")[:USER_AGENT_MAX_LENGTH] or None,
            )
        )
        db.flush()
        db.query(Game).filter(Game.id == game_id).update(
            {Game.view_count: Game.view_count + 1},
            synchronize_session=False,
        )
        view_count = db.query(Game.view_count).filter(Game.id == game_id).scalar()

    return ViewResult(game_id=game_id, view_count=view_count)


def _lock_game(db: Session, game_id: str) -> Game:
    """Take the write lock on a game before anything else in the transaction reads.

    Must be the first statement of the transaction. SQLite ignores
    ``FOR UPDATE``, so the lock comes from a guarded write instead.
    """
    touched = (
        db.query(Game)
        .filter(Game.id == game_id)
        .update({Game.updated_at: datetime.utcnow()}, synchronize_session=False)
    )
    if not touched:
        raise NotFoundError("Game", game_id)
    return db.query(Game).populate_existing().filter(Game.id == game_id).one()


def _apply_reaction_deltas(db: Session, game_id: str, *, likes: int, dislikes: int) -> None:
    if not likes and not dislikes:
        return
    db.query(Game).filter(Game.id == game_id).update(
        {
            Game.count_likes: Game.count_likes + likes,
            Game.count_dislikes: Game.count_dislikes + dislikes,
            Game.score: (Game.count_likes + likes) - (Game.count_dislikes + dislikes),
            Game.updated_at: datetime.utcnow(),
        },
        synchronize_session=False,
    )
