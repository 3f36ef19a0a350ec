"""
Request lifecycle: game submissions, modifications, appeals and user appeals.

Every request moves through the same closed state machine::

    pending --approve--> approved
    pending --reject---> rejected

Resolving a request is a single transaction that claims the row with a
guarded ``UPDATE ... WHERE status IN (<allowed sources>)``, applies the
side effects of the decision and appends one ``AdminAction``. The guard's
affected-row count decides the winner when two admins review the same
request at once.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional, Type, Union

from sqlalchemy.orm import Session

from ..core.config import ADMIN_PAGE_SIZE, MAX_PENDING_NEW_GAMES
from ..db import transaction
from ..errors import (
    ConflictError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from ..models import Game, GameMedia, GameRequest, GameTag, Tag, User, UserRequest
from .access import require_admin, require_identity
from .audit import record_admin_action
from .moderation import restore_game, restore_user
from .validation import (
    GameSubmission,
    MediaEntry,
    clean_text,
    normalize_appeal_text,
    normalize_choice,
    require_text,
    validate_game_submission,
)


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


_TRANSITIONS: dict[RequestStatus, frozenset[RequestStatus]] = {
    RequestStatus.PENDING: frozenset({RequestStatus.APPROVED, RequestStatus.REJECTED}),
    RequestStatus.APPROVED: frozenset(),
    RequestStatus.REJECTED: frozenset(),
}

NEW_GAME = "new_game"
GAME_MODIFICATION = "game_modification"
GAME_APPEAL = "game_appeal"
GAME_REQUEST_TYPES = (NEW_GAME, GAME_MODIFICATION, GAME_APPEAL)

USER_UNBAN_APPEAL = "user_unban_appeal"
GAME_REPORT_APPEAL = "game_report_appeal"
USER_REQUEST_TYPES = (USER_UNBAN_APPEAL, GAME_REPORT_APPEAL)

RequestModel = Union[Type[GameRequest], Type[UserRequest]]


def can_transition(current: Union[RequestStatus, str], target: RequestStatus) -> bool:
    try:
        source = RequestStatus(current)
    except ValueError:
        return False
    return target in _TRANSITIONS[source]


def ensure_transition(current: Union[RequestStatus, str], target: RequestStatus) -> None:
    if not can_transition(current, target):
        status = getattr(current, "value", current)
        raise InvalidStateError(
            f"Cannot move a {status} request to {target.value}",
            details={"status": status, "target": target.value},
        )


def allowed_sources(target: RequestStatus) -> list[str]:
    return [source.value for source, targets in _TRANSITIONS.items() if target in targets]


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


def count_pending_new_game_requests(db: Session, user_id: str) -> int:
    return (
        db.query(GameRequest)
        .filter(
            GameRequest.submitted_by == user_id,
            GameRequest.request_type == NEW_GAME,
            GameRequest.status == RequestStatus.PENDING.value,
        )
        .count()
    )


def submit_new_game_request(
    db: Session,
    submitter: Optional[User],
    *,
    title: Any,
    game_url: Any,
    description: Any = None,
    tag_ids: Optional[Iterable[Any]] = None,
    media: Optional[Iterable[Any]] = None,
    max_pending: int = MAX_PENDING_NEW_GAMES,
) -> GameRequest:
    submitter = require_identity(submitter)
    submission = validate_game_submission(
        title=title,
        game_url=game_url,
        description=description,
        tag_ids=tag_ids,
        media=media,
    )

    with transaction(db):
        _lock_user(db, submitter.id)
        pending = count_pending_new_game_requests(db, submitter.id)
        if pending >= max_pending:
            raise QuotaExceededError(
                "pending_new_game_requests",
                message=(
                    f"You have reached the limit of {max_pending} pending game submissions. "
                    "Please wait for admin review."
                ),
                limit=max_pending,
            )

        duplicate = (
            db.query(GameRequest.id)
            .filter(
                GameRequest.submitted_by == submitter.id,
                GameRequest.game_url == submission.game_url,
                GameRequest.status == RequestStatus.PENDING.value,
            )
            .first()
        )
        if duplicate:
            raise ConflictError(
                "Game request already submitted",
                details={"game_url": submission.game_url},
            )
        if _live_game_with_url(db, submission.game_url):
            raise ConflictError("Game already exists", details={"game_url": submission.game_url})
        _ensure_tags_exist(db, submission.tag_ids)

        request = _stage_request(db, submitter.id, NEW_GAME, submission)
    return request


def submit_game_modification(
    db: Session,
    submitter: Optional[User],
    game_id: str,
    *,
    title: Any,
    game_url: Any,
    description: Any = None,
    tag_ids: Optional[Iterable[Any]] = None,
    media: Optional[Iterable[Any]] = None,
    note: Any = None,
) -> GameRequest:
    submitter = require_identity(submitter)
    submission = validate_game_submission(
        title=title,
        game_url=game_url,
        description=description,
        tag_ids=tag_ids,
        media=media,
    )
    cleaned_note = clean_text(note)

    with transaction(db):
        game = _owned_game(db, game_id, submitter)
        if not game.is_active:
            raise InvalidStateError(
                "Game is deactivated; submit an appeal instead",
                details={"game_id": game.id},
            )
        _reject_duplicate_pending(db, submitter.id, GAME_MODIFICATION, game.id)
        if submission.game_url != game.game_url and _live_game_with_url(
            db, submission.game_url, exclude_game_id=game.id
        ):
            raise ConflictError("Game already exists", details={"game_url": submission.game_url})
        _ensure_tags_exist(db, submission.tag_ids)

        request = _stage_request(
            db,
            submitter.id,
            GAME_MODIFICATION,
            submission,
            game_id=game.id,
            note=cleaned_note,
        )
    return request


def submit_game_appeal(
    db: Session,
    submitter: Optional[User],
    game_id: str,
    *,
    note: Any,
) -> GameRequest:
    submitter = require_identity(submitter)
    cleaned_note = require_text(note, "note")

    with transaction(db):
        game = _owned_game(db, game_id, submitter)
        if game.is_active:
            raise InvalidStateError("Game is not deactivated", details={"game_id": game.id})
        _reject_duplicate_pending(db, submitter.id, GAME_APPEAL, game.id)

        submission = GameSubmission(
            title=game.title,
            game_url=game.game_url,
            description=game.description,
        )
        request = _stage_request(
            db,
            submitter.id,
            GAME_APPEAL,
            submission,
            game_id=game.id,
            note=cleaned_note,
        )
    return request


def submit_user_request(
    db: Session,
    submitter: Optional[User],
    *,
    request_type: Any,
    appeal_text: Any,
    related_game_id: Any = None,
) -> UserRequest:
    # Banned accounts may still ask to be unbanned.
    submitter = require_identity(submitter, allow_inactive=True)
    request_type = normalize_choice(request_type, USER_REQUEST_TYPES, "request_type")
    appeal_text = normalize_appeal_text(appeal_text)
    related = str(related_game_id or "").strip() or None

    if request_type == GAME_REPORT_APPEAL and not related:
        raise ValidationError("Game ID is required for reporting a game", field="related_game_id")
    if request_type == USER_UNBAN_APPEAL and related:
        raise ValidationError("Unban appeals cannot reference a game", field="related_game_id")
    if request_type == USER_UNBAN_APPEAL and submitter.is_active:
        raise InvalidStateError("Your account is not deactivated")
    if request_type != USER_UNBAN_APPEAL and not submitter.is_active:
        raise ForbiddenError("Your account has been deactivated.")

    with transaction(db):
        if related and db.query(Game.id).filter(Game.id == related).first() is None:
            raise NotFoundError("Game", related)

        query = db.query(UserRequest.id).filter(
            UserRequest.submitted_by == submitter.id,
            UserRequest.request_type == request_type,
            UserRequest.status == RequestStatus.PENDING.value,
        )
        if related:
            query = query.filter(UserRequest.related_game_id == related)
        else:
            query = query.filter(UserRequest.related_game_id.is_(None))
        if query.first():
            raise ConflictError(
                "You already have a pending request of this type",
                details={"request_type": request_type, "related_game_id": related},
            )

        request = UserRequest(
            request_type=request_type,
            submitted_by=submitter.id,
            related_game_id=related,
            appeal_text=appeal_text,
            status=RequestStatus.PENDING.value,
        )
        db.add(request)
        db.flush()
    return request


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


def approve_game_request(
    db: Session,
    request_id: str,
    admin: Optional[User],
    *,
    admin_response: Any = None,
) -> GameRequest:
    admin = require_admin(admin)
    response = clean_text(admin_response)

    with transaction(db):
        request = _claim_request(db, GameRequest, request_id, RequestStatus.APPROVED, admin.id, response)
        _materialize(db, request)
        record_admin_action(
            db,
            admin_id=admin.id,
            action="approve",
            game_request_id=request.id,
            note=response,
        )
    return request


def reject_game_request(
    db: Session,
    request_id: str,
    admin: Optional[User],
    *,
    admin_response: Any = None,
) -> GameRequest:
    admin = require_admin(admin)
    response = clean_text(admin_response)

    with transaction(db):
        request = _claim_request(db, GameRequest, request_id, RequestStatus.REJECTED, admin.id, response)
        record_admin_action(
            db,
            admin_id=admin.id,
            action="reject",
            game_request_id=request.id,
            note=response,
        )
    return request


def approve_user_request(
    db: Session,
    request_id: str,
    admin: Optional[User],
    *,
    admin_response: Any = None,
) -> UserRequest:
    admin = require_admin(admin)
    response = clean_text(admin_response)

    with transaction(db):
        request = _claim_request(db, UserRequest, request_id, RequestStatus.APPROVED, admin.id, response)
        if request.request_type == USER_UNBAN_APPEAL:
            restore_user(db, request.submitted_by)
        elif request.request_type == GAME_REPORT_APPEAL and request.related_game_id:
            restore_game(db, request.related_game_id)
        record_admin_action(
            db,
            admin_id=admin.id,
            action="approve",
            user_request_id=request.id,
            note=response,
        )
    return request


def reject_user_request(
    db: Session,
    request_id: str,
    admin: Optional[User],
    *,
    admin_response: Any = None,
) -> UserRequest:
    admin = require_admin(admin)
    response = clean_text(admin_response)

    with transaction(db):
        request = _claim_request(db, UserRequest, request_id, RequestStatus.REJECTED, admin.id, response)
        record_admin_action(
            db,
            admin_id=admin.id,
            action="reject",
            user_request_id=request.id,
            note=response,
        )
    return request


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


def list_pending_game_requests(
    db: Session,
    *,
    page: int = 1,
    page_size: int = ADMIN_PAGE_SIZE,
    request_type: Optional[str] = None,
) -> tuple[int, list[GameRequest]]:
    query = db.query(GameRequest).filter(GameRequest.status == RequestStatus.PENDING.value)
    if request_type:
        query = query.filter(
            GameRequest.request_type == normalize_choice(request_type, GAME_REQUEST_TYPES, "request_type")
        )
    return _paginate(query, GameRequest, page, page_size)


def list_pending_user_requests(
    db: Session,
    *,
    page: int = 1,
    page_size: int = ADMIN_PAGE_SIZE,
) -> tuple[int, list[UserRequest]]:
    query = db.query(UserRequest).filter(UserRequest.status == RequestStatus.PENDING.value)
    return _paginate(query, UserRequest, page, page_size)


def list_game_requests_for_user(db: Session, user_id: str) -> list[GameRequest]:
    return (
        db.query(GameRequest)
        .filter(GameRequest.submitted_by == user_id)
        .order_by(GameRequest.created_at.desc())
        .all()
    )


def list_user_requests_for_user(db: Session, user_id: str) -> list[UserRequest]:
    return (
        db.query(UserRequest)
        .filter(UserRequest.submitted_by == user_id)
        .order_by(UserRequest.created_at.desc())
        .all()
    )


# ---------------------------------------------------------------------------
# Internals
# ---------------------------------------------------------------------------


def _paginate(query, model: RequestModel, page: int, page_size: int):
    page = max(1, int(page or 1))
    page_size = max(1, min(100, int(page_size or ADMIN_PAGE_SIZE)))
    total = query.count()
    rows = (
        query.order_by(model.created_at.desc(), model.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return total, rows


def _lock_user(db: Session, user_id: str) -> None:
    # First statement of the transaction: a guarded write, since SQLite ignores FOR UPDATE.
    touched = (
        db.query(User)
        .filter(User.id == user_id)
        .update({User.updated_at: datetime.utcnow()}, synchronize_session=False)
    )
    if not touched:
        raise NotFoundError("User", user_id)


def _live_game_with_url(db: Session, game_url: str, exclude_game_id: Optional[str] = None) -> bool:
    query = db.query(Game.id).filter(Game.game_url == game_url, Game.is_active.is_(True))
    if exclude_game_id:
        query = query.filter(Game.id != exclude_game_id)
    return query.first() is not None


def _ensure_tags_exist(db: Session, tag_ids: list[str]) -> None:
    if not tag_ids:
        return
    found = {row.id for row in db.query(Tag.id).filter(Tag.id.in_(tag_ids)).all()}
    missing = [tag_id for tag_id in tag_ids if tag_id not in found]
    if missing:
        raise ValidationError(f"Unknown tag ids: {', '.join(missing)}", field="tag_ids")


def _owned_game(db: Session, game_id: str, submitter: User) -> Game:
    game = db.query(Game).filter(Game.id == game_id).first()
    if game is None:
        raise NotFoundError("Game", game_id)
    if game.created_by != submitter.id:
        raise ForbiddenError("Only the game's creator can submit this request.")
    return game


def _reject_duplicate_pending(db: Session, user_id: str, request_type: str, game_id: str) -> None:
    duplicate = (
        db.query(GameRequest.id)
        .filter(
            GameRequest.submitted_by == user_id,
            GameRequest.request_type == request_type,
            GameRequest.game_id == game_id,
            GameRequest.status == RequestStatus.PENDING.value,
        )
        .first()
    )
    if duplicate:
        raise ConflictError(
            "You already have a pending request of this type for this game",
            details={"request_type": request_type, "game_id": game_id},
        )


def _stage_request(
    db: Session,
    submitter_id: str,
    request_type: str,
    submission: GameSubmission,
    *,
    game_id: Optional[str] = None,
    note: Optional[str] = None,
) -> GameRequest:
    request = GameRequest(
        request_type=request_type,
        game_id=game_id,
        submitted_by=submitter_id,
        title=submission.title,
        description=submission.description,
        game_url=submission.game_url,
        tag_ids=list(submission.tag_ids),
        submitter_note=note,
        status=RequestStatus.PENDING.value,
    )
    db.add(request)
    db.flush()
    _attach_media(db, request, submission.media)
    return request


def _attach_media(db: Session, request: GameRequest, media: list[MediaEntry]) -> None:
    for entry in media:
        db.add(
            GameMedia(
                game_request_id=request.id,
                media_type=entry.media_type,
                storage_key=entry.storage_key,
                sort_order=entry.sort_order,
            )
        )
    if media:
        db.flush()


def _claim_request(
    db: Session,
    model: RequestModel,
    request_id: str,
    target: RequestStatus,
    reviewer_id: str,
    admin_response: Optional[str],
):
    label = "Game request" if model is GameRequest else "User request"
    now = datetime.utcnow()
    claimed = (
        db.query(model)
        .filter(model.id == request_id, model.status.in_(allowed_sources(target)))
        .update(
            {
                model.status: target.value,
                model.reviewed_by: reviewer_id,
                model.reviewed_at: now,
                model.admin_response: admin_response,
                model.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    if not claimed:
        current = db.query(model.status).filter(model.id == request_id).scalar()
        if current is None:
            raise NotFoundError(label, request_id)
        ensure_transition(current, target)
        # Status allowed the move when re-read, so another reviewer won the row meanwhile.
        raise InvalidStateError(f"{label} was resolved concurrently", details={"status": current})

    return db.query(model).populate_existing().filter(model.id == request_id).one()


def _materialize(db: Session, request: GameRequest) -> None:
    if request.request_type == NEW_GAME:
        _publish_new_game(db, request)
    elif request.request_type == GAME_MODIFICATION:
        _apply_modification(db, request)
    elif request.request_type == GAME_APPEAL:
        _restore_appealed_game(db, request)
    else:
        raise InvalidStateError(f"Unsupported request type: {request.request_type}")


def _publish_new_game(db: Session, request: GameRequest) -> Game:
    if _live_game_with_url(db, request.game_url):
        raise ConflictError("A live game already uses this URL", details={"game_url": request.game_url})

    game = Game(
        title=request.title,
        description=request.description,
        game_url=request.game_url,
        created_by=request.submitted_by,
        count_likes=0,
        count_dislikes=0,
        count_superlikes=0,
        score=0,
        view_count=0,
        is_active=True,
    )
    db.add(game)
    db.flush()

    _link_media(db, request, game)
    _replace_tags(db, game.id, request.tag_ids or [])
    request.game_id = game.id
    db.flush()
    return game


def _apply_modification(db: Session, request: GameRequest) -> Game:
    game = db.query(Game).filter(Game.id == request.game_id).with_for_update().first()
    if game is None:
        raise InvalidStateError("The game targeted by this request no longer exists")
    if request.game_url != game.game_url and _live_game_with_url(
        db, request.game_url, exclude_game_id=game.id
    ):
        raise ConflictError("A live game already uses this URL", details={"game_url": request.game_url})

    game.title = request.title
    game.description = request.description
    game.game_url = request.game_url
    game.updated_at = datetime.utcnow()
    _link_media(db, request, game)
    if request.tag_ids:
        _replace_tags(db, game.id, request.tag_ids)
    db.flush()
    return game


def _restore_appealed_game(db: Session, request: GameRequest) -> None:
    if not request.game_id or not restore_game(db, request.game_id):
        raise InvalidStateError("The game targeted by this appeal no longer exists")


def _link_media(db: Session, request: GameRequest, game: Game) -> None:
    media = (
        db.query(GameMedia)
        .filter(GameMedia.game_request_id == request.id)
        .order_by(GameMedia.sort_order.asc(), GameMedia.created_at.asc())
        .all()
    )
    for item in media:
        item.game_id = game.id
    cover = next((item for item in media if item.media_type == "image"), None)
    if cover is not None:
        game.cover_media_id = cover.id
    db.flush()


def _replace_tags(db: Session, game_id: str, tag_ids: list[str]) -> None:
    db.query(GameTag).filter(GameTag.game_id == game_id).delete(synchronize_session=False)
    if not tag_ids:
        return
    existing = {row.id for row in db.query(Tag.id).filter(Tag.id.in_(tag_ids)).all()}
    for tag_id in tag_ids:
        if tag_id in existing:
            db.add(GameTag(game_id=game_id, tag_id=tag_id))
    db.flush()
