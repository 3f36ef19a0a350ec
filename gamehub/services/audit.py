from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from ..errors import ValidationError
from ..models import AdminAction

ADMIN_ACTIONS = {"approve", "reject"}


def record_admin_action(
    db: Session,
    *,
    admin_id: str,
    action: str,
    game_request_id: Optional[str] = None,
    user_request_id: Optional[str] = None,
    note: Optional[str] = None,
) -> AdminAction:
    """Append an audit row. Callers own the surrounding transaction."""
    if not game_request_id and not user_request_id:
        raise ValidationError(
            "Admin action must reference a game request or a user request",
            field="game_request_id",
        )
    if action not in ADMIN_ACTIONS:
        raise ValidationError(f"Unsupported admin action: {action}", field="action")

    row = AdminAction(
        admin_id=admin_id,
        action=action,
        game_request_id=game_request_id,
        user_request_id=user_request_id,
        note=note,
    )
    db.add(row)
    db.flush()
    return row


def list_admin_actions(
    db: Session,
    *,
    limit: int = 50,
    offset: int = 0,
    admin_id: Optional[str] = None,
    game_request_id: Optional[str] = None,
    user_request_id: Optional[str] = None,
) -> tuple[int, list[AdminAction]]:
    query = db.query(AdminAction)
    if admin_id:
        query = query.filter(AdminAction.admin_id == admin_id)
    if game_request_id:
        query = query.filter(AdminAction.game_request_id == game_request_id)
    if user_request_id:
        query = query.filter(AdminAction.user_request_id == user_request_id)

    total = query.count()
    rows = (
        query.order_by(AdminAction.created_at.desc(), AdminAction.id.desc())
        .offset(max(0, int(offset)))
        .limit(max(1, min(200, int(limit))))
        .all()
    )
    return total, rows
