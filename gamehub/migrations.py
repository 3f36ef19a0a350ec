from typing import Optional

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from .core.config import DEFAULT_SUPERLIKES
from .db import engine as default_engine


def _bool_default(bind: Engine, value: bool) -> str:
    if bind.dialect.name == "postgresql":
        return "TRUE" if value else "FALSE"
    return "1" if value else "0"


def _json_type(bind: Engine) -> str:
    return "JSONB" if bind.dialect.name == "postgresql" else "TEXT"


def _timestamp_type(bind: Engine) -> str:
    return "TIMESTAMP" if bind.dialect.name == "postgresql" else "DATETIME"


def ensure_schema(bind: Optional[Engine] = None) -> list[str]:
    """Add columns that databases created by older releases are missing.

    Returns the statements that were applied.
    """
    bind = bind or default_engine
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())
    timestamp_type = _timestamp_type(bind)
    applied: list[str] = []

    if "users" in tables:
        columns = {col["name"] for col in inspector.get_columns("users")}
        alters = []
        if "avatar_url" not in columns:
            alters.append("ALTER TABLE users ADD COLUMN avatar_url VARCHAR(500)")
        if "role" not in columns:
            alters.append("ALTER TABLE users ADD COLUMN role VARCHAR(20) DEFAULT 'normal'")
        if "superlikes_remaining" not in columns:
            alters.append(
                f"ALTER TABLE users ADD COLUMN superlikes_remaining INTEGER DEFAULT {int(DEFAULT_SUPERLIKES)}"
            )
        if "profile_completed_at" not in columns:
            alters.append(f"ALTER TABLE users ADD COLUMN profile_completed_at {timestamp_type}")
        if "is_active" not in columns:
            alters.append(f"ALTER TABLE users ADD COLUMN is_active BOOLEAN DEFAULT {_bool_default(bind, True)}")
        if "deactivated_at" not in columns:
            alters.append(f"ALTER TABLE users ADD COLUMN deactivated_at {timestamp_type}")
        if "deactivated_by" not in columns:
            alters.append("ALTER TABLE users ADD COLUMN deactivated_by VARCHAR(36)")
        if "deactivation_reason" not in columns:
            alters.append("ALTER TABLE users ADD COLUMN deactivation_reason TEXT")
        applied.extend(_apply_alters(bind, alters))

    if "games" in tables:
        columns = {col["name"] for col in inspector.get_columns("games")}
        alters = []
        if "count_superlikes" not in columns:
            alters.append("ALTER TABLE games ADD COLUMN count_superlikes INTEGER DEFAULT 0")
        if "view_count" not in columns:
            alters.append("ALTER TABLE games ADD COLUMN view_count INTEGER DEFAULT 0")
        if "cover_media_id" not in columns:
            alters.append("ALTER TABLE games ADD COLUMN cover_media_id VARCHAR(36)")
        if "is_active" not in columns:
            alters.append(f"ALTER TABLE games ADD COLUMN is_active BOOLEAN DEFAULT {_bool_default(bind, True)}")
        if "deactivated_at" not in columns:
            alters.append(f"ALTER TABLE games ADD COLUMN deactivated_at {timestamp_type}")
        if "deactivated_by" not in columns:
            alters.append("ALTER TABLE games ADD COLUMN deactivated_by VARCHAR(36)")
        if "deactivation_reason" not in columns:
            alters.append("ALTER TABLE games ADD COLUMN deactivation_reason TEXT")
        applied.extend(_apply_alters(bind, alters))

    if "game_requests" in tables:
        columns = {col["name"] for col in inspector.get_columns("game_requests")}
        alters = []
        if "tag_ids" not in columns:
            alters.append(f"ALTER TABLE game_requests ADD COLUMN tag_ids {_json_type(bind)}")
        if "submitter_note" not in columns:
            alters.append("ALTER TABLE game_requests ADD COLUMN submitter_note TEXT")
        if "reviewed_by" not in columns:
            alters.append("ALTER TABLE game_requests ADD COLUMN reviewed_by VARCHAR(36)")
        if "reviewed_at" not in columns:
            alters.append(f"ALTER TABLE game_requests ADD COLUMN reviewed_at {timestamp_type}")
        applied.extend(_apply_alters(bind, alters))

    return applied


def _apply_alters(bind: Engine, statements: list[str]) -> list[str]:
    if not statements:
        return []
    with bind.begin() as connection:
        for statement in statements:
            connection.execute(text(statement))
    return statements
