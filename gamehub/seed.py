from datetime import datetime

from sqlalchemy.orm import Session

from .core.config import DEFAULT_SUPERLIKES
from .db import transaction
from .models import Game, Tag, User

SAMPLE_USER_ID = "sample-user"
SAMPLE_GAME_ID = "sample-game"

SAMPLE_TAGS = [
    {"name": "Puzzle", "category": "genre"},
    {"name": "Platformer", "category": "genre"},
    {"name": "Multiplayer", "category": "mode"},
]


def seed_sample_data(db: Session) -> bool:
    """Insert a demo user, game and a few tags. Returns False when already seeded."""
    if db.query(User.id).filter(User.id == SAMPLE_USER_ID).first():
        return False

    with transaction(db):
        user = User(
            id=SAMPLE_USER_ID,
            google_id="sample-google-id",
            email="sample@gamehub.local",
            name="Sample User",
            avatar_url="https://example.com/avatar.png",
            role="normal",
            superlikes_remaining=DEFAULT_SUPERLIKES,
            profile_completed_at=datetime.utcnow(),
            is_active=True,
        )
        db.add(user)
        db.flush()

        tags = []
        for payload in SAMPLE_TAGS:
            tag = db.query(Tag).filter(Tag.name == payload["name"]).first()
            if tag is None:
                tag = Tag(name=payload["name"], category=payload["category"], created_by=user.id)
                db.add(tag)
            tags.append(tag)

        game = Game(
            id=SAMPLE_GAME_ID,
            title="Sample Game",
            description="A demo game to try reactions on",
            game_url="https://example.com/game",
            created_by=user.id,
        )
        game.tags = tags[:1]
        db.add(game)
    return True
