import uuid
from datetime import datetime
from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .core.config import DEFAULT_SUPERLIKES
from .db import Base


def generate_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    google_id = Column(String(200), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(120), nullable=False)
    avatar_url = Column(String(500), nullable=True)
    role = Column(String(20), default="normal", nullable=False)
    superlikes_remaining = Column(Integer, default=DEFAULT_SUPERLIKES, nullable=False)
    profile_completed_at = Column(DateTime, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    deactivated_at = Column(DateTime, nullable=True)
    deactivated_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    deactivation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    games = relationship(
        "Game",
        back_populates="creator",
        cascade="all, delete",
        foreign_keys="Game.created_by",
    )
    reactions = relationship("GameReaction", back_populates="user", cascade="all, delete")
    superlikes = relationship("GameSuperlike", back_populates="user", cascade="all, delete")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Game(Base):
    __tablename__ = "games"

    id = Column(String(36), primary_key=True, default=generate_id)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    game_url = Column(String(500), nullable=False, index=True)
    created_by = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # Denormalized counters, written only by services.counters
    count_likes = Column(Integer, default=0, nullable=False)
    count_dislikes = Column(Integer, default=0, nullable=False)
    count_superlikes = Column(Integer, default=0, nullable=False)
    score = Column(Integer, default=0, nullable=False)
    view_count = Column(Integer, default=0, nullable=False)

    cover_media_id = Column(String(36), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    deactivated_at = Column(DateTime, nullable=True)
    deactivated_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    deactivation_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    creator = relationship("User", back_populates="games", foreign_keys=[created_by])
    reactions = relationship("GameReaction", back_populates="game", cascade="all, delete", passive_deletes=True)
    superlikes = relationship("GameSuperlike", back_populates="game", cascade="all, delete", passive_deletes=True)
    views = relationship("GameView", back_populates="game", cascade="all, delete", passive_deletes=True)
    media = relationship("GameMedia", back_populates="game", order_by="GameMedia.sort_order")
    tags = relationship("Tag", secondary="game_tags", back_populates="games")


class GameRequest(Base):
    __tablename__ = "game_requests"

    id = Column(String(36), primary_key=True, default=generate_id)
    request_type = Column(String(30), nullable=False, index=True)
    # Null for new_game until approval links the created game
    game_id = Column(String(36), ForeignKey("games.id", ondelete="SET NULL"), nullable=True, index=True)
    submitted_by = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    game_url = Column(String(500), nullable=False, index=True)
    tag_ids = Column(JSON, default=list)
    submitter_note = Column(Text, nullable=True)

    status = Column(String(20), default="pending", nullable=False, index=True)
    admin_response = Column(Text, nullable=True)
    reviewed_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    media = relationship(
        "GameMedia",
        back_populates="game_request",
        cascade="all, delete",
        order_by="GameMedia.sort_order",
    )


class UserRequest(Base):
    __tablename__ = "user_requests"

    id = Column(String(36), primary_key=True, default=generate_id)
    request_type = Column(String(30), nullable=False, index=True)
    submitted_by = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    related_game_id = Column(String(36), ForeignKey("games.id", ondelete="SET NULL"), nullable=True)
    appeal_text = Column(Text, nullable=False)

    status = Column(String(20), default="pending", nullable=False, index=True)
    admin_response = Column(Text, nullable=True)
    reviewed_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Tag(Base):
    __tablename__ = "tags"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(80), unique=True, nullable=False)
    category = Column(String(80), nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    games = relationship("Game", secondary="game_tags", back_populates="tags")


class GameTag(Base):
    __tablename__ = "game_tags"
    __table_args__ = (UniqueConstraint("game_id", "tag_id", name="uq_game_tag"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False)
    tag_id = Column(String(36), ForeignKey("tags.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)


class GameMedia(Base):
    __tablename__ = "game_media"

    id = Column(String(36), primary_key=True, default=generate_id)
    game_request_id = Column(
        String(36), ForeignKey("game_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Null until the owning request is approved
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=True, index=True)
    media_type = Column(String(10), nullable=False)
    storage_key = Column(String(500), nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    game_request = relationship("GameRequest", back_populates="media")
    game = relationship("Game", back_populates="media")


class GameReaction(Base):
    __tablename__ = "game_reactions"
    __table_args__ = (UniqueConstraint("user_id", "game_id", name="uq_game_reaction"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    reaction_type = Column(String(10), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="reactions")
    game = relationship("Game", back_populates="reactions")


class GameSuperlike(Base):
    __tablename__ = "game_superlikes"
    __table_args__ = (UniqueConstraint("user_id", "game_id", name="uq_game_superlike"),)

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User", back_populates="superlikes")
    game = relationship("Game", back_populates="superlikes")


class GameView(Base):
    __tablename__ = "game_views"

    id = Column(Integer, primary_key=True, autoincrement=True)
    game_id = Column(String(36), ForeignKey("games.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    ip_hash = Column(String(64), nullable=True)
    fingerprint = Column(String(200), nullable=True)
    user_agent = Column(String(500), nullable=True)
    viewed_at = Column(DateTime, default=datetime.utcnow, index=True)

    game = relationship("Game", back_populates="views")


class AdminAction(Base):
    __tablename__ = "admin_actions"
    __table_args__ = (
        CheckConstraint(
            "game_request_id IS NOT NULL OR user_request_id IS NOT NULL",
            name="ck_admin_action_target",
        ),
    )

    id = Column(String(36), primary_key=True, default=generate_id)
    admin_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    action = Column(String(20), nullable=False)
    game_request_id = Column(String(36), ForeignKey("game_requests.id"), nullable=True, index=True)
    user_request_id = Column(String(36), ForeignKey("user_requests.id"), nullable=True, index=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, index=True)
