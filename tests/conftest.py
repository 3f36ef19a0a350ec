"""
Shared fixtures for the gamehub test suite.

Every test gets its own file backed SQLite database (threads in the
concurrency tests need a database they can all open), a session bound to
it, small factories for users, games and tags, and a ``TestClient`` whose
``get_db`` dependency is routed to the same database.
"""

import itertools
import os
import tempfile
from datetime import datetime

# Configure before gamehub.core.config is imported anywhere.
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault(
    "DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.gettempdir(), 'gamehub-test-default.db')}",
)
os.environ.setdefault("GAMEHUB_LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from gamehub.core.security import create_access_token
from gamehub.db import Base, build_engine, get_db
from gamehub.main import app
from gamehub.models import Game, Tag, User


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{(tmp_path / 'gamehub.db').as_posix()}")
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(
        *,
        role="normal",
        is_active=True,
        superlikes=3,
        profile_complete=True,
        name=None,
    ):
        n = next(counter)
        user = User(
            google_id=f"google-{n}",
            email=f"user{n}@example.com",
            name=name or f"User {n}",
            role=role,
            superlikes_remaining=superlikes,
            is_active=is_active,
            profile_completed_at=datetime.utcnow() if profile_complete else None,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def user(make_user):
    return make_user(name="Player One")


@pytest.fixture
def other_user(make_user):
    return make_user(name="Player Two")


@pytest.fixture
def admin(make_user):
    return make_user(role="admin", name="Admin")


@pytest.fixture
def make_game(db):
    counter = itertools.count(1)

    def _make(creator, *, title=None, game_url=None, is_active=True, likes=0, dislikes=0):
        n = next(counter)
        game = Game(
            title=title or f"Game {n}",
            description=f"Description {n}",
            game_url=game_url or f"https://games.example.com/{n}",
            created_by=creator.id,
            count_likes=likes,
            count_dislikes=dislikes,
            score=likes - dislikes,
            is_active=is_active,
        )
        db.add(game)
        db.commit()
        db.refresh(game)
        return game

    return _make


@pytest.fixture
def game(make_game, user):
    return make_game(user, title="Starter Game")


@pytest.fixture
def make_tag(db, admin):
    def _make(name, category="genre"):
        tag = Tag(name=name, category=category, created_by=admin.id)
        db.add(tag)
        db.commit()
        db.refresh(tag)
        return tag

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture
def client(session_factory):
    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
