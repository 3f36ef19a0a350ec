import os
from pathlib import Path


def _load_env_file(path: Path) -> None:
    if not path.exists():
        return
    try:
        for line in path.read_text(encoding="utf-8").splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or "=" not in stripped:
                continue
            key, value = stripped.split("=", 1)
            key = key.strip()
            if not key or key in os.environ:
                continue
            cleaned = value.strip().strip('"').strip("'")
            os.environ[key] = cleaned
    except OSError:
        return


def _load_env() -> None:
    current = Path(__file__).resolve()
    for candidate in (current.parents[2] / ".env", Path.cwd() / ".env"):
        _load_env_file(candidate)


_load_env()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _default_database_url() -> str:
    explicit_path = os.getenv("GAMEHUB_DB_PATH", "").strip()
    if explicit_path:
        return f"sqlite:///{Path(explicit_path).as_posix()}"
    backend_root = Path(__file__).resolve().parents[2]
    return f"sqlite:///{(backend_root / 'gamehub.db').as_posix()}"


def _normalize_cors(origins: str) -> list[str]:
    items: list[str] = []
    for raw in origins.split(","):
        value = raw.strip()
        if value and value not in items:
            items.append(value)
    return items


DATABASE_URL = os.getenv("DATABASE_URL", _default_database_url())
SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-prod")
ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session_id")

DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
DB_MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
DB_POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "3600"))

_DEFAULT_CORS_ORIGINS = "http://localhost:5173,http://127.0.0.1:5173"
CORS_ORIGINS = _normalize_cors(os.getenv("CORS_ORIGINS", _DEFAULT_CORS_ORIGINS))

LOG_LEVEL = os.getenv("GAMEHUB_LOG_LEVEL", "INFO").strip().upper() or "INFO"
SEED_SAMPLE_DATA = _env_flag("SEED_SAMPLE_DATA")

# Moderation and counter policy
MAX_PENDING_NEW_GAMES = int(os.getenv("GAMEHUB_MAX_PENDING_NEW_GAMES", "3"))
DEFAULT_SUPERLIKES = int(os.getenv("GAMEHUB_DEFAULT_SUPERLIKES", "3"))
TITLE_MAX_LENGTH = int(os.getenv("GAMEHUB_TITLE_MAX_LENGTH", "100"))
URL_MAX_LENGTH = int(os.getenv("GAMEHUB_URL_MAX_LENGTH", "500"))
DESCRIPTION_MAX_LENGTH = int(os.getenv("GAMEHUB_DESCRIPTION_MAX_LENGTH", "5000"))
APPEAL_TEXT_MAX_LENGTH = int(os.getenv("GAMEHUB_APPEAL_TEXT_MAX_LENGTH", "2000"))
ADMIN_PAGE_SIZE = int(os.getenv("GAMEHUB_ADMIN_PAGE_SIZE", "20"))
ALLOW_REACTIONS_ON_INACTIVE_GAMES = _env_flag("GAMEHUB_ALLOW_REACTIONS_ON_INACTIVE_GAMES")
VIEW_HASH_SALT = os.getenv("GAMEHUB_VIEW_HASH_SALT", SECRET_KEY)
USER_AGENT_MAX_LENGTH = 500
