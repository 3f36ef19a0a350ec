import logging
import threading

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import OperationalError

from .core.config import CORS_ORIGINS, LOG_LEVEL, SEED_SAMPLE_DATA
from .db import Base, SessionLocal, engine
from .errors import (
    ConflictError,
    DomainError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    QuotaExceededError,
    ResourceExhaustedError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)
from .migrations import ensure_schema
from .routes import admin, game_requests, games, tags, user_requests, users
from .seed import seed_sample_data

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="GameHub API", version="0.1.0")

_BASE_SCHEMA_LOCK = threading.Lock()
_BASE_SCHEMA_READY = False

# Most specific class first; QuotaExceededError must win over ResourceExhaustedError.
_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (UnauthorizedError, 401),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (QuotaExceededError, 429),
    (ResourceExhaustedError, 400),
    (InvalidStateError, 400),
    (StorageError, 500),
)


def status_for_error(exc: DomainError) -> int:
    for error_class, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            return status_code
    return 500


def _ensure_base_schema() -> None:
    global _BASE_SCHEMA_READY
    if _BASE_SCHEMA_READY:
        return
    with _BASE_SCHEMA_LOCK:
        if _BASE_SCHEMA_READY:
            return
        try:
            Base.metadata.create_all(bind=engine)
        except OperationalError as exc:
            # SQLite schema init may race when several workers start together.
            if "already exists" not in str(exc).lower():
                raise
        _BASE_SCHEMA_READY = True


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    status_code = status_for_error(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    elif status_code in (401, 403):
        logger.warning("%s %s denied: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg") or "Invalid request"
    return JSONResponse(
        status_code=400,
        content={
            "error": ValidationError.default_code,
            "detail": f"{location}: {message}" if location else message,
            "details": {
                "errors": [
                    {"loc": [str(part) for part in item.get("loc", ())], "msg": item.get("msg"), "type": item.get("type")}
                    for item in errors
                ]
            },
        },
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "detail": "Internal server error", "details": {}},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.on_event("startup")
def on_startup() -> None:
    _ensure_base_schema()
    applied = ensure_schema()
    if applied:
        logger.info("Applied %d schema upgrade statements", len(applied))

    if SEED_SAMPLE_DATA:
        db = SessionLocal()
        try:
            if seed_sample_data(db):
                logger.info("Sample data seeded")
        finally:
            db.close()


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.head("/health")
def health_check_head():
    return Response(status_code=200)


app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(games.router, prefix="/games", tags=["games"])
app.include_router(game_requests.router, prefix="/game-requests", tags=["game-requests"])
app.include_router(user_requests.router, prefix="/user-requests", tags=["user-requests"])
app.include_router(admin.router, prefix="/admin", tags=["admin"])
app.include_router(tags.router, prefix="/tags", tags=["tags"])
