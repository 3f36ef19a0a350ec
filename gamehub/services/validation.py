from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
from urllib.parse import urlparse

import bleach

from ..core.config import (
    APPEAL_TEXT_MAX_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    URL_MAX_LENGTH,
)
from ..errors import ValidationError

MEDIA_TYPES = {"image", "video"}
_URL_SCHEMES = {"http", "https"}


@dataclass
class MediaEntry:
    storage_key: str
    media_type: str
    sort_order: int = 0


@dataclass
class GameSubmission:
    title: str
    game_url: str
    description: Optional[str] = None
    tag_ids: list[str] = field(default_factory=list)
    media: list[MediaEntry] = field(default_factory=list)


def clean_text(value: Any) -> Optional[str]:
    """Trim and strip markup from free text. Empty input becomes None."""
    if value is None:
        return None
    cleaned = bleach.clean(str(value), tags=[], attributes={}, strip=True, strip_comments=True)
    cleaned = cleaned.replace("\r\n", "\n").strip()
    return cleaned or None


def require_text(value: Any, field_name: str, *, max_length: Optional[int] = None) -> str:
    cleaned = clean_text(value)
    if not cleaned:
        raise ValidationError(f"{field_name} is required", field=field_name)
    if max_length is not None and len(cleaned) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters", field=field_name)
    return cleaned


def normalize_title(value: Any) -> str:
    title = str(value or "").strip()
    if not title:
        raise ValidationError("Title is required", field="title")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(f"Title must be at most {TITLE_MAX_LENGTH} characters", field="title")
    return title


def normalize_url(value: Any, field_name: str, label: str = "URL") -> str:
    url = str(value or "").strip()
    if not url:
        raise ValidationError(f"{label} is required", field=field_name)
    if len(url) > URL_MAX_LENGTH:
        raise ValidationError(f"{label} must be at most {URL_MAX_LENGTH} characters", field=field_name)
    parsed = urlparse(url)
    if parsed.scheme.lower() not in _URL_SCHEMES or not parsed.netloc:
        raise ValidationError(f"{label} must be an http(s) URL", field=field_name)
    return url


def normalize_game_url(value: Any) -> str:
    return normalize_url(value, "game_url", "Game URL")


def normalize_description(value: Any) -> Optional[str]:
    description = clean_text(value)
    if description and len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            f"Description must be at most {DESCRIPTION_MAX_LENGTH} characters",
            field="description",
        )
    return description


def normalize_appeal_text(value: Any) -> str:
    return require_text(value, "appeal_text", max_length=APPEAL_TEXT_MAX_LENGTH)


def normalize_ids(values: Optional[Iterable[Any]]) -> list[str]:
    normalized: list[str] = []
    for value in values or []:
        cleaned = str(value or "").strip()
        if cleaned and cleaned not in normalized:
            normalized.append(cleaned)
    return normalized


def normalize_media(entries: Optional[Iterable[Any]]) -> list[MediaEntry]:
    media: list[MediaEntry] = []
    for entry in entries or []:
        if isinstance(entry, MediaEntry):
            raw = {"storage_key": entry.storage_key, "media_type": entry.media_type, "sort_order": entry.sort_order}
        elif isinstance(entry, dict):
            raw = entry
        else:
            raw = {
                "storage_key": getattr(entry, "storage_key", None),
                "media_type": getattr(entry, "media_type", None),
                "sort_order": getattr(entry, "sort_order", 0),
            }
        storage_key = str(raw.get("storage_key") or "").strip()
        media_type = str(raw.get("media_type") or "").strip().lower()
        if not storage_key:
            raise ValidationError("Media storage key is required", field="media")
        if media_type not in MEDIA_TYPES:
            raise ValidationError("Media type must be image or video", field="media")
        try:
            sort_order = int(raw.get("sort_order") or 0)
        except (TypeError, ValueError):
            raise ValidationError("Media sort order must be an integer", field="media") from None
        media.append(MediaEntry(storage_key=storage_key, media_type=media_type, sort_order=sort_order))
    return media


def validate_game_submission(
    *,
    title: Any,
    game_url: Any,
    description: Any = None,
    tag_ids: Optional[Iterable[Any]] = None,
    media: Optional[Iterable[Any]] = None,
) -> GameSubmission:
    return GameSubmission(
        title=normalize_title(title),
        game_url=normalize_game_url(game_url),
        description=normalize_description(description),
        tag_ids=normalize_ids(tag_ids),
        media=normalize_media(media),
    )


def normalize_choice(value: Any, choices: Iterable[str], field_name: str) -> str:
    cleaned = str(value or "").strip().lower()
    if not cleaned:
        raise ValidationError(f"{field_name} is required", field=field_name)
    allowed = set(choices)
    if cleaned not in allowed:
        supported = ", ".join(sorted(allowed))
        raise ValidationError(f"Invalid {field_name}. Supported: {supported}", field=field_name)
    return cleaned
