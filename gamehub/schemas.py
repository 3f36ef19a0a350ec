from typing import List, Optional
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field


class UserOut(BaseModel):
    id: str
    email: EmailStr
    name: str
    avatar_url: Optional[str] = None
    role: str
    superlikes_remaining: int
    profile_completed_at: Optional[datetime] = None
    is_active: bool
    deactivated_at: Optional[datetime] = None
    deactivation_reason: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserPublicOut(BaseModel):
    id: str
    name: str
    avatar_url: Optional[str] = None

    class Config:
        from_attributes = True


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    avatar_url: Optional[str] = Field(None, max_length=500)


class TagOut(BaseModel):
    id: str
    name: str
    category: Optional[str] = None

    class Config:
        from_attributes = True


class TagCreate(BaseModel):
    name: str
    category: Optional[str] = None


class MediaIn(BaseModel):
    storage_key: str
    media_type: str
    sort_order: int = 0


class MediaOut(BaseModel):
    id: str
    storage_key: str
    media_type: str
    sort_order: int

    class Config:
        from_attributes = True


class GameOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    game_url: str
    created_by: str
    count_likes: int
    count_dislikes: int
    count_superlikes: int
    score: int
    view_count: int
    cover_media_id: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    tags: List[TagOut] = []
    media: List[MediaOut] = []

    class Config:
        from_attributes = True


class GameListOut(BaseModel):
    items: List[GameOut]
    total: int
    page: int
    limit: int
    total_pages: int


class GameRequestIn(BaseModel):
    title: Optional[str] = None
    game_url: Optional[str] = None
    description: Optional[str] = None
    tag_ids: List[str] = []
    media: List[MediaIn] = []


class GameModificationIn(GameRequestIn):
    game_id: str
    note: Optional[str] = None


class GameAppealIn(BaseModel):
    game_id: str
    note: Optional[str] = None


class GameRequestOut(BaseModel):
    id: str
    request_type: str
    game_id: Optional[str] = None
    submitted_by: str
    title: str
    description: Optional[str] = None
    game_url: str
    tag_ids: Optional[List[str]] = None
    submitter_note: Optional[str] = None
    status: str
    admin_response: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    media: List[MediaOut] = []

    class Config:
        from_attributes = True


class UserRequestIn(BaseModel):
    request_type: Optional[str] = None
    appeal_text: Optional[str] = None
    related_game_id: Optional[str] = None


class UserRequestOut(BaseModel):
    id: str
    request_type: str
    submitted_by: str
    related_game_id: Optional[str] = None
    appeal_text: str
    status: str
    admin_response: Optional[str] = None
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PendingGameRequestsOut(BaseModel):
    items: List[GameRequestOut]
    total: int
    page: int
    page_size: int


class PendingUserRequestsOut(BaseModel):
    items: List[UserRequestOut]
    total: int
    page: int
    page_size: int


class ReviewIn(BaseModel):
    admin_response: Optional[str] = None


class DeactivateIn(BaseModel):
    reason: Optional[str] = None


class ReactionIn(BaseModel):
    type: Optional[str] = None


class ReactionOut(BaseModel):
    action: str
    reaction: Optional[str] = None
    count_likes: int
    count_dislikes: int
    score: int

    class Config:
        from_attributes = True


class ReactionStateOut(BaseModel):
    game_id: str
    reaction: Optional[str] = None
    superliked: bool = False


class SuperlikeOut(BaseModel):
    game_id: str
    count_superlikes: int
    superlikes_remaining: int

    class Config:
        from_attributes = True


class ViewIn(BaseModel):
    fingerprint: Optional[str] = None


class ViewOut(BaseModel):
    game_id: str
    view_count: int

    class Config:
        from_attributes = True


class AdminActionOut(BaseModel):
    id: str
    admin_id: str
    action: str
    game_request_id: Optional[str] = None
    user_request_id: Optional[str] = None
    note: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AdminActionListOut(BaseModel):
    items: List[AdminActionOut]
    total: int
    limit: int
    offset: int
