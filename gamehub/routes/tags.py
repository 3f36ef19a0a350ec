import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import User
from ..schemas import GameOut, TagCreate, TagOut
from ..services import catalog
from .deps import require_admin_user

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("", response_model=List[TagOut])
def list_tags(db: Session = Depends(get_db)):
    return catalog.list_tags(db)


@router.post("", response_model=TagOut, status_code=status.HTTP_201_CREATED)
def create_tag(
    payload: TagCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin_user),
):
    tag = catalog.create_tag(db, admin, name=payload.name, category=payload.category)
    logger.info("Admin %s created tag %s", admin.id, tag.name)
    return tag


@router.get("/{tag_id}/games", response_model=List[GameOut])
def games_for_tag(tag_id: str, db: Session = Depends(get_db)):
    return catalog.list_games_for_tag(db, tag_id)
