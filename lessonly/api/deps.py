import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from lessonly.core.config import DEFAULT_MODE
from lessonly.db import get_db
from lessonly.models.lesson import Mode
from lessonly.services.lesson_generator import LessonGenerator, get_lesson_generator
from lessonly.services.repository import ClassRepository, LessonRepository, ProfileRepository

logger = logging.getLogger(__name__)


def get_lesson_repository(db: Session = Depends(get_db)) -> LessonRepository:
    return LessonRepository(db)


def get_profile_repository(db: Session = Depends(get_db)) -> ProfileRepository:
    return ProfileRepository(db)


def get_class_repository(db: Session = Depends(get_db)) -> ClassRepository:
    return ClassRepository(db)


def get_generator() -> LessonGenerator:
    return get_lesson_generator()


def get_default_mode() -> Mode:
    """Mode the dashboard opens in; unknown values fall back to teacher."""
    try:
        return Mode((DEFAULT_MODE or "").strip().lower())
    except ValueError:
        logger.warning("Unknown DEFAULT_MODE %r; using teacher", DEFAULT_MODE)
        return Mode.TEACHER
