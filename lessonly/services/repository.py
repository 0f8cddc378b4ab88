"""
Owner-scoped persistence for lesson plans, student profiles and classes.

Every read and write is filtered by owner id; a record belonging to someone
else is indistinguishable from a missing one. Failures surface as
PersistenceError carrying a message.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lessonly.models.lesson import Mode
from lessonly.models.profile import ClassGroup, ProfileKind
from lessonly.models.tables import (
    ClassRow,
    LessonPlanRow,
    TeacherStudentProfileRow,
    TutorLessonPlanRow,
    TutorStudentProfileRow,
)

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    pass


class RecordNotFound(PersistenceError):
    pass


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class _OwnedRowRepository:
    """Shared CRUD over tables that store a JSON payload per owner."""

    label = "record"

    def __init__(self, db: Session):
        self.db = db

    # subclasses map their key (mode/kind) to a table and extra columns
    def _model(self, key):
        raise NotImplementedError

    def _scope(self, key) -> Dict[str, Any]:
        return {}

    def _columns(self, key, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    def _to_dict(self, row) -> Dict[str, Any]:
        return {
            **(row.payload or {}),
            "id": row.id,
            "owner_id": row.owner_id,
            "created_at": _iso(row.created_at),
            "updated_at": _iso(row.updated_at),
        }

    def _select(self, owner_id: str, key):
        model = self._model(key)
        stmt = select(model).where(model.owner_id == owner_id)
        for column, value in self._scope(key).items():
            stmt = stmt.where(getattr(model, column) == value)
        return model, stmt

    def _row(self, owner_id: str, key, record_id: str):
        model, stmt = self._select(owner_id, key)
        row = self.db.execute(stmt.where(model.id == record_id)).scalar_one_or_none()
        if row is None:
            raise RecordNotFound(f"{self.label.capitalize()} {record_id} not found")
        return row

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Database write failed")
            raise PersistenceError(f"Could not save {self.label}: {e}") from e

    async def create(self, owner_id: str, key, payload: Dict[str, Any]) -> Dict[str, Any]:
        model = self._model(key)
        row = model(
            owner_id=owner_id,
            payload=dict(payload),
            **self._scope(key),
            **self._columns(key, payload),
        )
        self.db.add(row)
        self._commit()
        self.db.refresh(row)
        logger.info("Created %s %s for owner %s", self.label, row.id, owner_id)
        return self._to_dict(row)

    async def get(self, owner_id: str, key, record_id: str) -> Dict[str, Any]:
        return self._to_dict(self._row(owner_id, key, record_id))

    async def update(self, owner_id: str, key, record_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        row = self._row(owner_id, key, record_id)
        row.payload = dict(payload)
        for column, value in self._columns(key, payload).items():
            setattr(row, column, value)
        self._commit()
        self.db.refresh(row)
        return self._to_dict(row)

    async def delete(self, owner_id: str, key, record_id: str) -> None:
        row = self._row(owner_id, key, record_id)
        self.db.delete(row)
        self._commit()
        logger.info("Deleted %s %s for owner %s", self.label, record_id, owner_id)

    async def list(
        self, owner_id: str, key, limit: int = 50, offset: int = 0, **filters: Optional[str]
    ) -> Tuple[List[Dict[str, Any]], int]:
        model, stmt = self._select(owner_id, key)
        for column, value in filters.items():
            if value:
                stmt = stmt.where(func.lower(getattr(model, column)).contains(value.lower()))
        total = self.db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one()
        rows = self.db.execute(
            stmt.order_by(model.updated_at.desc()).limit(limit).offset(offset)
        ).scalars().all()
        return [self._to_dict(r) for r in rows], total


class LessonRepository(_OwnedRowRepository):
    label = "lesson plan"

    def _model(self, mode):
        return TutorLessonPlanRow if Mode(mode) is Mode.TUTOR else LessonPlanRow

    def _scope(self, mode):
        mode = Mode(mode)
        return {} if mode is Mode.TUTOR else {"mode": mode.value}

    def _columns(self, mode, payload):
        columns = {"subject": payload.get("subject"), "topic": payload.get("topic")}
        if Mode(mode) is Mode.TUTOR:
            columns["student_id"] = payload.get("student_id")
        return columns


class ProfileRepository(_OwnedRowRepository):
    label = "student profile"

    def _model(self, kind):
        return TutorStudentProfileRow if ProfileKind(kind) is ProfileKind.TUTOR else TeacherStudentProfileRow


class ClassRepository:
    def __init__(self, db: Session):
        self.db = db

    async def ensure_class(self, owner_id: str, class_name: str, year_group: Optional[str] = None) -> ClassGroup:
        """Return the owner's class with this name, creating it when missing."""
        row = self.db.execute(
            select(ClassRow).where(ClassRow.owner_id == owner_id, ClassRow.class_name == class_name)
        ).scalar_one_or_none()
        if row is None:
            row = ClassRow(owner_id=owner_id, class_name=class_name, year_group=year_group)
            self.db.add(row)
            try:
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception("Could not create class %s", class_name)
                raise PersistenceError(f"Could not save class: {e}") from e
            self.db.refresh(row)
            logger.info("Created class %s for owner %s", class_name, owner_id)
        return self._to_model(row)

    async def list(self, owner_id: str) -> List[ClassGroup]:
        rows = self.db.execute(
            select(ClassRow).where(ClassRow.owner_id == owner_id).order_by(ClassRow.class_name.asc())
        ).scalars().all()
        return [self._to_model(r) for r in rows]

    @staticmethod
    def _to_model(row: ClassRow) -> ClassGroup:
        return ClassGroup(
            id=row.id,
            owner_id=row.owner_id,
            class_name=row.class_name,
            year_group=row.year_group,
            created_at=_iso(row.created_at),
            updated_at=_iso(row.updated_at),
        )
