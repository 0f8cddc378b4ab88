from __future__ import annotations
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, JSON, UniqueConstraint
from lessonly.db import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OwnedRowMixin:
    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(128), index=True, nullable=False)
    # Editable fields as submitted; validated into the mode's record type on read
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class LessonPlanRow(OwnedRowMixin, Base):
    __tablename__ = "lesson_plans"
    # teacher | extended | student
    mode = Column(String(16), index=True, nullable=False)
    subject = Column(String(128), nullable=True)
    topic = Column(String(256), nullable=True)


class TutorLessonPlanRow(OwnedRowMixin, Base):
    __tablename__ = "tutor_lesson_plans"
    subject = Column(String(128), nullable=True)
    topic = Column(String(256), nullable=True)
    student_id = Column(String(36), nullable=True)


class TeacherStudentProfileRow(OwnedRowMixin, Base):
    __tablename__ = "teacher_student_profiles"


class TutorStudentProfileRow(OwnedRowMixin, Base):
    __tablename__ = "student_profiles"


class ClassRow(Base):
    __tablename__ = "classes"
    __table_args__ = (UniqueConstraint("owner_id", "class_name", name="uq_classes_owner_name"),)
    id = Column(String(36), primary_key=True, default=_uuid)
    owner_id = Column(String(128), index=True, nullable=False)
    class_name = Column(String(64), nullable=False)
    year_group = Column(String(32), nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)
