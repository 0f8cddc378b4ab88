import json
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from lessonly.models.stage import Stage

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    TEACHER = "teacher"
    EXTENDED = "extended"
    TUTOR = "tutor"
    STUDENT = "student"


# Persisted metadata; never part of the editable payload
META_FIELDS = {"id", "owner_id", "created_at", "updated_at"}


class Resource(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = Field(default="", validation_alias=AliasChoices("title", "name"))
    url: str = ""

    @field_validator("title", "url", mode="before")
    @classmethod
    def _blank_if_missing(cls, v):
        return "" if v is None else str(v)


def parse_resources(value: Any) -> List[Any]:
    """Accept a list, a JSON-encoded list or nothing; anything else is []."""
    if not value:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Discarding resources that are not valid JSON")
            return []
    if not isinstance(value, list):
        return []
    return [r for r in value if isinstance(r, (dict, Resource))]


def parse_structure(value: Any) -> List[Any]:
    """Coerce a stored lesson_structure to a list of stage-like dicts."""
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Discarding lesson_structure that is not valid JSON")
            return []
    if not isinstance(value, list):
        return []
    return [s for s in value if isinstance(s, (dict, Stage))]


class LessonRecord(BaseModel):
    """Fields shared by every lesson/session record. All optional on load."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    owner_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    subject: Optional[str] = None
    topic: Optional[str] = None
    date_of_lesson: Optional[str] = None
    time_of_lesson: Optional[str] = None
    objectives: Optional[str] = None
    outcomes: Optional[str] = None
    homework: Optional[str] = None
    evaluation: Optional[str] = None
    notes: Optional[str] = None
    resources: List[Resource] = Field(default_factory=list)
    lesson_structure: List[Stage] = Field(default_factory=list)
    created_with_ai: bool = False

    @field_validator("resources", mode="before")
    @classmethod
    def _coerce_resources(cls, v):
        return parse_resources(v)

    @field_validator("lesson_structure", mode="before")
    @classmethod
    def _coerce_structure(cls, v):
        return parse_structure(v)

    @field_validator("created_with_ai", mode="before")
    @classmethod
    def _coerce_flag(cls, v):
        return bool(v)

    def payload(self) -> Dict[str, Any]:
        """Editable fields in wire form, ready to persist."""
        return self.model_dump(by_alias=True, exclude=META_FIELDS)


class TeacherLessonPlan(LessonRecord):
    class_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("class", "class_name"),
        serialization_alias="class",
    )
    year_group: Optional[str] = None
    exam_board: Optional[str] = None
    custom_exam_board: Optional[str] = None


class ExtendedLessonPlan(TeacherLessonPlan):
    specialist_subject_knowledge_required: Optional[str] = None
    knowledge_revisited: Optional[str] = None
    numeracy_opportunities: Optional[str] = None
    literacy_opportunities: Optional[str] = None
    subject_pedagogies: Optional[str] = None
    health_and_safety_considerations: Optional[str] = None


class StudentLessonPlan(ExtendedLessonPlan):
    # The student-facing form stores the detailed plan structure
    pass


class TutorLessonPlan(LessonRecord):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    student_id: Optional[str] = None

    @property
    def student_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()


PEDAGOGY_FIELDS = (
    "specialist_subject_knowledge_required",
    "knowledge_revisited",
    "numeracy_opportunities",
    "literacy_opportunities",
    "subject_pedagogies",
    "health_and_safety_considerations",
)

RECORD_TYPES: Dict[Mode, Type[LessonRecord]] = {
    Mode.TEACHER: TeacherLessonPlan,
    Mode.EXTENDED: ExtendedLessonPlan,
    Mode.STUDENT: StudentLessonPlan,
    Mode.TUTOR: TutorLessonPlan,
}


def record_type_for(mode: Mode) -> Type[LessonRecord]:
    return RECORD_TYPES[Mode(mode)]
