"""
Per-mode lesson form state.

A LessonForm holds one draft lesson plan (or tutoring session) together with
its stage list editor, and drives it through load, field edits, validation,
save and AI draft generation. The four modes differ only in their FormConfig.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from lessonly.models.lesson import (
    META_FIELDS,
    PEDAGOGY_FIELDS,
    LessonRecord,
    Mode,
    parse_structure,
    record_type_for,
)
from lessonly.models.profile import ProfileKind, TutorStudentProfile
from lessonly.services.lesson_generator import (
    GenerationRequest,
    GenerationResponse,
    LessonGenerationError,
    PlanType,
)
from lessonly.services.repository import PersistenceError
from lessonly.services.stage_list import StageListEditor, StageListOptions
from lessonly.services.validation import (
    TEACHER_REQUIRED,
    TUTOR_REQUIRED,
    resolve_exam_board,
    validate,
    validate_for_generation,
)
from lessonly.utils.bullets import BULLET_FIELDS, ensure_bullet_prefix
from lessonly.utils.text_format import format_as_bullet_points, format_record_for_create

logger = logging.getLogger(__name__)


class FormBusyError(RuntimeError):
    """Raised when save and generate overlap on the same form."""


class FormStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    VALIDATING = "validating"
    INVALID = "invalid"
    SAVING = "saving"
    SAVED = "saved"
    SAVE_FAILED = "save_failed"
    GENERATING = "generating"
    GENERATED_MERGED = "generated_merged"
    GENERATION_FAILED = "generation_failed"


@dataclass(frozen=True)
class FieldSchema:
    name: str
    required: bool = False
    bullet: bool = False
    multiline: bool = False


@dataclass(frozen=True)
class FormConfig:
    mode: Mode
    plan_type: PlanType
    fields: Tuple[FieldSchema, ...]
    # stage settings of the edit form; new-record forms remove without renumbering and rename freely
    stage_renumbering: bool = True
    enforce_stage_prefix: bool = False
    capitalize_on_create: bool = True

    def stage_options(self, new_record: bool = False) -> StageListOptions:
        if new_record:
            return StageListOptions(renumber=False, enforce_stage_prefix=False)
        return StageListOptions(renumber=self.stage_renumbering, enforce_stage_prefix=self.enforce_stage_prefix)

    @property
    def bullet_fields(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.bullet)

    @property
    def required_fields(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.required)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "plan_type": self.plan_type.value,
            "fields": [vars(f) for f in self.fields],
            "stage_renumbering": self.stage_renumbering,
            "enforce_stage_prefix": self.enforce_stage_prefix,
            "capitalize_on_create": self.capitalize_on_create,
        }


def _schema(names, required_names, prose: bool = False) -> List[FieldSchema]:
    return [
        FieldSchema(n, required=n in required_names, bullet=prose and n in BULLET_FIELDS, multiline=prose)
        for n in names
    ]


# "required" mirrors the save-time checks in services.validation
_TEACHER_REQUIRED = {name for name, _ in TEACHER_REQUIRED}
_TUTOR_REQUIRED = {name for name, _ in TUTOR_REQUIRED}

_PROSE = ("objectives", "outcomes", "homework", "evaluation", "notes")

_TEACHER_FIELDS = tuple(
    _schema(
        ("class_name", "year_group", "date_of_lesson", "time_of_lesson", "topic", "subject",
         "exam_board", "custom_exam_board"),
        _TEACHER_REQUIRED,
    )
    + _schema(_PROSE, _TEACHER_REQUIRED, prose=True)
)

_EXTENDED_FIELDS = _TEACHER_FIELDS + tuple(_schema(PEDAGOGY_FIELDS, _TEACHER_REQUIRED, prose=True))

_TUTOR_FIELDS = tuple(
    _schema(
        ("first_name", "last_name", "student_id", "date_of_lesson", "time_of_lesson", "topic", "subject"),
        _TUTOR_REQUIRED,
    )
    + _schema(_PROSE, _TUTOR_REQUIRED, prose=True)
)

FORM_CONFIGS: Dict[Mode, FormConfig] = {
    Mode.TEACHER: FormConfig(Mode.TEACHER, PlanType.STANDARD, _TEACHER_FIELDS),
    Mode.EXTENDED: FormConfig(Mode.EXTENDED, PlanType.DETAILED, _EXTENDED_FIELDS, enforce_stage_prefix=True),
    # the student form asks for the detailed plan structure and never renumbers
    Mode.STUDENT: FormConfig(Mode.STUDENT, PlanType.DETAILED, _EXTENDED_FIELDS, stage_renumbering=False),
    Mode.TUTOR: FormConfig(
        Mode.TUTOR, PlanType.TUTOR, _TUTOR_FIELDS, enforce_stage_prefix=True, capitalize_on_create=False
    ),
}


# Prose fields the model may fill in on a draft
GENERATED_TEXT_FIELDS = ("objectives", "outcomes", "homework", "evaluation", "notes") + PEDAGOGY_FIELDS

WIRE_NAMES = {"class": "class_name"}


@dataclass
class LessonForm:
    config: FormConfig
    repository: Any
    generator: Any
    owner_id: str
    record_id: Optional[str] = None
    # needed on create: teacher modes register the class, tutor mode the student
    classes: Any = None
    profiles: Any = None

    status: FormStatus = field(init=False)
    record: LessonRecord = field(init=False)
    editor: StageListEditor = field(init=False)
    errors: Dict[str, str] = field(init=False, default_factory=dict)
    error: Optional[str] = field(init=False, default=None)
    history: List[FormStatus] = field(init=False, default_factory=list)
    _busy: Optional[str] = field(init=False, default=None, repr=False)

    def __post_init__(self):
        self.record = self.record_type()
        self.editor = StageListEditor(options=self.config.stage_options(new_record=self.record_id is None))
        self._set_status(FormStatus.READY if self.record_id is None else FormStatus.LOADING)

    @property
    def mode(self) -> Mode:
        return self.config.mode

    def record_type(self, **data):
        return record_type_for(self.mode).model_validate(data)

    def _set_status(self, status: FormStatus) -> None:
        self.status = status
        self.history.append(status)

    def _settle(self, status: FormStatus, message: Optional[str] = None) -> None:
        """Pass through a failure status and come back to READY."""
        self._set_status(status)
        if message is not None:
            self.error = message
        self._set_status(FormStatus.READY)

    def _claim(self, action: str) -> None:
        if self._busy is not None:
            raise FormBusyError(f"Cannot {action} while {self._busy} is in progress")
        self._busy = action

    # -------------------------
    # Loading
    # -------------------------
    async def load(self) -> LessonRecord:
        """
        Fetch the stored record into the form.

        The form is READY afterwards either way; on failure ``error`` holds the
        message and the repository exception is re-raised for the caller.
        """
        if self.record_id is None:
            return self.record
        if self.status is not FormStatus.LOADING:
            self._set_status(FormStatus.LOADING)

        try:
            data = await self.repository.get(self.owner_id, self.mode, self.record_id)
        except PersistenceError as e:
            self.error = str(e)
            self._set_status(FormStatus.READY)
            raise

        try:
            self.record = self.record_type(**data)
        except ValidationError as e:
            logger.warning("Stored %s plan %s does not match its record type: %s", self.mode.value, self.record_id, e)
            self.error = "This lesson plan could not be read."
            self._set_status(FormStatus.READY)
            return self.record

        self.editor.replace(self.record.lesson_structure)
        self.error = None
        self._set_status(FormStatus.READY)
        return self.record

    # -------------------------
    # Editing
    # -------------------------
    def update_field(self, name: str, value: Any) -> LessonRecord:
        fields = type(self.record).model_fields
        if name not in fields or name in META_FIELDS or name == "lesson_structure":
            raise ValueError(f"'{name}' is not an editable field of a {self.mode.value} plan")
        if name in self.config.bullet_fields:
            value = ensure_bullet_prefix(value)

        self.record = self.record_type(**{**self.record.model_dump(), name: value})
        self.errors.pop(name, None)
        return self.record

    def update_fields(self, values: Dict[str, Any]) -> LessonRecord:
        for name, value in values.items():
            name = WIRE_NAMES.get(name, name)
            if name == "lesson_structure":
                self.editor.replace(parse_structure(value))
            elif name in META_FIELDS or name not in type(self.record).model_fields:
                continue
            else:
                self.update_field(name, value)
        return self.record

    def add_stage(self):
        return self.editor.add()

    def remove_stage(self, index: int):
        return self.editor.remove(index)

    def clear_stage(self, index: int):
        return self.editor.clear(index)

    def rename_stage(self, index: int, new_name: str):
        return self.editor.rename(index, new_name)

    def edit_stage(self, index: int, field_name: str, value: str):
        return self.editor.edit(index, field_name, value)

    def draft(self) -> LessonRecord:
        """The record as it would be saved right now."""
        return self.record.model_copy(update={"lesson_structure": list(self.editor.stages)})

    def to_dict(self) -> Dict[str, Any]:
        return self.draft().model_dump(by_alias=True)

    # -------------------------
    # Saving
    # -------------------------
    async def save(self) -> bool:
        self._claim("save")
        try:
            self._set_status(FormStatus.VALIDATING)
            record = self.draft()
            errors = validate(self.mode, record)
            if errors:
                self.errors = errors
                self._settle(FormStatus.INVALID)
                return False

            self.errors = {}
            self.error = None
            self._set_status(FormStatus.SAVING)
            try:
                if self.record_id is None:
                    saved = await self._create(record)
                else:
                    saved = await self.repository.update(self.owner_id, self.mode, self.record_id, record.payload())
            except PersistenceError as e:
                logger.error("Saving %s plan failed: %s", self.mode.value, e)
                self._settle(FormStatus.SAVE_FAILED, str(e))
                return False

            self.record_id = saved["id"]
            self.record = self.record_type(**saved)
            self.editor.replace(self.record.lesson_structure)
            self._set_status(FormStatus.SAVED)
            logger.info("Saved %s plan %s", self.mode.value, self.record_id)
            return True
        finally:
            self._busy = None

    async def _create(self, record: LessonRecord) -> Dict[str, Any]:
        if self.config.capitalize_on_create:
            record = format_record_for_create(record)
        if self.mode is not Mode.TUTOR:
            # stored board: None below GCSE, the custom name for "Other"
            record = record.model_copy(update={"exam_board": resolve_exam_board(record)})

        if self.mode is Mode.TUTOR:
            if self.profiles is not None and not record.student_id:
                profile = TutorStudentProfile(first_name=record.first_name, last_name=record.last_name)
                created = await self.profiles.create(self.owner_id, ProfileKind.TUTOR, profile.payload())
                record = record.model_copy(update={"student_id": created["id"]})
        elif self.classes is not None and record.class_name:
            await self.classes.ensure_class(self.owner_id, record.class_name, record.year_group)

        return await self.repository.create(self.owner_id, self.mode, record.payload())

    # -------------------------
    # AI draft generation
    # -------------------------
    def generation_request(self) -> GenerationRequest:
        record = self.draft()
        data = {
            "plan_type": self.config.plan_type,
            "topic": record.topic or "",
            "subject": record.subject or "",
            "objectives": record.objectives,
            "outcomes": record.outcomes,
        }
        if self.mode is Mode.TUTOR:
            data["student_name"] = record.student_name or None
        else:
            data.update(
                class_name=record.class_name,
                year_group=record.year_group,
                exam_board=resolve_exam_board(record),
            )
            for name in PEDAGOGY_FIELDS:
                if name in type(record).model_fields:
                    data[name] = getattr(record, name)
        return GenerationRequest(**data)

    async def generate(self) -> bool:
        self._claim("generate")
        try:
            self._set_status(FormStatus.VALIDATING)
            errors = validate_for_generation(self.mode, self.draft())
            if errors:
                self.errors = errors
                self._settle(FormStatus.INVALID)
                return False

            self.errors = {}
            self.error = None
            self._set_status(FormStatus.GENERATING)
            try:
                response = await self.generator.generate(self.generation_request())
            except LessonGenerationError as e:
                self._settle(FormStatus.GENERATION_FAILED, str(e))
                return False
            except Exception:
                logger.exception("Lesson generation failed")
                self._settle(FormStatus.GENERATION_FAILED, "Failed to generate lesson plan. Please try again.")
                return False

            self._merge(response)
            self._set_status(FormStatus.GENERATED_MERGED)
            logger.info("Merged generated draft into %s plan", self.mode.value)
            return True
        finally:
            self._busy = None

    def _merge(self, response: GenerationResponse) -> None:
        fields = type(self.record).model_fields
        update = {
            name: format_as_bullet_points(getattr(response, name))
            for name in GENERATED_TEXT_FIELDS
            if name in fields and response.provided(name)
        }
        if isinstance(response.resources, list):
            update["resources"] = response.resources
        update["created_with_ai"] = True

        self.record = self.record_type(**{**self.record.model_dump(), **update})
        if isinstance(response.lesson_structure, list):
            self.editor.replace(response.lesson_structure)


def new_form(
    mode: Mode,
    repository,
    generator,
    owner_id: str,
    record_id: Optional[str] = None,
    classes=None,
    profiles=None,
) -> LessonForm:
    return LessonForm(
        FORM_CONFIGS[Mode(mode)],
        repository,
        generator,
        owner_id,
        record_id=record_id,
        classes=classes,
        profiles=profiles,
    )
