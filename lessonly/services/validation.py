import re
from typing import Dict, List, Optional

from lessonly.models.lesson import LessonRecord, Mode, TeacherLessonPlan
from lessonly.models.profile import ProfileKind, StudentProfile
from lessonly.utils.text_format import capitalize_first_letter

GCSE_BOARDS = ["AQA", "OCR", "Edexcel", "WJEC", "Eduqas"]
A_LEVEL_ONLY_BOARDS = ["Cambridge", "IB"]
OTHER_BOARD = "Other"

_YEAR = re.compile(r"Year ")

# (field, message) pairs in the order the forms report them
TEACHER_REQUIRED = [
    ("class_name", "Class is required."),
    ("year_group", "Year group is required."),
    ("date_of_lesson", "Date is required."),
    ("time_of_lesson", "Time is required."),
    ("topic", "Topic is required."),
    ("subject", "Subject is required."),
    ("objectives", "Objectives are required."),
]

TUTOR_REQUIRED = [
    ("first_name", "First Name is required."),
    ("date_of_lesson", "Date is required."),
    ("time_of_lesson", "Time is required."),
    ("topic", "Topic is required."),
    ("subject", "Subject is required."),
    ("objectives", "Objectives are required."),
]

TEACHER_GENERATION_REQUIRED = [
    ("class_name", "Class is required."),
    ("year_group", "Year group is required."),
    ("topic", "Topic is required."),
    ("subject", "Subject is required."),
]

TUTOR_GENERATION_REQUIRED = [
    ("first_name", "Student first name is required."),
    ("topic", "Topic is required."),
    ("subject", "Subject is required."),
]

PROFILE_REQUIRED = {
    ProfileKind.TEACHER: [
        ("first_name", "First name is required."),
        ("last_name", "Last name is required."),
        ("class_name", "Class is required."),
    ],
    ProfileKind.TUTOR: [
        ("first_name", "First name is required."),
        ("last_name", "Last name is required."),
        ("level", "Level is required."),
    ],
}


def is_empty(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_year_number(year_group: Optional[str]) -> int:
    """Parse "Year 10" to 10; anything unparsable gives 0."""
    if not year_group:
        return 0
    m = re.match(r"\s*([+-]?\d+)", _YEAR.sub("", year_group, count=1))
    return int(m.group(1)) if m else 0


def is_gcse(year_group: Optional[str]) -> bool:
    return 10 <= parse_year_number(year_group) <= 11


def is_a_level(year_group: Optional[str]) -> bool:
    return 12 <= parse_year_number(year_group) <= 13


def exam_board_required(year_group: Optional[str]) -> bool:
    return is_gcse(year_group) or is_a_level(year_group)


def exam_board_options(year_group: Optional[str]) -> List[str]:
    options = []
    if exam_board_required(year_group):
        options += GCSE_BOARDS
    if is_a_level(year_group):
        options += A_LEVEL_ONLY_BOARDS
    return options + [OTHER_BOARD]


def resolve_exam_board(record: TeacherLessonPlan) -> Optional[str]:
    """The board to store: None below GCSE, the custom name for "Other"."""
    if not exam_board_required(record.year_group):
        return None
    if record.exam_board == OTHER_BOARD:
        custom = capitalize_first_letter((record.custom_exam_board or "").strip())
        return custom or "Other (unspecified)"
    return record.exam_board


def _check(record, required) -> Dict[str, str]:
    return {name: message for name, message in required if is_empty(getattr(record, name, None))}


def validate(mode: Mode, record: LessonRecord) -> Dict[str, str]:
    """Field-keyed errors blocking a save. Empty means the record may be saved."""
    if Mode(mode) is Mode.TUTOR:
        return _check(record, TUTOR_REQUIRED)

    errors = _check(record, TEACHER_REQUIRED)
    if exam_board_required(getattr(record, "year_group", None)) and is_empty(getattr(record, "exam_board", None)):
        errors["exam_board"] = "Exam board is required for this year group."
    return errors


def validate_for_generation(mode: Mode, record: LessonRecord) -> Dict[str, str]:
    """The lighter check run before asking the model for a draft."""
    if Mode(mode) is Mode.TUTOR:
        return _check(record, TUTOR_GENERATION_REQUIRED)
    return _check(record, TEACHER_GENERATION_REQUIRED)


def validate_profile(kind: ProfileKind, profile: StudentProfile) -> Dict[str, str]:
    return _check(profile, PROFILE_REQUIRED[ProfileKind(kind)])
