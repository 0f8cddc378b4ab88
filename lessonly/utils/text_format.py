# utils/text_format.py
import json
import re
from typing import Any, List, Optional

from lessonly.models.lesson import LessonRecord, PEDAGOGY_FIELDS, Resource
from lessonly.models.stage import Stage

# Stay lowercase unless first or last word of a title
MINOR_WORDS = frozenset({
    "a", "an", "the", "and", "but", "or", "nor", "at", "by", "for", "from",
    "in", "into", "of", "on", "onto", "to", "with", "as", "up", "yet", "so",
})

MULTILINE_FIELDS = ("objectives", "outcomes", "homework", "evaluation", "notes") + PEDAGOGY_FIELDS

_WORD = re.compile(r"\w\S*")
_FIRST_LETTER = re.compile(r"^(\s*[•\-*]?\s*)([a-z])")
_LINE_FIRST_LETTER = re.compile(r"^(\s*[•\-*]?\s*)([a-z])", re.MULTILINE)


def capitalize_first_letter(text: Optional[str]) -> str:
    if not text:
        return ""
    return text[0].upper() + text[1:]


def proper_title_case(text: Optional[str]) -> str:
    """Title-case a topic, keeping short articles/prepositions/conjunctions lowercase."""
    if not text:
        return ""

    def _word(m: re.Match) -> str:
        word = m.group(0)
        lower = word.lower()
        is_first = m.start() == 0
        is_last = m.end() == len(text)
        if is_first or is_last or lower not in MINOR_WORDS:
            return word[0].upper() + word[1:].lower()
        return lower

    return _WORD.sub(_word, text)


def _upper_second(m: re.Match) -> str:
    return m.group(1) + m.group(2).upper()


def capitalize_text(text: Optional[str]) -> str:
    """Capitalize the first letter, skipping an optional leading bullet/dash/asterisk."""
    if not text:
        return ""
    return _FIRST_LETTER.sub(_upper_second, text, count=1)


def capitalize_multiline_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return _LINE_FIRST_LETTER.sub(_upper_second, text)


def format_as_bullet_points(data: Any) -> str:
    """
    Turn whatever the model returned for a prose field into "• " lines.

    Handles plain strings (one bullet per non-empty line), lists, and objects
    carrying their text under text/content/value/description.
    """
    if not data:
        return ""

    if isinstance(data, list):
        lines = []
        for item in data:
            if isinstance(item, dict):
                text = _object_text(item)
                lines.append(f"• {text if text else json.dumps(item)}")
            else:
                lines.append(f"• {item}")
        return "\n".join(lines)

    if isinstance(data, dict):
        text = _object_text(data)
        if text:
            return format_as_bullet_points(text) if isinstance(text, list) else f"• {text}"
        return f"• {json.dumps(data)}"

    if isinstance(data, str):
        if data.strip() and not data.startswith("•"):
            if "\n" not in data:
                return f"• {data}"
            return "\n".join(f"• {line.strip()}" for line in data.split("\n") if line.strip())
        return data

    return f"• {data}"


def _object_text(obj: dict) -> Any:
    for key in ("text", "content", "value", "description"):
        if obj.get(key):
            return obj[key]
    return None


def format_resources(resources: List[Resource], capitalize: bool = False) -> List[Resource]:
    """Fall back to the url for an empty title and trim urls."""
    out = []
    for res in resources:
        url = (res.url or "").strip()
        title = res.title or url
        out.append(Resource(title=capitalize_first_letter(title) if capitalize else title, url=url))
    return out


def format_stages_for_create(stages: List[Stage]) -> List[Stage]:
    return [
        s.model_copy(update={
            "name": capitalize_first_letter(s.name),
            "teaching": capitalize_text(s.teaching),
            "learning": capitalize_text(s.learning),
            "assessing": capitalize_text(s.assessing),
            "adapting": capitalize_text(s.adapting),
        })
        for s in stages
    ]


def format_record_for_create(record: LessonRecord) -> LessonRecord:
    """Capitalization applied when a record is first created."""
    update = {
        "subject": capitalize_first_letter(record.subject),
        "topic": proper_title_case(record.topic),
        "resources": format_resources(record.resources, capitalize=True),
        "lesson_structure": format_stages_for_create(record.lesson_structure),
    }
    for name in MULTILINE_FIELDS:
        if name in type(record).model_fields:
            update[name] = capitalize_multiline_text(getattr(record, name))

    fields = type(record).model_fields
    if "class_name" in fields:
        # class codes such as "7s" are stored upper-case
        update["class_name"] = (record.class_name or "").upper()
    if "custom_exam_board" in fields:
        update["custom_exam_board"] = capitalize_first_letter(record.custom_exam_board)
    return record.model_copy(update=update)
