import asyncio
import json

import pytest

from conftest import FakeGenerator
from lessonly.models.lesson import Mode
from lessonly.models.profile import ProfileKind
from lessonly.services.form_state import FORM_CONFIGS, FormBusyError, FormStatus, LessonForm, new_form
from lessonly.services.lesson_generator import PlanType, build_prompt
from lessonly.services.repository import PersistenceError, RecordNotFound
from lessonly.services.validation import TEACHER_REQUIRED, TUTOR_REQUIRED

TEACHER_FIELDS = {
    "class": "7s",
    "year_group": "Year 7",
    "date_of_lesson": "2026-10-19",
    "time_of_lesson": "09:00",
    "topic": "the lord of the flies",
    "subject": "english",
    "objectives": "read chapter one",
}

TUTOR_FIELDS = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "date_of_lesson": "2026-10-19",
    "time_of_lesson": "16:00",
    "topic": "simultaneous equations",
    "subject": "maths",
    "objectives": "solve by elimination",
}


def stage_names(form: LessonForm):
    return [s.name for s in form.editor.stages]


def test_form_configs():
    assert FORM_CONFIGS[Mode.TEACHER].plan_type is PlanType.STANDARD
    assert FORM_CONFIGS[Mode.EXTENDED].enforce_stage_prefix
    assert FORM_CONFIGS[Mode.TUTOR].enforce_stage_prefix
    assert not FORM_CONFIGS[Mode.TUTOR].capitalize_on_create
    assert FORM_CONFIGS[Mode.TEACHER].bullet_fields == ("objectives", "outcomes")
    assert FORM_CONFIGS[Mode.STUDENT].to_dict()["plan_type"] == "detailed"


def test_new_form_starts_ready_with_anchors(lessons, generator):
    form = new_form(Mode.TEACHER, lessons, generator, "owner-1")
    assert form.status is FormStatus.READY
    assert stage_names(form) == ["Starter", "Plenary"]


def test_bullet_fields_get_prefix(lessons, generator):
    form = new_form(Mode.TEACHER, lessons, generator, "owner-1")
    form.update_field("objectives", "learn")
    form.update_field("homework", "read")
    assert form.record.objectives == "• learn"
    assert form.record.homework == "read"
    with pytest.raises(ValueError):
        form.update_field("id", "x")


def test_invalid_save_reports_errors_and_settles(lessons, generator):
    form = new_form(Mode.TEACHER, lessons, generator, "owner-1")
    form.update_field("topic", "Fractions")

    assert asyncio.run(form.save()) is False
    assert form.status is FormStatus.READY
    assert form.history[-3:] == [FormStatus.VALIDATING, FormStatus.INVALID, FormStatus.READY]
    assert form.errors["class_name"] == "Class is required."
    assert "topic" not in form.errors


def test_create_capitalizes_and_registers_class(lessons, classes, generator):
    form = new_form(Mode.TEACHER, lessons, generator, "owner-1", classes=classes)
    form.update_fields(TEACHER_FIELDS)
    form.add_stage()

    assert asyncio.run(form.save()) is True
    assert form.status is FormStatus.SAVED
    assert form.record_id

    saved = asyncio.run(lessons.get("owner-1", Mode.TEACHER, form.record_id))
    assert saved["class"] == "7S"
    assert saved["topic"] == "The Lord of the Flies"
    assert saved["subject"] == "English"
    assert saved["objectives"] == "• Read chapter one"
    assert [s["stage"] for s in saved["lesson_structure"]] == ["Starter", "Stage 1", "Plenary"]

    registered = asyncio.run(classes.list("owner-1"))
    assert [c.class_name for c in registered] == ["7S"]


def test_update_does_not_capitalize(lessons, classes, generator):
    form = new_form(Mode.TEACHER, lessons, generator, "owner-1", classes=classes)
    form.update_fields(TEACHER_FIELDS)
    asyncio.run(form.save())

    edit = new_form(Mode.TEACHER, lessons, generator, "owner-1", record_id=form.record_id)
    assert edit.status is FormStatus.LOADING
    asyncio.run(edit.load())
    assert edit.status is FormStatus.READY
    edit.update_field("topic", "animal farm")
    assert asyncio.run(edit.save()) is True
    assert asyncio.run(lessons.get("owner-1", Mode.TEACHER, form.record_id))["topic"] == "animal farm"


def test_tutor_create_adds_student_profile_without_capitalizing(lessons, profiles, generator):
    form = new_form(Mode.TUTOR, lessons, generator, "owner-1", profiles=profiles)
    form.update_fields(TUTOR_FIELDS)

    assert asyncio.run(form.save()) is True
    assert form.record.topic == "simultaneous equations"
    assert form.record.objectives == "• solve by elimination"

    students, total = asyncio.run(profiles.list("owner-1", ProfileKind.TUTOR))
    assert total == 1
    assert students[0]["first_name"] == "Ada"
    assert form.record.student_id == students[0]["id"]


def test_load_missing_record(lessons, generator):
    form = new_form(Mode.TEACHER, lessons, generator, "owner-1", record_id="nope")
    with pytest.raises(RecordNotFound):
        asyncio.run(form.load())
    assert form.status is FormStatus.READY
    assert form.error


def test_load_normalizes_stored_stages(lessons, generator):
    created = asyncio.run(lessons.create("owner-1", Mode.EXTENDED, {"topic": "Acids", "lesson_structure": [{"stage": "Stage 1"}]}))
    form = new_form(Mode.EXTENDED, lessons, generator, "owner-1", record_id=created["id"])
    asyncio.run(form.load())
    assert stage_names(form) == ["Starter", "Stage 1", "Plenary"]


def test_save_failure_settles_with_message(generator):
    class BrokenRepository:
        async def create(self, owner_id, mode, payload):
            raise PersistenceError("Could not save lesson plan: disk full")

    form = new_form(Mode.TEACHER, BrokenRepository(), generator, "owner-1")
    form.update_fields(TEACHER_FIELDS)

    assert asyncio.run(form.save()) is False
    assert form.history[-2:] == [FormStatus.SAVE_FAILED, FormStatus.READY]
    assert form.error == "Could not save lesson plan: disk full"


def test_generate_merges_present_fields_only(lessons):
    generator = FakeGenerator(reply={
        "objectives": ["Identify themes", {"text": "Discuss symbolism"}],
        "homework": "Read chapter two",
        "notes": "",
        "resources": [{"title": "Study guide", "url": "https://example.org/guide"}],
        "lesson_structure": [{"stage": "Main Activity 1", "duration": "20 min"}],
    })
    form = new_form(Mode.TEACHER, lessons, generator, "owner-1")
    form.update_fields({**TEACHER_FIELDS, "notes": "Bring books"})

    assert asyncio.run(form.generate()) is True
    assert form.status is FormStatus.GENERATED_MERGED
    assert form.record.objectives == "• Identify themes\n• Discuss symbolism"
    assert form.record.homework == "• Read chapter two"
    assert form.record.notes == "Bring books"
    assert form.record.resources[0].title == "Study guide"
    assert form.record.created_with_ai is True
    assert stage_names(form) == ["Starter", "Main Activity 1", "Plenary"]

    request = generator.requests[0]
    assert request.plan_type is PlanType.STANDARD
    assert request.class_name == "7s"
    assert request.exam_board is None


def test_generate_keeps_stages_when_reply_has_none(lessons):
    form = new_form(Mode.TEACHER, lessons, FakeGenerator(reply={"homework": "Quiz"}), "owner-1")
    form.update_fields(TEACHER_FIELDS)
    form.add_stage()
    asyncio.run(form.generate())
    assert stage_names(form) == ["Starter", "Stage 1", "Plenary"]


def test_generate_validation_and_failure(lessons):
    form = new_form(Mode.TUTOR, lessons, FakeGenerator(error="Quota exceeded"), "owner-1")
    assert asyncio.run(form.generate()) is False
    assert "first_name" in form.errors

    form.update_fields(TUTOR_FIELDS)
    assert asyncio.run(form.generate()) is False
    assert form.history[-2:] == [FormStatus.GENERATION_FAILED, FormStatus.READY]
    assert form.error == "Quota exceeded"


def test_save_and_generate_are_exclusive(lessons):
    class SlowGenerator(FakeGenerator):
        async def generate(self, request):
            await asyncio.sleep(0.01)
            return await super().generate(request)

    form = new_form(Mode.TEACHER, lessons, SlowGenerator(), "owner-1")
    form.update_fields(TEACHER_FIELDS)

    async def run():
        task = asyncio.create_task(form.generate())
        await asyncio.sleep(0)
        with pytest.raises(FormBusyError):
            await form.save()
        return await task

    assert asyncio.run(run()) is True


def test_load_empty_structure_gives_blank_anchors(lessons, generator):
    created = asyncio.run(lessons.create("owner-1", Mode.TEACHER, {"topic": "Maps", "lesson_structure": []}))
    form = new_form(Mode.TEACHER, lessons, generator, "owner-1", record_id=created["id"])
    asyncio.run(form.load())
    assert [s.to_wire() for s in form.editor.stages] == [
        {"stage": "Starter", "duration": "", "teaching": "", "learning": "", "assessing": "", "adapting": ""},
        {"stage": "Plenary", "duration": "", "teaching": "", "learning": "", "assessing": "", "adapting": ""},
    ]


def test_student_form_requests_and_merges_detailed_plan(lessons):
    generator = FakeGenerator(reply={
        "objectives": "Balance symbol equations",
        "knowledge_revisited": ["Atoms and molecules"],
        "lesson_structure": [
            {"stage": "Starter", "teaching": "Recall quiz"},
            {"stage": "Main Activity 1", "duration": "25 min"},
            {"stage": "Plenary"},
        ],
    })
    form = new_form(Mode.STUDENT, lessons, generator, "owner-1")
    form.update_fields({**TEACHER_FIELDS, "subject": "chemistry", "topic": "equations"})

    request = form.generation_request()
    assert request.plan_type is PlanType.DETAILED
    prompt = build_prompt(request)
    assert '"lesson_structure"' in prompt
    assert "lesson_steps" not in prompt

    assert asyncio.run(form.generate()) is True
    assert form.record.objectives == "• Balance symbol equations"
    assert form.record.knowledge_revisited == "• Atoms and molecules"
    assert stage_names(form) == ["Starter", "Main Activity 1", "Plenary"]
    assert form.editor.stages[0].teaching == "Recall quiz"


@pytest.mark.parametrize("mode", [Mode.TEACHER, Mode.EXTENDED, Mode.STUDENT])
def test_create_stores_resolved_exam_board(lessons, generator, mode):
    below_gcse = new_form(mode, lessons, generator, "owner-1")
    below_gcse.update_fields({**TEACHER_FIELDS, "exam_board": "AQA"})
    assert asyncio.run(below_gcse.save()) is True
    assert asyncio.run(lessons.get("owner-1", mode, below_gcse.record_id))["exam_board"] is None

    custom = new_form(mode, lessons, generator, "owner-1")
    custom.update_fields({
        **TEACHER_FIELDS,
        "year_group": "Year 10",
        "exam_board": "Other",
        "custom_exam_board": "edexcel igcse",
    })
    assert asyncio.run(custom.save()) is True
    assert asyncio.run(lessons.get("owner-1", mode, custom.record_id))["exam_board"] == "Edexcel igcse"


def test_new_forms_remove_without_renumbering(lessons, generator):
    stages = [{"stage": "Stage 1"}, {"stage": "Stage 2"}, {"stage": "Stage 3"}]

    new = new_form(Mode.TUTOR, lessons, generator, "owner-1")
    new.update_fields({"lesson_structure": stages})
    new.remove_stage(1)
    new.rename_stage(1, "stage 5")
    assert stage_names(new) == ["Starter", "stage 5", "Stage 3", "Plenary"]

    created = asyncio.run(lessons.create("owner-1", Mode.TUTOR, {"lesson_structure": stages}))
    edit = new_form(Mode.TUTOR, lessons, generator, "owner-1", record_id=created["id"])
    asyncio.run(edit.load())
    edit.remove_stage(1)
    edit.rename_stage(2, "stage 5")
    assert stage_names(edit) == ["Starter", "Stage 1", "Stage 5", "Plenary"]


def test_student_edit_form_never_renumbers(lessons, generator):
    created = asyncio.run(lessons.create(
        "owner-1", Mode.STUDENT, {"lesson_structure": [{"stage": "Read"}, {"stage": "Practise"}]}
    ))
    form = new_form(Mode.STUDENT, lessons, generator, "owner-1", record_id=created["id"])
    asyncio.run(form.load())
    form.remove_stage(1)
    assert stage_names(form) == ["Starter", "Practise", "Plenary"]


def test_stage_list_sent_as_json_text_is_kept(lessons, generator):
    form = new_form(Mode.TEACHER, lessons, generator, "owner-1")
    form.update_fields({"lesson_structure": json.dumps([{"stage": "Stage 1", "duration": "15 min"}])})
    assert stage_names(form) == ["Starter", "Stage 1", "Plenary"]
    assert form.editor.stages[1].duration == "15 min"


@pytest.mark.parametrize("mode", list(Mode))
def test_required_flags_match_save_validation(mode):
    required = TUTOR_REQUIRED if mode is Mode.TUTOR else TEACHER_REQUIRED
    assert set(FORM_CONFIGS[mode].required_fields) == {name for name, _ in required}
