import asyncio

import pytest

from lessonly.models.lesson import Mode
from lessonly.models.profile import ProfileKind
from lessonly.services.repository import RecordNotFound


def test_lesson_crud_round_trip(lessons):
    created = asyncio.run(lessons.create("owner-1", Mode.TUTOR, {"subject": "Maths", "topic": "Ratio", "student_id": "s1"}))
    assert created["id"]
    assert created["owner_id"] == "owner-1"
    assert created["created_at"]

    updated = asyncio.run(lessons.update("owner-1", Mode.TUTOR, created["id"], {"subject": "Maths", "topic": "Proportion"}))
    assert updated["topic"] == "Proportion"

    asyncio.run(lessons.delete("owner-1", Mode.TUTOR, created["id"]))
    with pytest.raises(RecordNotFound):
        asyncio.run(lessons.get("owner-1", Mode.TUTOR, created["id"]))


def test_lesson_lookup_is_scoped_by_owner_and_mode(lessons):
    created = asyncio.run(lessons.create("owner-1", Mode.TEACHER, {"topic": "Volcanoes"}))
    with pytest.raises(RecordNotFound):
        asyncio.run(lessons.get("owner-2", Mode.TEACHER, created["id"]))
    with pytest.raises(RecordNotFound):
        asyncio.run(lessons.get("owner-1", Mode.EXTENDED, created["id"]))


def test_list_filters_and_pages(lessons):
    for topic in ("Rivers", "Coasts", "River deltas"):
        asyncio.run(lessons.create("owner-1", Mode.TEACHER, {"subject": "Geography", "topic": topic}))

    items, total = asyncio.run(lessons.list("owner-1", Mode.TEACHER, topic="river"))
    assert total == 2
    assert {i["topic"] for i in items} == {"Rivers", "River deltas"}

    page, total = asyncio.run(lessons.list("owner-1", Mode.TEACHER, limit=1, offset=1))
    assert total == 3
    assert len(page) == 1


def test_profiles_by_kind(profiles):
    asyncio.run(profiles.create("owner-1", ProfileKind.TEACHER, {"first_name": "Sam"}))
    _, teacher_total = asyncio.run(profiles.list("owner-1", ProfileKind.TEACHER))
    _, tutor_total = asyncio.run(profiles.list("owner-1", ProfileKind.TUTOR))
    assert (teacher_total, tutor_total) == (1, 0)


def test_ensure_class_is_idempotent(classes):
    first = asyncio.run(classes.ensure_class("owner-1", "7S", "Year 7"))
    again = asyncio.run(classes.ensure_class("owner-1", "7S"))
    asyncio.run(classes.ensure_class("owner-1", "10A"))
    assert first.id == again.id
    assert [c.class_name for c in asyncio.run(classes.list("owner-1"))] == ["10A", "7S"]
