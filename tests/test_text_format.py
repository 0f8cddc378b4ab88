from lessonly.models.lesson import Resource, TeacherLessonPlan, TutorLessonPlan
from lessonly.models.stage import Stage
from lessonly.utils.text_format import (
    capitalize_first_letter,
    capitalize_multiline_text,
    capitalize_text,
    format_as_bullet_points,
    format_record_for_create,
    proper_title_case,
)


def test_proper_title_case_keeps_minor_words_lower():
    assert proper_title_case("the lord of the flies") == "The Lord of the Flies"
    assert proper_title_case("WAR AND PEACE") == "War and Peace"
    assert proper_title_case("what are you looking at") == "What Are You Looking At"


def test_proper_title_case_empty():
    assert proper_title_case("") == ""
    assert proper_title_case(None) == ""


def test_capitalize_first_letter():
    assert capitalize_first_letter("maths") == "Maths"
    assert capitalize_first_letter("") == ""


def test_capitalize_text_skips_leading_marker():
    assert capitalize_text("• explain photosynthesis") == "• Explain photosynthesis"
    assert capitalize_text("- recap") == "- Recap"
    assert capitalize_text("recap. then quiz") == "Recap. then quiz"


def test_capitalize_multiline_text_every_line():
    text = "• identify verbs\n• use adverbs\nplain line"
    assert capitalize_multiline_text(text) == "• Identify verbs\n• Use adverbs\nPlain line"


def test_format_as_bullet_points_shapes():
    assert format_as_bullet_points("one line") == "• one line"
    assert format_as_bullet_points("a\n\nb") == "• a\n• b"
    assert format_as_bullet_points("• already") == "• already"
    assert format_as_bullet_points(["x", {"text": "y"}]) == "• x\n• y"
    assert format_as_bullet_points({"description": "z"}) == "• z"
    assert format_as_bullet_points(None) == ""


def test_format_record_for_create_teacher():
    record = TeacherLessonPlan(
        class_name="7s",
        subject="english",
        topic="the lord of the flies",
        objectives="• read chapter one\n• discuss ralph",
        custom_exam_board="local board",
        resources=[Resource(title="", url=" https://example.org/a ")],
        lesson_structure=[Stage(name="starter", teaching="hook question")],
    )
    out = format_record_for_create(record)
    assert out.class_name == "7S"
    assert out.subject == "English"
    assert out.topic == "The Lord of the Flies"
    assert out.objectives == "• Read chapter one\n• Discuss ralph"
    assert out.custom_exam_board == "Local board"
    assert out.resources[0].title == "Https://example.org/a"
    assert out.resources[0].url == "https://example.org/a"
    assert out.lesson_structure[0].name == "Starter"
    assert out.lesson_structure[0].teaching == "Hook question"


def test_format_record_for_create_tutor_has_no_class():
    out = format_record_for_create(TutorLessonPlan(subject="maths", topic="fractions"))
    assert out.subject == "Maths"
    assert out.topic == "Fractions"
