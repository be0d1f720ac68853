import pytest

from app.ai_feature.intent import Intent, classify_intent


@pytest.mark.parametrize(
    "message",
    [
        "Mark attendance for student 42 as present",
        "please MARK student 5 absent",
        "mark 12 late",
        "Set attendance of roll 7 to present",
        "can you set my class attendance",
    ],
)
def test_marking_phrases_are_writes(message):
    assert classify_intent(message) == Intent.WRITE


@pytest.mark.parametrize(
    "message",
    [
        "Show my attendance for Web Engineering",
        "How many students were absent last week?",
        "Which sessions was I late for?",
        "list my courses",
        "What marks did I get?",
        "set of students in my batch",
        "",
    ],
)
def test_everything_else_is_a_read(message):
    assert classify_intent(message) == Intent.READ


def test_missing_message_is_a_read():
    assert classify_intent(None) == Intent.READ
