import pytest

from app.ai_feature.actor import AdminActor, StudentActor, TeacherActor
from app.ai_feature.errors import SqlGenerationError
from app.ai_feature.generator import build_writer_messages, generate_sql
from app.ai_feature.llm import history_messages, strip_code_fences
from app.core.schemas import ChatRequest, ChatTurn, TurnRole
from fakes import FakeLLM

STUDENT = StudentActor(user_id=20, student_id=7)
TEACHER = TeacherActor(user_id=10, teacher_id=3)
ADMIN = AdminActor(user_id=1)


def test_student_prompt_carries_student_filter():
    messages = build_writer_messages(STUDENT, ChatRequest(message="my attendance"))
    prompt = messages[0]["content"]

    assert messages[0]["role"] == "system"
    assert "The current user is a STUDENT." in prompt
    assert "StudentId = @studentId" in prompt
    assert "TOP (200)" in prompt
    assert "Attendance" in prompt
    assert messages[-1] == {"role": "user", "content": "my attendance"}


def test_teacher_prompt_carries_teacher_filter():
    prompt = build_writer_messages(TEACHER, ChatRequest(message="x"))[0]["content"]

    assert "The current user is a TEACHER." in prompt
    assert "CourseAssignments.TeacherId = @teacherId" in prompt


def test_admin_prompt_has_no_mandatory_scope():
    prompt = build_writer_messages(ADMIN, ChatRequest(message="x"))[0]["content"]
    assert "full read access" in prompt
    assert "CRITICAL RULES" not in prompt


def test_row_limit_is_injected():
    prompt = build_writer_messages(ADMIN, ChatRequest(message="x"), row_limit=50)[0]["content"]
    assert "Always include TOP (50)." in prompt


def test_feedback_is_appended_as_fix_request():
    messages = build_writer_messages(STUDENT, ChatRequest(message="q"), feedback="- Empty SQL.")
    assert messages[-1]["role"] == "user"
    assert messages[-1]["content"].startswith("FIX ERROR: - Empty SQL.")
    assert messages[-1]["content"].endswith("Generate corrected SQL now:")


def test_history_comes_first_and_is_truncated():
    history = [ChatTurn(role="user", content=f"turn {i}") for i in range(30)]
    messages = build_writer_messages(ADMIN, ChatRequest(message="now", history=history))

    assert messages[0]["content"] == "turn 10"
    assert messages[19]["content"] == "turn 29"
    assert messages[20]["role"] == "system"
    assert len(messages) == 22


def test_history_turns_are_coerced():
    request = ChatRequest(
        message="q",
        history=[{"role": "Assistant", "content": None}, {"role": "tool", "content": "hi"}],
    )
    assert request.history[0] == ChatTurn(role=TurnRole.ASSISTANT, content="")
    assert request.history[1].role == TurnRole.USER


def test_history_limit_zero():
    assert history_messages([ChatTurn(content="a")], 0) == []


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("```sql\nSELECT TOP (1) 1\n```", "SELECT TOP (1) 1"),
        ("```\nSELECT TOP (1) 1```", "SELECT TOP (1) 1"),
        ("  SELECT TOP (1) 1  ", "SELECT TOP (1) 1"),
        ("```SELECT TOP (1) 1```", "SELECT TOP (1) 1"),
        ("", ""),
        (None, ""),
    ],
)
def test_code_fences_are_stripped(raw, expected):
    assert strip_code_fences(raw) == expected


@pytest.mark.asyncio
async def test_generate_sql_returns_clean_statement():
    llm = FakeLLM("```sql\nSELECT TOP (200) * FROM Courses\n```")
    sql = await generate_sql(llm, ADMIN, ChatRequest(message="courses"))

    assert sql == "SELECT TOP (200) * FROM Courses"
    assert len(llm.calls) == 1
    assert llm.calls[0]["tools"] is None


@pytest.mark.asyncio
async def test_generate_sql_empty_reply():
    with pytest.raises(SqlGenerationError):
        await generate_sql(FakeLLM("   "), ADMIN, ChatRequest(message="x"))
