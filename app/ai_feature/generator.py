from typing import List, Optional

from app.ai_feature import catalogue
from app.ai_feature.actor import (
    ActorContext,
    StudentActor,
    TeacherActor,
    role_label,
)
from app.ai_feature.errors import SqlGenerationError
from app.ai_feature.llm import (
    LLMClient,
    Message,
    history_messages,
    strip_code_fences,
    system,
    user,
)
from app.core.config import settings
from app.core.schemas import ChatRequest


# -----------------------------------------------------------------------------
# SQL GENERATION
# Builds the writer prompt and returns the model's statement as text.
# Nothing here decides whether the statement is safe; the auditor does that.
# -----------------------------------------------------------------------------


def required_filters(actor: ActorContext) -> str:
    if isinstance(actor, StudentActor):
        return (
            "CRITICAL RULES FOR STUDENT:\n"
            "- You MUST include WHERE ... StudentId = @studentId "
            "(via Enrollments.StudentId or Attendance.StudentId).\n"
            "- You CAN see teacher names for YOUR enrolled courses by joining "
            "Enrollments -> CourseAssignments -> Teachers.\n"
            "- You CANNOT see other students' data."
        )
    if isinstance(actor, TeacherActor):
        return (
            "CRITICAL RULES FOR TEACHER:\n"
            "- You MUST include CourseAssignments.TeacherId = @teacherId in EVERY query.\n"
            "- For Students: join CourseAssignments (TeacherId = @teacherId) -> Enrollments -> Students.\n"
            "- For Attendance: join Sessions -> CourseAssignments with TeacherId = @teacherId.\n"
            "- Query the Teachers table only with Teachers.TeacherId = @teacherId."
        )
    return "Admin: full read access to the attendance tables."


def role_patterns(actor: ActorContext) -> str:
    if isinstance(actor, StudentActor):
        return catalogue.STUDENT_PATTERNS
    if isinstance(actor, TeacherActor):
        return catalogue.TEACHER_PATTERNS
    return catalogue.ADMIN_PATTERNS


def few_shot_examples(actor: ActorContext, row_limit: int) -> str:
    top = f"TOP ({row_limit})"
    if isinstance(actor, StudentActor):
        examples = [
            (
                "Show my attendance for Web Engineering",
                f"SELECT {top} a.Status, s.SessionDate, c.CourseName FROM Attendance a "
                "JOIN Sessions s ON s.SessionId = a.SessionId "
                "JOIN CourseAssignments ca ON ca.AssignmentId = s.CourseAssignmentId "
                "JOIN Courses c ON c.CourseId = ca.CourseId "
                "WHERE a.StudentId = @studentId AND c.CourseName LIKE '%Web Engineering%' "
                "ORDER BY s.SessionDate DESC",
            ),
            (
                "Who is teaching Data Structures?",
                f"SELECT {top} t.FirstName, t.LastName, c.CourseName FROM Enrollments e "
                "JOIN CourseAssignments ca ON ca.CourseId = e.CourseId "
                "AND ca.BatchId = e.BatchId AND ca.SemesterId = e.SemesterId "
                "JOIN Teachers t ON t.TeacherId = ca.TeacherId "
                "JOIN Courses c ON c.CourseId = ca.CourseId "
                "WHERE e.StudentId = @studentId AND c.CourseName LIKE '%Data Structures%'",
            ),
        ]
    elif isinstance(actor, TeacherActor):
        examples = [
            (
                "List my courses",
                f"SELECT {top} c.CourseName, c.CourseCode FROM CourseAssignments ca "
                "JOIN Courses c ON c.CourseId = ca.CourseId "
                "WHERE ca.TeacherId = @teacherId AND ca.IsActive = 1",
            ),
            (
                "Show students in Web Engineering",
                f"SELECT {top} s.FirstName, s.LastName, s.RollNumber FROM CourseAssignments ca "
                "JOIN Enrollments e ON e.CourseId = ca.CourseId "
                "AND e.BatchId = ca.BatchId AND e.SemesterId = ca.SemesterId "
                "JOIN Students s ON s.StudentId = e.StudentId "
                "JOIN Courses c ON c.CourseId = ca.CourseId "
                "WHERE ca.TeacherId = @teacherId AND c.CourseName LIKE '%Web Engineering%'",
            ),
        ]
    else:
        examples = [
            (
                "Count total students",
                "SELECT TOP (1) COUNT(*) AS TotalStudents FROM Students WHERE IsActive = 1",
            ),
            (
                "Show recent attendance",
                f"SELECT {top} a.Status, s.SessionDate, st.FirstName, st.LastName "
                "FROM Attendance a JOIN Sessions s ON s.SessionId = a.SessionId "
                "JOIN Students st ON st.StudentId = a.StudentId "
                "ORDER BY s.SessionDate DESC",
            ),
        ]

    return "\n\n".join(f'User: "{question}"\nSQL: {sql}' for question, sql in examples)


def build_writer_prompt(actor: ActorContext, row_limit: int) -> str:
    return (
        "You are SqlWriterAgent. You MUST output ONLY a single SQL SELECT statement for SQL Server.\n"
        f"The current user is a {role_label(actor)}.\n"
        "Rules:\n"
        "- Output ONLY SQL text. No markdown, no explanations, no comments.\n"
        "- Must be read-only: SELECT (optionally WITH CTE).\n"
        f"- Always include TOP ({row_limit}).\n"
        "- Use parameters like @studentId, @teacherId when needed.\n"
        "- Only use the attendance tables listed below.\n"
        f"- MUST satisfy these mandatory filters: {required_filters(actor)}\n\n"
        f"{catalogue.render_schema()}\n\n"
        f"{role_patterns(actor)}\n\n"
        "EXAMPLES (follow these patterns):\n"
        f"{few_shot_examples(actor, row_limit)}"
    )


def build_writer_messages(
    actor: ActorContext,
    request: ChatRequest,
    feedback: Optional[str] = None,
    row_limit: Optional[int] = None,
) -> List[Message]:
    row_limit = row_limit or settings.SQL_ROW_LIMIT

    messages = history_messages(request.history, settings.HISTORY_LIMIT)
    messages.append(system(build_writer_prompt(actor, row_limit)))
    messages.append(user(request.message))
    if feedback:
        messages.append(user(f"FIX ERROR: {feedback}\n\nGenerate corrected SQL now:"))
    return messages


async def generate_sql(
    llm: LLMClient,
    actor: ActorContext,
    request: ChatRequest,
    feedback: Optional[str] = None,
) -> str:
    """Ask the model for one statement."""
    reply = await llm.complete(build_writer_messages(actor, request, feedback))
    sql = strip_code_fences(reply)
    if not sql:
        raise SqlGenerationError("Model returned no SQL")
    return sql
