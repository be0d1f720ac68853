from dataclasses import dataclass
from typing import FrozenSet, Tuple


# -----------------------------------------------------------------------------
# SCHEMA CATALOGUE
# The tables the agent may read, maintained by hand. The generator prompt and
# the auditor allowlist are both built from this one list.
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class TableInfo:
    name: str
    columns: Tuple[str, ...]
    description: str

    @property
    def key(self) -> str:
        return self.name.lower()

    def render(self) -> str:
        return f"- {self.name}({', '.join(self.columns)}): {self.description}"


TABLES: Tuple[TableInfo, ...] = (
    TableInfo(
        "Attendance",
        ("AttendanceId", "SessionId", "StudentId", "Status", "MarkedBy"),
        "one row per student per session; Status is Present, Absent or Late",
    ),
    TableInfo(
        "Sessions",
        ("SessionId", "CourseAssignmentId", "SessionDate", "StartTime", "EndTime", "CreatedBy"),
        "a single class meeting of a course assignment",
    ),
    TableInfo(
        "Students",
        ("StudentId", "UserId", "RollNumber", "FirstName", "LastName", "BatchId", "IsActive"),
        "student profiles",
    ),
    TableInfo(
        "Teachers",
        ("TeacherId", "UserId", "FirstName", "LastName", "IsActive"),
        "teacher profiles",
    ),
    TableInfo(
        "CourseAssignments",
        ("AssignmentId", "TeacherId", "CourseId", "BatchId", "SemesterId", "IsActive"),
        "which teacher teaches which course to which batch in which semester",
    ),
    TableInfo(
        "Courses",
        ("CourseId", "CourseCode", "CourseName", "CreditHours", "IsActive"),
        "course catalogue",
    ),
    TableInfo(
        "Semesters",
        ("SemesterId", "SemesterName", "Year", "StartDate", "EndDate", "IsActive"),
        "academic terms",
    ),
    TableInfo(
        "Enrollments",
        ("EnrollmentId", "StudentId", "CourseId", "BatchId", "SemesterId", "Status"),
        "students enrolled in courses for a batch and semester",
    ),
)

ALLOWED_TABLES: FrozenSet[str] = frozenset(table.key for table in TABLES)


STUDENT_PATTERNS = """ROLE: STUDENT
- You can query your own data only.
- You may see teacher names ONLY for the courses you are enrolled in.

STUDENT JOIN PATTERNS (must include @studentId):
- Your courses: Enrollments e JOIN Courses c ON c.CourseId = e.CourseId WHERE e.StudentId = @studentId
- Your teachers: Enrollments e
  JOIN CourseAssignments ca ON ca.CourseId = e.CourseId AND ca.BatchId = e.BatchId AND ca.SemesterId = e.SemesterId
  JOIN Teachers t ON t.TeacherId = ca.TeacherId WHERE e.StudentId = @studentId
- Your attendance per course: Attendance a
  JOIN Sessions s ON s.SessionId = a.SessionId
  JOIN CourseAssignments ca ON ca.AssignmentId = s.CourseAssignmentId
  JOIN Courses c ON c.CourseId = ca.CourseId WHERE a.StudentId = @studentId

COMMON CALCULATIONS:
- Attendance % per course: SUM(CASE WHEN a.Status = 'Present' THEN 1 ELSE 0 END) * 100.0 / NULLIF(COUNT(*), 0)
- Remaining sessions: COUNT(*) WHERE s.SessionDate > CAST(GETDATE() AS date)"""


TEACHER_PATTERNS = """ROLE: TEACHER
- You can query ONLY your own courses, students and sessions.
- Always scope through CourseAssignments.TeacherId = @teacherId.

TEACHER JOIN PATTERNS (must include @teacherId):
- Your courses: CourseAssignments ca JOIN Courses c ON c.CourseId = ca.CourseId WHERE ca.TeacherId = @teacherId
- Your students: CourseAssignments ca
  JOIN Enrollments e ON e.CourseId = ca.CourseId AND e.BatchId = ca.BatchId AND e.SemesterId = ca.SemesterId
  JOIN Students s ON s.StudentId = e.StudentId WHERE ca.TeacherId = @teacherId
- Attendance for your sessions: Attendance a
  JOIN Sessions se ON se.SessionId = a.SessionId
  JOIN CourseAssignments ca ON ca.AssignmentId = se.CourseAssignmentId WHERE ca.TeacherId = @teacherId"""


ADMIN_PATTERNS = """ROLE: ADMIN
- Full read access within these tables."""


def render_schema() -> str:
    lines = [
        "=== ALLOWED SCHEMA (SQL Server) ===",
        "Use ONLY the tables and columns listed below. Do NOT invent table names.",
        "You may use WITH (CTEs), but CTEs must be built ONLY from these tables.",
        "",
        "TABLES:",
    ]
    lines.extend(table.render() for table in TABLES)
    return "\n".join(lines)
