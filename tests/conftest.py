import os
from datetime import date, time

# Settings are read at import time, so the test environment goes first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-agent-tests")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app.ai_feature.llm import get_llm
from app.core import models
from app.core.database import Base, get_db
from app.main import app
from fakes import FakeLLM, bearer_headers

# Throw-away in-memory database shared by every connection of one test
TEST_DATABASE_URL = "sqlite+aiosqlite://"

STUDENT_USER_ID = 20
STUDENT_ID = 7
TEACHER_USER_ID = 10
TEACHER_ID = 3
ADMIN_USER_ID = 1


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine):
    TestingSessionLocal = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with TestingSessionLocal() as session:
        yield session


# A small school: one teacher, two students, one course with two sessions
@pytest_asyncio.fixture(scope="function")
async def school(db_session: AsyncSession):
    teacher = models.Teacher(
        id=TEACHER_ID, user_id=TEACHER_USER_ID, first_name="Ada", last_name="Khan"
    )
    student = models.Student(
        id=STUDENT_ID,
        user_id=STUDENT_USER_ID,
        roll_number="R-007",
        first_name="Sam",
        last_name="Lee",
        batch_id=1,
    )
    other = models.Student(
        id=8, user_id=21, roll_number="R-008", first_name="Kim", last_name="Ray", batch_id=1
    )
    course = models.Course(id=1, code="CS201", name="Web Engineering", credit_hours=3)
    semester = models.Semester(
        id=1,
        name="Fall",
        year=2026,
        start_date=date(2026, 9, 1),
        end_date=date(2026, 12, 20),
        is_active=True,
    )
    db_session.add_all([teacher, student, other, course, semester])
    await db_session.flush()

    assignment = models.CourseAssignment(
        id=1, teacher_id=TEACHER_ID, course_id=1, batch_id=1, semester_id=1
    )
    db_session.add(assignment)
    db_session.add_all(
        [
            models.Enrollment(student_id=STUDENT_ID, course_id=1, batch_id=1, semester_id=1, status="Active"),
            models.Enrollment(student_id=8, course_id=1, batch_id=1, semester_id=1, status="Active"),
        ]
    )
    await db_session.flush()

    first = models.Session(
        id=1, course_assignment_id=1, session_date=date(2026, 10, 1), start_time=time(9, 0)
    )
    second = models.Session(
        id=2, course_assignment_id=1, session_date=date(2026, 10, 8), start_time=time(9, 0)
    )
    db_session.add_all([first, second])
    await db_session.flush()

    db_session.add_all(
        [
            models.Attendance(session_id=1, student_id=STUDENT_ID, status="Present", marked_by=TEACHER_USER_ID),
            models.Attendance(session_id=2, student_id=STUDENT_ID, status="Late", marked_by=None),
            models.Attendance(session_id=1, student_id=8, status="Absent", marked_by=TEACHER_USER_ID),
        ]
    )
    await db_session.commit()
    return {"teacher": teacher, "student": student}


@pytest.fixture
def fake_llm():
    return FakeLLM()


# Client
@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, fake_llm: FakeLLM):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm] = lambda: fake_llm

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def student_headers():
    return bearer_headers({"user_id": STUDENT_USER_ID, "role": "Student"})


@pytest.fixture
def teacher_headers():
    return bearer_headers({"user_id": TEACHER_USER_ID, "role": "Teacher"})


@pytest.fixture
def admin_headers():
    return bearer_headers({"user_id": ADMIN_USER_ID, "roles": ["Admin"]})
