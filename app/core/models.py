from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    String,
    Boolean,
    Date,
    Time,
)
from sqlalchemy.orm import relationship

from app.core.database import Base


# -----------------------------------------------------------------------------
# Attendance schema (owned by the academic management application).
# Only the tables the agent is allowed to read are mapped here; physical
# column names keep their PascalCase spelling because generated SQL uses them.
# Users and Batches live in the same database but are outside the agent's
# reach, so their ids are plain integer columns.
# -----------------------------------------------------------------------------


# =========================
# People
# =========================
class Student(Base):
    __tablename__ = "Students"

    id = Column("StudentId", Integer, primary_key=True, autoincrement=True)
    user_id = Column("UserId", Integer, nullable=True, index=True)
    roll_number = Column("RollNumber", String(50))
    first_name = Column("FirstName", String(100))
    last_name = Column("LastName", String(100))
    batch_id = Column("BatchId", Integer)
    is_active = Column("IsActive", Boolean, default=True)

    attendances = relationship("Attendance", back_populates="student")
    enrollments = relationship("Enrollment", back_populates="student")


class Teacher(Base):
    __tablename__ = "Teachers"

    id = Column("TeacherId", Integer, primary_key=True, autoincrement=True)
    user_id = Column("UserId", Integer, nullable=False, index=True)
    first_name = Column("FirstName", String(100), nullable=False)
    last_name = Column("LastName", String(100), nullable=False)
    is_active = Column("IsActive", Boolean, default=True)

    assignments = relationship("CourseAssignment", back_populates="teacher")


# =========================
# Catalogue
# =========================
class Course(Base):
    __tablename__ = "Courses"

    id = Column("CourseId", Integer, primary_key=True, autoincrement=True)
    code = Column("CourseCode", String(20))
    name = Column("CourseName", String(200))
    credit_hours = Column("CreditHours", Integer)
    is_active = Column("IsActive", Boolean, default=True)


class Semester(Base):
    __tablename__ = "Semesters"

    id = Column("SemesterId", Integer, primary_key=True, autoincrement=True)
    name = Column("SemesterName", String(100), nullable=False)
    year = Column("Year", Integer, nullable=False)
    start_date = Column("StartDate", Date, nullable=False)
    end_date = Column("EndDate", Date, nullable=False)
    is_active = Column("IsActive", Boolean, default=False)


class CourseAssignment(Base):
    """A teacher teaching a course to a batch during a semester."""

    __tablename__ = "CourseAssignments"

    id = Column("AssignmentId", Integer, primary_key=True, autoincrement=True)
    teacher_id = Column(
        "TeacherId", Integer, ForeignKey("Teachers.TeacherId"), index=True
    )
    course_id = Column("CourseId", Integer, ForeignKey("Courses.CourseId"))
    batch_id = Column("BatchId", Integer)
    semester_id = Column("SemesterId", Integer, ForeignKey("Semesters.SemesterId"))
    is_active = Column("IsActive", Boolean, default=True)

    teacher = relationship("Teacher", back_populates="assignments")
    course = relationship("Course")
    sessions = relationship("Session", back_populates="course_assignment")


class Enrollment(Base):
    __tablename__ = "Enrollments"

    id = Column("EnrollmentId", Integer, primary_key=True, autoincrement=True)
    student_id = Column(
        "StudentId", Integer, ForeignKey("Students.StudentId"), index=True
    )
    course_id = Column("CourseId", Integer, ForeignKey("Courses.CourseId"))
    batch_id = Column("BatchId", Integer)
    semester_id = Column("SemesterId", Integer, ForeignKey("Semesters.SemesterId"))
    status = Column("Status", String(30))

    student = relationship("Student", back_populates="enrollments")


# =========================
# Attendance
# =========================
class Session(Base):
    """One scheduled class meeting of a course assignment."""

    __tablename__ = "Sessions"

    id = Column("SessionId", Integer, primary_key=True, autoincrement=True)
    course_assignment_id = Column(
        "CourseAssignmentId",
        Integer,
        ForeignKey("CourseAssignments.AssignmentId"),
        index=True,
    )
    session_date = Column("SessionDate", Date)
    start_time = Column("StartTime", Time)
    end_time = Column("EndTime", Time)
    created_by = Column("CreatedBy", Integer)

    course_assignment = relationship("CourseAssignment", back_populates="sessions")
    attendances = relationship("Attendance", back_populates="session")


class Attendance(Base):
    __tablename__ = "Attendance"

    id = Column("AttendanceId", Integer, primary_key=True, autoincrement=True)
    session_id = Column("SessionId", Integer, ForeignKey("Sessions.SessionId"))
    student_id = Column(
        "StudentId", Integer, ForeignKey("Students.StudentId"), index=True
    )
    status = Column("Status", String(20))  # Present / Absent / Late
    marked_by = Column("MarkedBy", Integer)

    session = relationship("Session", back_populates="attendances")
    student = relationship("Student", back_populates="attendances")
