from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import models
from app.core.schemas import UserRole
from app.core.security import Principal


# -----------------------------------------------------------------------------
# ACTOR MODULE
# The caller's role is resolved once per request into one of four immutable
# variants. Downstream code dispatches on the variant type and never re-reads
# claims.
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class Anonymous:
    user_id: Optional[int] = None

    authenticated = False
    role = None
    student_id = None
    teacher_id = None
    scope_id = None


@dataclass(frozen=True)
class StudentActor:
    user_id: int
    student_id: Optional[int] = None

    authenticated = True
    role = UserRole.STUDENT
    teacher_id = None

    @property
    def scope_id(self) -> Optional[int]:
        return self.student_id


@dataclass(frozen=True)
class TeacherActor:
    user_id: int
    teacher_id: Optional[int] = None

    authenticated = True
    role = UserRole.TEACHER
    student_id = None

    @property
    def scope_id(self) -> Optional[int]:
        return self.teacher_id


@dataclass(frozen=True)
class AdminActor:
    user_id: int

    authenticated = True
    role = UserRole.ADMIN
    student_id = None
    teacher_id = None
    scope_id = None


ActorContext = Union[Anonymous, StudentActor, TeacherActor, AdminActor]


def role_label(actor: ActorContext) -> str:
    if actor.role is None:
        return "USER"
    return actor.role.value.upper()


async def _lookup_teacher_id(user_id: int, db: AsyncSession) -> Optional[int]:
    query = select(models.Teacher.id).where(models.Teacher.user_id == user_id)
    result = await db.execute(query)
    return result.scalars().first()


async def _lookup_student_id(user_id: int, db: AsyncSession) -> Optional[int]:
    query = select(models.Student.id).where(models.Student.user_id == user_id)
    result = await db.execute(query)
    return result.scalars().first()


async def resolve_actor(principal: Principal, db: AsyncSession) -> ActorContext:
    """
    Turn token claims into an ActorContext.

    A user holding several roles gets the most tightly scoped one
    (teacher, then student, then admin). A teacher or student without a
    matching profile row keeps a None scope id; the agent refuses to serve
    such an actor.
    """
    if not principal.authenticated or principal.user_id is None:
        return Anonymous()

    user_id = principal.user_id

    if principal.has_role(UserRole.TEACHER):
        return TeacherActor(user_id, await _lookup_teacher_id(user_id, db))

    if principal.has_role(UserRole.STUDENT):
        return StudentActor(user_id, await _lookup_student_id(user_id, db))

    if principal.has_role(UserRole.ADMIN):
        return AdminActor(user_id)

    # Authenticated, but with no role this flow knows about
    return Anonymous(user_id)
