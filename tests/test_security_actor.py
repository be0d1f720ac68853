from datetime import datetime, timedelta, timezone

import jwt
import pytest

from app.ai_feature.actor import (
    AdminActor,
    Anonymous,
    StudentActor,
    TeacherActor,
    resolve_actor,
    role_label,
)
from app.core.config import settings
from app.core.schemas import UserRole
from app.core.security import ANONYMOUS, Principal, create_access_token, decode_principal


# =========================
# Token claims
# =========================
def test_single_role_claim():
    principal = decode_principal(create_access_token({"user_id": 10, "role": "Teacher"}))

    assert principal.authenticated
    assert principal.user_id == 10
    assert principal.has_role(UserRole.TEACHER)
    assert not principal.has_role(UserRole.ADMIN)


def test_roles_list_claim():
    token = create_access_token({"user_id": "5", "roles": ["ADMIN", " Student "]})
    principal = decode_principal(token)

    assert principal.user_id == 5
    assert principal.roles == frozenset({"admin", "student"})


@pytest.mark.parametrize("token", [None, "", "not-a-jwt"])
def test_missing_or_garbled_token_is_anonymous(token):
    assert decode_principal(token) == ANONYMOUS


def test_wrong_signature_is_anonymous():
    token = jwt.encode({"user_id": 1, "role": "admin"}, "other-key", algorithm=settings.ALGORITHM)
    assert decode_principal(token) == ANONYMOUS


def test_expired_token_is_anonymous():
    token = jwt.encode(
        {"user_id": 1, "role": "admin", "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    assert decode_principal(token) == ANONYMOUS


@pytest.mark.parametrize("user_id", [None, "abc"])
def test_unusable_user_id_is_anonymous(user_id):
    claims = {"role": "student"}
    if user_id is not None:
        claims["user_id"] = user_id
    assert decode_principal(create_access_token(claims)) == ANONYMOUS


# =========================
# Actor resolution
# =========================
@pytest.mark.asyncio
async def test_anonymous_principal(db_session):
    actor = await resolve_actor(ANONYMOUS, db_session)
    assert actor == Anonymous()
    assert not actor.authenticated
    assert role_label(actor) == "USER"


@pytest.mark.asyncio
async def test_student_is_resolved_to_profile(db_session, school):
    principal = Principal(authenticated=True, user_id=20, roles=frozenset({"student"}))
    actor = await resolve_actor(principal, db_session)

    assert actor == StudentActor(user_id=20, student_id=7)
    assert actor.scope_id == 7
    assert role_label(actor) == "STUDENT"


@pytest.mark.asyncio
async def test_teacher_is_resolved_to_profile(db_session, school):
    principal = Principal(authenticated=True, user_id=10, roles=frozenset({"teacher"}))
    actor = await resolve_actor(principal, db_session)

    assert isinstance(actor, TeacherActor)
    assert actor.teacher_id == 3


@pytest.mark.asyncio
async def test_teacher_without_profile_keeps_no_scope(db_session, school):
    principal = Principal(authenticated=True, user_id=99, roles=frozenset({"teacher"}))
    actor = await resolve_actor(principal, db_session)

    assert actor == TeacherActor(user_id=99, teacher_id=None)


@pytest.mark.asyncio
async def test_admin_needs_no_lookup(db_session):
    principal = Principal(authenticated=True, user_id=1, roles=frozenset({"admin"}))
    assert await resolve_actor(principal, db_session) == AdminActor(user_id=1)


@pytest.mark.asyncio
async def test_most_restricted_role_wins(db_session, school):
    principal = Principal(
        authenticated=True, user_id=10, roles=frozenset({"admin", "teacher"})
    )
    actor = await resolve_actor(principal, db_session)
    assert isinstance(actor, TeacherActor)


@pytest.mark.asyncio
async def test_unknown_role_stays_anonymous_with_user(db_session):
    principal = Principal(authenticated=True, user_id=4, roles=frozenset({"parent"}))
    actor = await resolve_actor(principal, db_session)

    assert isinstance(actor, Anonymous)
    assert actor.user_id == 4
