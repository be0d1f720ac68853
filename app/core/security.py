from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Annotated, FrozenSet, Optional

import jwt
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from app.core.config import settings
from app.core.schemas import UserRole


@dataclass(frozen=True)
class Principal:
    """Claims read from the bearer token; nothing here touches the database."""

    authenticated: bool
    user_id: Optional[int] = None
    roles: FrozenSet[str] = frozenset()

    def has_role(self, role: UserRole) -> bool:
        return role.value in self.roles


ANONYMOUS = Principal(authenticated=False)


def create_access_token(data: dict):
    to_encode = data.copy()

    expire_time = datetime.now(timezone.utc) + timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    to_encode.update({"exp": expire_time})

    encoded_jwt = jwt.encode(
        to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM
    )

    return encoded_jwt


def _read_roles(payload: dict) -> FrozenSet[str]:
    # Identity providers send either a single "role" or a "roles" list
    raw = payload.get("roles")
    if raw is None:
        raw = payload.get("role")
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return frozenset()
    return frozenset(str(r).strip().lower() for r in raw if r)


def decode_principal(token: Optional[str]) -> Principal:
    if not token:
        return ANONYMOUS

    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    # Expired tokens are a subclass of InvalidTokenError
    except jwt.InvalidTokenError:
        return ANONYMOUS

    try:
        user_id = int(payload.get("user_id"))
    except (TypeError, ValueError):
        return ANONYMOUS

    return Principal(authenticated=True, user_id=user_id, roles=_read_roles(payload))


# The token is optional here: an anonymous caller gets a failure envelope from the agent
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)


async def get_current_principal(
    token: Annotated[Optional[str], Depends(oauth2_scheme)],
) -> Principal:
    return decode_principal(token)
