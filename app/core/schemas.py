from typing import Optional, List, Dict, Any
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# =========================
# Enums
# =========================
class UserRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class TurnRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


# =========================
# CHAT
# =========================
class ChatTurn(BaseModel):
    role: TurnRole = TurnRole.USER
    content: str = ""

    model_config = ConfigDict(frozen=True)

    # Anything the client sends that is not a known role is treated as user text
    @field_validator("role", mode="before")
    @classmethod
    def coerce_role(cls, value):
        if isinstance(value, str):
            value = value.strip().lower()
        if value in {r.value for r in TurnRole}:
            return value
        return TurnRole.USER

    @field_validator("content", mode="before")
    @classmethod
    def coerce_content(cls, value):
        return value or ""


class ChatRequest(BaseModel):
    message: str = ""
    confirmed: bool = False
    history: List[ChatTurn] = Field(default_factory=list)

    # Null or missing message becomes blank
    @field_validator("message", mode="before")
    @classmethod
    def coerce_message(cls, value):
        return value or ""

    @field_validator("history", mode="before")
    @classmethod
    def coerce_history(cls, value):
        return value or []


class ChatResponse(BaseModel):
    success: bool
    message: str
    assistant_message: Optional[str] = None
    requires_confirmation: bool = False
    confirmation_prompt: Optional[str] = None
    audit_decision: Optional[str] = None
    proposed_sql: Optional[str] = None
    rows_preview: Optional[List[Dict[str, Any]]] = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AgentHealthResponse(BaseModel):
    status: str
    llm_configured: bool
    model: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
