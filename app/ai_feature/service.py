"""Attendance agent orchestration.

Flow:
1. Resolve the actor from token claims
2. Classify intent (read / write)
3. Read: generate SQL -> audit -> execute read-only -> summarize
4. Write: teacher only -> explicit confirmation -> MarkAttendance tool flow
"""

import logging
from typing import Optional

from openai import RateLimitError
from sqlalchemy.ext.asyncio import AsyncSession

from app.ai_feature.actor import (
    ActorContext,
    Anonymous,
    StudentActor,
    TeacherActor,
    resolve_actor,
)
from app.ai_feature.auditor import AuditVerdict, SqlValidator, TextualSqlAuditor
from app.ai_feature.executor import execute_read_only
from app.ai_feature.generator import generate_sql
from app.ai_feature.intent import Intent, classify_intent
from app.ai_feature.llm import LLMClient
from app.ai_feature.summarizer import fallback_summary, summarize
from app.ai_feature.write_flow import run_write_flow
from app.core.config import settings
from app.core.schemas import ChatRequest, ChatResponse
from app.core.security import Principal

logger = logging.getLogger(__name__)

MESSAGE_REQUIRED = "Message is required."
NOT_AUTHENTICATED = "Not authenticated."
NO_AGENT_ROLE = "Your account has no role that can use the attendance agent."
UNRESOLVED_STUDENT = "Could not resolve your student profile."
UNRESOLVED_TEACHER = "Could not resolve your teacher profile."
TEACHERS_ONLY = "Only teachers can mark attendance via the agent."
GENERATION_FAILED = "SQL generation failed."
READ_FAILED = "AI read flow failed."
WRITE_FAILED = "AI write flow failed."
RATE_LIMITED = "The AI service rate limit has been reached. Please try again later."
BLOCKED = "Blocked by SQL safety policy."
CONFIRMATION_REQUIRED = "Confirmation required."
CONFIRMATION_PROMPT = "Confirm to proceed with the attendance change."


def _fail(message: str) -> ChatResponse:
    return ChatResponse(success=False, message=message)


def _blocked(verdict: AuditVerdict) -> ChatResponse:
    return ChatResponse(
        success=True,
        message=BLOCKED,
        assistant_message=verdict.user_message,
        audit_decision=verdict.decision,
        proposed_sql=verdict.normalized_sql,
    )


def _precheck(actor: ActorContext) -> Optional[str]:
    """Input errors that stop the request before any model or SQL work."""
    if isinstance(actor, Anonymous):
        return NOT_AUTHENTICATED if actor.user_id is None else NO_AGENT_ROLE
    if isinstance(actor, StudentActor) and actor.student_id is None:
        return UNRESOLVED_STUDENT
    if isinstance(actor, TeacherActor) and actor.teacher_id is None:
        return UNRESOLVED_TEACHER
    return None


async def run_read_flow(
    actor: ActorContext,
    request: ChatRequest,
    db: AsyncSession,
    llm: LLMClient,
    validator: SqlValidator,
) -> ChatResponse:
    """
    Generate, audit, execute and summarize one read request.

    A denied statement is sent back to the writer with the auditor's reasons,
    up to SQL_MAX_RETRIES more times. The last denial is returned as is.
    """
    feedback: Optional[str] = None
    verdict: Optional[AuditVerdict] = None

    for attempt in range(settings.SQL_MAX_RETRIES + 1):
        try:
            sql = await generate_sql(llm, actor, request, feedback)
        except RateLimitError:
            raise
        except Exception:
            logger.exception("SQL generation failed")
            return _fail(GENERATION_FAILED)

        verdict = validator.validate(sql, actor)
        if verdict.approved:
            break

        logger.info(
            f"[User {actor.user_id}] SQL blocked on attempt {attempt + 1}: "
            + "; ".join(verdict.issues)
        )
        feedback = (
            "The previous SQL was rejected by safety policy:\n"
            f"{verdict.user_message}\nRejected SQL: {sql}"
        )
    else:
        return _blocked(verdict)

    try:
        rows = await execute_read_only(db, verdict.normalized_sql, verdict.parameters)
    except Exception:
        logger.exception("AI read flow failed")
        return _fail(READ_FAILED)

    try:
        summary = await summarize(llm, actor, request, verdict.normalized_sql, rows)
    except RateLimitError:
        raise
    except Exception:
        logger.exception("Result summarization failed, using plain summary")
        summary = fallback_summary(rows)

    return ChatResponse(
        success=True,
        message="OK",
        assistant_message=summary,
        audit_decision=verdict.decision,
        proposed_sql=verdict.normalized_sql,
        rows_preview=rows[: settings.PREVIEW_ROWS],
    )


async def run_write_request(
    actor: ActorContext, request: ChatRequest, llm: LLMClient
) -> ChatResponse:
    if not isinstance(actor, TeacherActor):
        return _fail(TEACHERS_ONLY)

    if not request.confirmed:
        return ChatResponse(
            success=True,
            message=CONFIRMATION_REQUIRED,
            assistant_message="I can help mark attendance, but I need your confirmation first.",
            requires_confirmation=True,
            confirmation_prompt=CONFIRMATION_PROMPT,
        )

    try:
        reply = await run_write_flow(llm, actor, request)
    except RateLimitError:
        raise
    except Exception:
        logger.exception("AI write flow failed")
        return _fail(WRITE_FAILED)

    return ChatResponse(success=True, message="OK", assistant_message=reply)


async def handle_chat(
    request: ChatRequest,
    principal: Principal,
    db: AsyncSession,
    llm: LLMClient,
    validator: Optional[SqlValidator] = None,
) -> ChatResponse:
    if not request.message or not request.message.strip():
        return _fail(MESSAGE_REQUIRED)

    actor = await resolve_actor(principal, db)
    problem = _precheck(actor)
    if problem:
        return _fail(problem)

    validator = validator or TextualSqlAuditor(row_limit=settings.SQL_ROW_LIMIT)
    intent = classify_intent(request.message)
    logger.info(f"[User {actor.user_id}] {actor.role.value} request routed to {intent.value}")

    try:
        if intent == Intent.WRITE:
            return await run_write_request(actor, request, llm)
        return await run_read_flow(actor, request, db, llm, validator)
    except RateLimitError:
        logger.warning("AI rate limit reached (429)")
        return _fail(RATE_LIMITED)
