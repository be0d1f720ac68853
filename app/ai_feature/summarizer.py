from typing import Any, Dict, List, Sequence

from app.ai_feature.actor import (
    ActorContext,
    AdminActor,
    StudentActor,
    TeacherActor,
)
from app.ai_feature.llm import LLMClient, Message, history_messages, system, user
from app.core.config import settings
from app.core.schemas import ChatRequest

SUMMARY_ROWS = 20


def _role_context(actor: ActorContext) -> str:
    if isinstance(actor, StudentActor):
        return (
            "You are chatting with a STUDENT. Use 'you/your' when referring to "
            "their data (your courses, your attendance, your teachers)."
        )
    if isinstance(actor, TeacherActor):
        return (
            "You are chatting with a TEACHER. Use 'you/your' when referring to "
            "their data (your courses, your students, your sessions)."
        )
    if isinstance(actor, AdminActor):
        return "You are chatting with an ADMIN who has full read access."
    return "You are chatting with a user."


def format_rows(rows: Sequence[Dict[str, Any]]) -> str:
    return "\n".join(
        ", ".join(f"{key}={value}" for key, value in row.items()) for row in rows
    )


def build_summary_messages(
    actor: ActorContext,
    request: ChatRequest,
    sql: str,
    rows: Sequence[Dict[str, Any]],
) -> List[Message]:
    preview = list(rows[:SUMMARY_ROWS])

    messages = history_messages(request.history, settings.HISTORY_LIMIT)
    messages.append(
        system(
            "You are a helpful attendance assistant. Summarize the query results in plain language.\n"
            "Rules:\n"
            "- Keep it short.\n"
            "- If there are 0 rows, say so plainly and suggest a follow-up filter.\n"
            "- Never output SQL.\n"
            f"- {_role_context(actor)}\n"
        )
    )
    messages.append(
        user(
            f"User question: {request.message}\n\n"
            f"SQL (for context only, do not repeat):\n{sql}\n\n"
            f"Rows returned: {len(rows)}\n"
            f"Rows preview:\n{format_rows(preview) or '(no rows)'}"
        )
    )
    return messages


async def summarize(
    llm: LLMClient,
    actor: ActorContext,
    request: ChatRequest,
    sql: str,
    rows: Sequence[Dict[str, Any]],
) -> str:
    reply = await llm.complete(build_summary_messages(actor, request, sql, rows))
    return reply or fallback_summary(rows)


def fallback_summary(rows: Sequence[Dict[str, Any]]) -> str:
    # Plain answer when the model is unavailable for the summary step
    if not rows:
        return "No matching records were found."
    if len(rows) == 1 and len(rows[0]) == 1:
        (column, value), = rows[0].items()
        return f"{column} = {value}"
    return f"Query returned {len(rows)} rows."
