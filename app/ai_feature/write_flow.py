import json
import logging
from typing import Any, Dict, List

from app.ai_feature.actor import TeacherActor
from app.ai_feature.intent import ATTENDANCE_STATUSES
from app.ai_feature.llm import LLMClient, Message, history_messages, system, user
from app.core.config import settings
from app.core.schemas import ChatRequest

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# WRITE PATH
# The model gets exactly one callable action. Tool calls are routed to that
# single command object by name; nothing else coming from model output is run.
# -----------------------------------------------------------------------------


class MarkAttendanceAction:
    """
    Mark one student's attendance status.

    Persisting the status belongs to the attendance application; this action
    validates its arguments, logs the request and reports the outcome as text.
    Ordinary bad input is answered with a message, not an exception.
    """

    name = "MarkAttendance"
    description = "Mark a student's attendance as present, absent or late."

    def schema(self) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {
                        "studentId": {
                            "type": "integer",
                            "description": "StudentId of the student to mark.",
                        },
                        "status": {
                            "type": "string",
                            "enum": list(ATTENDANCE_STATUSES),
                            "description": "Attendance status.",
                        },
                    },
                    "required": ["studentId", "status"],
                },
            },
        }

    def invoke(self, student_id: Any, status: Any) -> str:
        if isinstance(student_id, bool):
            return "Invalid studentId."
        if isinstance(student_id, float) and not student_id.is_integer():
            return "Invalid studentId."
        try:
            student_id = int(student_id)
        except (TypeError, ValueError):
            return "Invalid studentId."
        if student_id <= 0:
            return "Invalid studentId."

        normalized = status.strip().lower() if isinstance(status, str) else ""
        if normalized not in ATTENDANCE_STATUSES:
            return "Invalid status. Use Present, Absent, or Late."

        logger.info(
            f"[Agent] MarkAttendance called for StudentId={student_id}, Status={normalized}"
        )
        return f"Attendance marked: StudentId={student_id}, Status={normalized}."


def build_write_messages(actor: TeacherActor, request: ChatRequest) -> List[Message]:
    messages = history_messages(request.history, settings.HISTORY_LIMIT)
    messages.append(
        system(
            "You are the Attendance Manager Agent for an academic management system.\n"
            "Rules:\n"
            "- You are operating for role: Teacher\n"
            "- You ONLY help with attendance-related tasks.\n"
            f"- To mark attendance, call the tool {MarkAttendanceAction.name}(studentId, status).\n"
            "- If the request is missing the studentId or the status, ask a short clarifying question.\n"
            "- Do not output SQL.\n"
        )
    )
    messages.append(user(request.message))
    return messages


def _dispatch(action: MarkAttendanceAction, tool_call: Any) -> str:
    name = tool_call.function.name
    if name != action.name:
        logger.warning(f"Model requested unknown action '{name}'")
        return f"Unknown action '{name}'. Only {action.name} is available."

    try:
        arguments = json.loads(tool_call.function.arguments or "{}")
    except json.JSONDecodeError:
        arguments = {}
    if not isinstance(arguments, dict):
        arguments = {}

    return action.invoke(arguments.get("studentId"), arguments.get("status"))


async def run_write_flow(
    llm: LLMClient, actor: TeacherActor, request: ChatRequest
) -> str:
    """Let the model call MarkAttendance and return its final reply."""
    action = MarkAttendanceAction()
    messages = build_write_messages(actor, request)
    tool_results: List[str] = []

    for _ in range(settings.TOOL_MAX_ROUNDS):
        message = await llm.chat(messages, tools=[action.schema()], tool_choice="auto")
        tool_calls = getattr(message, "tool_calls", None) or []

        if not tool_calls:
            return (message.content or "").strip()

        messages.append(
            {
                "role": "assistant",
                "content": message.content or "",
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.function.name,
                            "arguments": call.function.arguments,
                        },
                    }
                    for call in tool_calls
                ],
            }
        )
        for call in tool_calls:
            result = _dispatch(action, call)
            tool_results.append(result)
            messages.append({"role": "tool", "tool_call_id": call.id, "content": result})

    # Model kept calling tools; report what the action said
    return " ".join(tool_results)
