import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from openai import AsyncOpenAI

from app.ai_feature.errors import LLMNotConfiguredError
from app.core.config import settings
from app.core.schemas import ChatTurn, TurnRole

logger = logging.getLogger(__name__)

Message = Dict[str, Any]


class LLMClient:
    """Thin async wrapper around an OpenAI-compatible chat completions API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> None:
        api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.model = model or settings.OPENAI_MODEL
        self.temperature = (
            temperature if temperature is not None else settings.LLM_TEMPERATURE
        )

        if not api_key:
            self._client = None
            logger.warning("OPENAI_API_KEY not set. Agent features will be disabled.")
        else:
            self._client = AsyncOpenAI(
                api_key=api_key, base_url=base_url or settings.OPENAI_BASE_URL
            )

    def is_available(self) -> bool:
        return self._client is not None

    async def chat(
        self,
        messages: Sequence[Message],
        tools: Optional[List[Dict[str, Any]]] = None,
        tool_choice: Optional[str] = None,
    ) -> Any:
        """Run one completion and return the assistant message object."""
        if self._client is None:
            raise LLMNotConfiguredError(
                "LLM is not available. Set OPENAI_API_KEY in environment."
            )

        kwargs: Dict[str, Any] = {
            "model": self.model,
            "messages": list(messages),
            "temperature": self.temperature,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = tool_choice or "auto"

        completion = await self._client.chat.completions.create(**kwargs)
        return completion.choices[0].message

    async def complete(self, messages: Sequence[Message]) -> str:
        message = await self.chat(messages)
        return (message.content or "").strip()


def history_messages(history: Iterable[ChatTurn], limit: int) -> List[Message]:
    """Most recent `limit` turns of caller-supplied history as chat messages."""
    turns = list(history)
    if limit <= 0:
        return []
    return [
        {"role": turn.role.value, "content": turn.content}
        for turn in turns[-limit:]
    ]


def system(content: str) -> Message:
    return {"role": TurnRole.SYSTEM.value, "content": content}


def user(content: str) -> Message:
    return {"role": TurnRole.USER.value, "content": content}


_FENCE_OPEN_RE = re.compile(r"^```(?:sql|tsql|mssql)?\s*", re.IGNORECASE)
_FENCE_CLOSE_RE = re.compile(r"\s*```$")


def strip_code_fences(text: Optional[str]) -> str:
    if not text or not text.strip():
        return ""
    cleaned = text.strip()
    cleaned = _FENCE_OPEN_RE.sub("", cleaned)
    cleaned = _FENCE_CLOSE_RE.sub("", cleaned)
    return cleaned.strip()


llm_client = LLMClient()


def get_llm() -> LLMClient:
    return llm_client
