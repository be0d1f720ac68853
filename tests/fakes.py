import json
from types import SimpleNamespace

from app.ai_feature.llm import LLMClient
from app.core.security import create_access_token


class FakeLLM(LLMClient):
    """Scripted stand-in for the chat completions provider."""

    def __init__(self, *replies):
        self.model = "fake-model"
        self.temperature = 0.0
        self.replies = list(replies)
        self.calls = []

    def is_available(self):
        return True

    async def chat(self, messages, tools=None, tool_choice=None):
        self.calls.append(
            {"messages": list(messages), "tools": tools, "tool_choice": tool_choice}
        )
        if not self.replies:
            raise AssertionError("Unexpected LLM call")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, str):
            return SimpleNamespace(content=reply, tool_calls=None)
        return reply


def tool_call(name, arguments, call_id="call_1"):
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return SimpleNamespace(
        id=call_id,
        type="function",
        function=SimpleNamespace(name=name, arguments=arguments),
    )


def tool_reply(*calls, content=None):
    return SimpleNamespace(content=content, tool_calls=list(calls))


def bearer_headers(claims):
    token = create_access_token(claims)
    return {"Authorization": f"Bearer {token}"}
