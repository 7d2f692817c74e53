import json

import pytest

from assistant_core.domain.exceptions import ValidationError
from assistant_core.domain.models import ChatChoice, ChatMessage, ChatResult
from assistant_core.tools.definitions import ToolCall
from assistant_core.tools.gpt_tool import GptTool
from assistant_core.tools.registry import ToolRegistry
from assistant_core.tools.shell_tool import ShellTool


class FakeProvider:
    name = "fake"

    def __init__(self, reply):
        self.reply = reply
        self.requests = []

    def chat(self, req):
        self.requests.append(req)
        return ChatResult(provider="fake", model=req.model, choices=[ChatChoice(index=0, message=self.reply)])


def make_tool(reply):
    registry = ToolRegistry()
    registry.register(ShellTool())
    provider = FakeProvider(reply)
    tool = GptTool(provider, registry, model="chat")
    registry.register(tool)
    return tool, provider


def test_returns_reply_text_without_tools():
    tool, provider = make_tool(ChatMessage(role="assistant", content="42"))
    out = tool.execute({"messages": [{"role": "user", "content": "answer?"}]})
    assert out == "42"
    req = provider.requests[0]
    assert req.model == "chat"
    assert req.tools is None
    assert [(m.role, m.content) for m in req.messages] == [("user", "answer?")]


def test_model_override_and_tool_calls_returned_as_json():
    reply = ChatMessage(
        role="assistant",
        content="",
        tool_calls=[ToolCall(id="x", name="shell_tool", arguments={"commands": [{"command": "pwd"}]})],
    )
    tool, provider = make_tool(reply)
    out = tool.execute(
        {"messages": [{"role": "user", "content": "where am I"}], "model": "gpt-4o-mini", "include_tools": True}
    )
    assert json.loads(out) == [{"name": "shell_tool", "arguments": {"commands": [{"command": "pwd"}]}}]
    req = provider.requests[0]
    assert req.model == "gpt-4o-mini"
    assert [d.name for d in req.tools] == ["shell_tool", "gpt_tool"]


@pytest.mark.parametrize(
    "arguments",
    [
        {},
        {"messages": []},
        {"messages": [{"role": "tool", "content": "x"}]},
        {"messages": [{"role": "user"}]},
        {"messages": [{"role": "user", "content": "x"}], "include_tools": "yes"},
    ],
)
def test_invalid_messages(arguments):
    tool, provider = make_tool(ChatMessage(role="assistant", content="unused"))
    with pytest.raises(ValidationError):
        tool.execute(arguments)
    assert provider.requests == []
