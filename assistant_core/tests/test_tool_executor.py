import tempfile
from pathlib import Path

import pytest

from assistant_core.config.settings import settings
from assistant_core.domain.exceptions import RegistrationError
from assistant_core.domain.models import ChatChoice, ChatMessage, ChatResult
from assistant_core.tools.base import Tool, require_str
from assistant_core.tools.definitions import ToolCall, ToolDef
from assistant_core.tools.executor import ToolExecutor, build_default_registry
from assistant_core.tools.registry import ToolRegistry


class SideEffectTool(Tool):
    definition = ToolDef(name="touch", description="records calls")

    def __init__(self):
        self.calls = []

    def execute(self, arguments):
        path = require_str(self.name, arguments, "path")
        self.calls.append(path)
        return f"touched {path}"


class CrashTool(Tool):
    definition = ToolDef(name="crash", description="raises")

    def execute(self, arguments):
        raise KeyError("missing")


class FakeProvider:
    name = "fake"

    def chat(self, req):
        msg = ChatMessage(role="assistant", content="nested")
        return ChatResult(provider="fake", model=req.model, choices=[ChatChoice(index=0, message=msg)])


def make_executor(approve=None):
    registry = ToolRegistry()
    tool = SideEffectTool()
    registry.register(tool)
    registry.register(CrashTool())
    registry.freeze()
    return ToolExecutor(registry, approve=approve), tool


def test_unknown_tool_produces_failure_result_with_name():
    executor, tool = make_executor()
    result = executor.execute(ToolCall(id="c1", name="made_up_tool", arguments={}))
    assert result.success is False
    assert result.call_id == "c1"
    assert "made_up_tool" in result.content
    assert result.content.startswith("Error [TOOL_NOT_FOUND]")
    assert tool.calls == []


def test_successful_call():
    executor, tool = make_executor()
    result = executor.execute(ToolCall(id="c2", name="touch", arguments={"path": "a.txt"}))
    assert result.success
    assert result.content == "touched a.txt"
    assert tool.calls == ["a.txt"]


def test_validation_failure_has_no_side_effect():
    executor, tool = make_executor()
    result = executor.execute(ToolCall(id="c3", name="touch", arguments={"path": 42}))
    assert not result.success
    assert "INVALID_ARGUMENTS" in result.content
    assert tool.calls == []


def test_unparseable_arguments_are_rejected():
    executor, tool = make_executor()
    result = executor.execute(ToolCall(id="c4", name="touch", arguments={"_raw": "{not json"}))
    assert not result.success
    assert "not valid JSON" in result.content
    assert tool.calls == []


def test_unexpected_exception_is_converted():
    executor, _ = make_executor()
    result = executor.execute(ToolCall(id="c5", name="crash", arguments={}))
    assert not result.success
    assert result.content.startswith("Error [TOOL_CRASHED]: crash")


def test_rejected_call_is_not_executed():
    seen = []

    def approve(call):
        seen.append(call.name)
        return False

    executor, tool = make_executor(approve=approve)
    result = executor.execute(ToolCall(id="c6", name="touch", arguments={"path": "a"}))
    assert seen == ["touch"]
    assert not result.success
    assert result.content == "User rejected tool call: touch"
    assert tool.calls == []


def test_repeated_calls_are_not_cached():
    executor, tool = make_executor()
    call = ToolCall(id="c7", name="touch", arguments={"path": "same"})
    executor.execute(call)
    executor.execute(call)
    assert tool.calls == ["same", "same"]


def test_default_registry_order_and_freeze():
    with tempfile.TemporaryDirectory() as d:
        cfg = settings.model_copy(update={"workspace_root": d})
        registry = build_default_registry(cfg)
        assert registry.names() == ["shell_tool", "file_tool", "snap_tool", "pipeline_tool"]
        assert registry.frozen
        with pytest.raises(RegistrationError):
            registry.register(SideEffectTool())

        with_gpt = build_default_registry(cfg, provider=FakeProvider())
        assert with_gpt.names() == ["shell_tool", "file_tool", "snap_tool", "gpt_tool", "pipeline_tool"]


def test_default_registry_tools_use_workspace_root():
    with tempfile.TemporaryDirectory() as d:
        cfg = settings.model_copy(update={"workspace_root": d})
        executor = ToolExecutor(build_default_registry(cfg))
        created = executor.execute(
            ToolCall(
                id="1",
                name="file_tool",
                arguments={"operations": [{"op": "create", "file_path": "notes.txt", "content": "hi"}]},
            )
        )
        assert created.success
        listed = executor.execute(
            ToolCall(id="2", name="shell_tool", arguments={"commands": [{"command": "ls"}]})
        )
        assert listed.content == "notes.txt"
        assert (Path(d) / "notes.txt").read_text(encoding="utf-8") == "hi"
