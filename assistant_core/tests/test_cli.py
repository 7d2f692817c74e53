import pytest

from assistant_core.agents.assistant import AssistantEvent
from assistant_core.cli import initial_conversation, parse_args, parse_command, print_event, request_approval
from assistant_core.domain.exceptions import ValidationError
from assistant_core.infrastructure.storage.json_store import JsonConversationStore
from assistant_core.tools.definitions import ToolCall, ToolResult


@pytest.mark.parametrize(
    "raw, kind, value",
    [
        ("exit", "exit", None),
        ("  QUIT ", "exit", None),
        ("list tools", "list_tools", None),
        ("load c-1234", "load", "c-1234"),
        ("how do I run the tests?", "prompt", "how do I run the tests?"),
        ("loader config please", "prompt", "loader config please"),
    ],
)
def test_parse_command(raw, kind, value):
    command = parse_command(raw)
    assert command.kind == kind
    assert command.value == value


def test_load_without_id_is_invalid():
    with pytest.raises(ValidationError) as exc_info:
        parse_command("load")
    assert exc_info.value.code == "INVALID_COMMAND"


def test_parse_args():
    args = parse_args(["fix the tests", "-m", "gpt-4o-mini", "-p", "kimi", "-l", "DEBUG", "-s", "-y"])
    assert args.initial_prompt == "fix the tests"
    assert args.model == "gpt-4o-mini"
    assert args.provider == "kimi"
    assert args.log_level == "DEBUG"
    assert args.state is True
    assert args.yes is True


def test_parse_args_rejects_unknown_provider():
    with pytest.raises(SystemExit):
        parse_args(["hi", "-p", "unknown"])


def test_request_approval(monkeypatch, capsys):
    call = ToolCall(id="1", name="shell_tool", arguments={"commands": [{"command": "ls"}]})
    monkeypatch.setattr("builtins.input", lambda prompt: "y")
    assert request_approval(call) is True
    assert "shell_tool" in capsys.readouterr().out

    monkeypatch.setattr("builtins.input", lambda prompt: "")
    assert request_approval(call) is False


def test_print_event_shows_tool_output(capsys):
    call = ToolCall(id="1", name="shell_tool", arguments={})
    print_event(AssistantEvent(kind="tool_result", call=call, result=ToolResult(call_id="1", content="a.txt")))
    assert "shell_tool =>\na.txt" in capsys.readouterr().out


def test_initial_conversation_starts_with_system_message(tmp_path):
    conv = initial_conversation(JsonConversationStore(root=tmp_path), "You are helpful")
    assert len(conv) == 1
    assert conv.messages[0].role == "system"
