import tempfile
from pathlib import Path

import pytest

from assistant_core.domain.exceptions import ExecutionError, ValidationError
from assistant_core.tools.shell_tool import ShellTool


def test_execute_shell_commands():
    tool = ShellTool()
    out = tool.execute({"commands": [{"command": "echo", "args": ["Hello, world!"]}]})
    assert out == "Hello, world!"


def test_multiple_commands_joined_by_newline():
    tool = ShellTool()
    out = tool.execute(
        {"commands": [{"command": "echo", "args": ["one"]}, {"command": "echo", "args": ["two"]}]}
    )
    assert out == "one\ntwo"


def test_commands_as_json_string():
    tool = ShellTool()
    out = tool.execute({"commands": '[{"command": "echo", "args": ["encoded"]}]'})
    assert out == "encoded"


def test_stdin_is_fed_to_first_command():
    tool = ShellTool()
    out = tool.execute({"commands": [{"command": "grep", "args": ["-c", "txt"]}], "stdin": "a.txt\nb.txt\nc.md"})
    assert out == "2"


def test_runs_in_working_directory():
    with tempfile.TemporaryDirectory() as d:
        (Path(d) / "only.txt").write_text("x", encoding="utf-8")
        tool = ShellTool(cwd=Path(d))
        assert tool.execute({"commands": [{"command": "ls"}]}) == "only.txt"


def test_command_not_found():
    tool = ShellTool()
    with pytest.raises(ExecutionError) as exc_info:
        tool.execute({"commands": [{"command": "nonexistent-cmd-xyz", "args": ["arg1"]}]})
    assert exc_info.value.code == "COMMAND_NOT_FOUND"
    assert "Command `nonexistent-cmd-xyz` not found" in exc_info.value.message


def test_nonzero_exit_reports_stderr():
    with tempfile.TemporaryDirectory() as d:
        tool = ShellTool(cwd=Path(d))
        with pytest.raises(ExecutionError) as exc_info:
            tool.execute({"commands": [{"command": "ls", "args": ["does-not-exist"]}]})
    assert exc_info.value.code == "COMMAND_FAILED"
    assert "does-not-exist" in exc_info.value.message
    assert exc_info.value.extra["exit_code"] != 0


def test_timeout():
    tool = ShellTool(timeout=0.2)
    with pytest.raises(ExecutionError) as exc_info:
        tool.execute({"commands": [{"command": "sleep", "args": ["5"]}]})
    assert exc_info.value.code == "COMMAND_TIMEOUT"


@pytest.mark.parametrize(
    "arguments",
    [
        {},
        {"commands": []},
        {"commands": [{"args": ["-l"]}]},
        {"commands": [{"command": "echo", "args": "hello"}]},
        {"commands": ["echo"]},
        {"commands": [{"command": "echo"}], "stdin": 3},
    ],
)
def test_invalid_arguments(arguments):
    with pytest.raises(ValidationError):
        ShellTool().execute(arguments)


def test_validation_happens_before_any_command_runs():
    with tempfile.TemporaryDirectory() as d:
        tool = ShellTool(cwd=Path(d))
        with pytest.raises(ValidationError):
            tool.execute({"commands": [{"command": "touch", "args": ["made.txt"]}, {"args": []}]})
        assert not (Path(d) / "made.txt").exists()
