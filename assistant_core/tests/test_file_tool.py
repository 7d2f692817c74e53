import tempfile
from pathlib import Path

import pytest

from assistant_core.domain.exceptions import ExecutionError, ValidationError
from assistant_core.tools.file_tool import FileTool


def make_tool(d):
    return FileTool(root=Path(d).resolve())


def test_create_and_edit_lines():
    with tempfile.TemporaryDirectory() as d:
        tool = make_tool(d)
        out = tool.execute(
            {
                "operations": [
                    {"op": "create", "file_path": "pkg/a.txt", "content": "one\ntwo\nthree\n"},
                    {"op": "updateline", "file_path": "pkg/a.txt", "line": 2, "content": "TWO"},
                    {"op": "insertline", "file_path": "pkg/a.txt", "line": 1, "content": "zero"},
                    {"op": "deleteline", "file_path": "pkg/a.txt", "line": 4},
                ]
            }
        )
        assert out.startswith("File operations completed successfully.")
        assert "- create pkg/a.txt" in out
        assert (Path(d) / "pkg" / "a.txt").read_text(encoding="utf-8") == "zero\none\nTWO\n"


def test_insert_past_end_appends():
    with tempfile.TemporaryDirectory() as d:
        (Path(d) / "a.txt").write_text("x\n", encoding="utf-8")
        make_tool(d).execute({"operations": [{"op": "insertline", "file_path": "a.txt", "line": 99, "content": "y"}]})
        assert (Path(d) / "a.txt").read_text(encoding="utf-8") == "x\ny\n"


def test_delete_file():
    with tempfile.TemporaryDirectory() as d:
        target = Path(d) / "gone.txt"
        target.write_text("bye", encoding="utf-8")
        make_tool(d).execute({"operations": [{"op": "delete", "file_path": "gone.txt"}]})
        assert not target.exists()


def test_operations_as_json_string():
    with tempfile.TemporaryDirectory() as d:
        make_tool(d).execute({"operations": '[{"op": "create", "file_path": "j.txt", "content": "ok"}]'})
        assert (Path(d) / "j.txt").read_text(encoding="utf-8") == "ok"


def test_missing_file_and_line_out_of_range():
    with tempfile.TemporaryDirectory() as d:
        tool = make_tool(d)
        with pytest.raises(ExecutionError) as exc_info:
            tool.execute({"operations": [{"op": "delete", "file_path": "nope.txt"}]})
        assert exc_info.value.code == "FILE_NOT_FOUND"

        (Path(d) / "short.txt").write_text("only\n", encoding="utf-8")
        with pytest.raises(ExecutionError) as exc_info:
            tool.execute({"operations": [{"op": "updateline", "file_path": "short.txt", "line": 3, "content": "x"}]})
        assert exc_info.value.code == "LINE_OUT_OF_RANGE"


def test_path_outside_workspace_is_rejected():
    with tempfile.TemporaryDirectory() as d:
        tool = make_tool(d)
        with pytest.raises(ValidationError):
            tool.execute({"operations": [{"op": "create", "file_path": "../escape.txt", "content": "x"}]})
        assert not (Path(d).parent / "escape.txt").exists()


@pytest.mark.parametrize(
    "operation",
    [
        {"op": "rename", "file_path": "a.txt"},
        {"op": "create"},
        {"op": "create", "file_path": "a.txt"},
        {"op": "updateline", "file_path": "a.txt", "content": "x"},
        {"op": "deleteline", "file_path": "a.txt", "line": 0},
        {"op": "deleteline", "file_path": "a.txt", "line": True},
    ],
)
def test_invalid_operation_rejected_before_any_write(operation):
    with tempfile.TemporaryDirectory() as d:
        tool = make_tool(d)
        with pytest.raises(ValidationError):
            tool.execute(
                {"operations": [{"op": "create", "file_path": "first.txt", "content": "1"}, operation]}
            )
        assert not (Path(d) / "first.txt").exists()
