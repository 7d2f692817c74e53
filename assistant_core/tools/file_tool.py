from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from assistant_core.domain.exceptions import ExecutionError, ValidationError
from .base import Tool, ensure_mapping, require_list
from .definitions import ToolDef, ToolParam
from .paths import Workspace


FILE_OPS = ("create", "delete", "insertline", "deleteline", "updateline")
_NEEDS_CONTENT = {"create", "insertline", "updateline"}
_NEEDS_LINE = {"insertline", "deleteline", "updateline"}


@dataclass
class FileOperation:
    op: str
    path: Path
    content: Optional[str] = None
    line: Optional[int] = None


class FileTool(Tool):
    """文件增删改工具。

    所有操作先整体校验（操作类型、路径是否在工作区内、必填字段），
    全部通过后才依次落盘；执行中途失败时，之前已完成的操作不会回滚。
    行号从 1 开始。
    """

    definition = ToolDef(
        name="file_tool",
        description="对文件执行创建、删除、按行插入/删除/修改等操作",
        params={
            "operations": ToolParam(
                name="operations",
                description="按顺序执行的文件操作列表",
                required=True,
                schema={
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "op": {"type": "string", "enum": list(FILE_OPS), "description": "操作类型"},
                            "file_path": {"type": "string", "description": "相对项目根目录的文件路径"},
                            "content": {"type": "string", "description": "新文件内容或行内容"},
                            "line": {
                                "type": "integer",
                                "minimum": 1,
                                "description": "insertline / updateline / deleteline 使用的行号",
                            },
                        },
                        "required": ["op", "file_path"],
                    },
                },
            )
        },
    )

    def __init__(self, root: Optional[Path] = None, allow_absolute: bool = False):
        self._workspace = Workspace.at(root, allow_absolute)

    def execute(self, arguments: Dict[str, Any]) -> str:
        arguments = ensure_mapping(self.name, arguments)
        raw_ops = require_list(self.name, arguments, "operations")
        if not raw_ops:
            raise self._invalid("`operations` must not be empty")
        operations = [self._parse_operation(idx, raw) for idx, raw in enumerate(raw_ops)]

        handlers: Dict[str, Callable[[FileOperation], None]] = {
            "create": self._create,
            "delete": self._delete,
            "insertline": self._insert_line,
            "deleteline": self._delete_line,
            "updateline": self._update_line,
        }
        done: List[str] = []
        for operation in operations:
            try:
                handlers[operation.op](operation)
            except OSError as exc:
                raise ExecutionError(
                    code="FILE_IO_ERROR",
                    message=f"{operation.op} {self._display(operation.path)} failed: {exc}",
                )
            done.append(f"- {operation.op} {self._display(operation.path)}")
        return "File operations completed successfully.\n" + "\n".join(done)

    def _parse_operation(self, idx: int, raw: Any) -> FileOperation:
        if not isinstance(raw, dict):
            raise self._invalid(f"operation {idx} must be an object")
        op = str(raw.get("op") or "").strip().lower()
        if op not in FILE_OPS:
            raise self._invalid(f"operation {idx} has unknown op `{raw.get('op')}`")
        raw_path = raw.get("file_path")
        if not isinstance(raw_path, str) or not raw_path.strip():
            raise self._invalid(f"operation {idx} is missing `file_path`")
        path = self._workspace.resolve(raw_path)
        if path is None:
            raise self._invalid(f"operation {idx} path `{raw_path}` is outside the workspace")

        content = raw.get("content")
        if op in _NEEDS_CONTENT and not isinstance(content, str):
            raise self._invalid(f"operation {idx} ({op}) requires string `content`")
        line = raw.get("line")
        if op in _NEEDS_LINE:
            if isinstance(line, bool) or not isinstance(line, int) or line < 1:
                raise self._invalid(f"operation {idx} ({op}) requires a positive integer `line`")
        return FileOperation(op=op, path=path, content=content, line=line)

    def _invalid(self, message: str) -> ValidationError:
        return ValidationError(code="INVALID_ARGUMENTS", message=f"{self.name}: {message}")

    def _display(self, path: Path) -> str:
        return self._workspace.display(path)

    def _create(self, operation: FileOperation) -> None:
        operation.path.parent.mkdir(parents=True, exist_ok=True)
        self._write(operation.path, operation.content or "")

    def _delete(self, operation: FileOperation) -> None:
        if not operation.path.is_file():
            raise ExecutionError(
                code="FILE_NOT_FOUND",
                message=f"delete {self._display(operation.path)} failed: no such file",
            )
        operation.path.unlink()

    def _insert_line(self, operation: FileOperation) -> None:
        lines = self._read_lines(operation)
        # 行号超出文件长度时追加到末尾
        position = min(operation.line - 1, len(lines))
        lines.insert(position, operation.content)
        self._write_lines(operation.path, lines)

    def _delete_line(self, operation: FileOperation) -> None:
        lines = self._read_lines(operation)
        self._check_line(operation, lines)
        del lines[operation.line - 1]
        self._write_lines(operation.path, lines)

    def _update_line(self, operation: FileOperation) -> None:
        lines = self._read_lines(operation)
        self._check_line(operation, lines)
        lines[operation.line - 1] = operation.content
        self._write_lines(operation.path, lines)

    def _read_lines(self, operation: FileOperation) -> List[str]:
        if not operation.path.is_file():
            raise ExecutionError(
                code="FILE_NOT_FOUND",
                message=f"{operation.op} {self._display(operation.path)} failed: no such file",
            )
        return operation.path.read_text(encoding="utf-8").splitlines()

    def _check_line(self, operation: FileOperation, lines: List[str]) -> None:
        if operation.line > len(lines):
            raise ExecutionError(
                code="LINE_OUT_OF_RANGE",
                message=(
                    f"{operation.op} {self._display(operation.path)} failed: "
                    f"line {operation.line} out of range (file has {len(lines)} lines)"
                ),
            )

    def _write_lines(self, path: Path, lines: List[str]) -> None:
        self._write(path, "".join(f"{line}\n" for line in lines))

    @staticmethod
    def _write(path: Path, content: str) -> None:
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            tmp_path.write_text(content, encoding="utf-8")
            tmp_path.replace(path)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()
