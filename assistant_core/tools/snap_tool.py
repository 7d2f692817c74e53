from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from assistant_core.domain.exceptions import ExecutionError
from .base import Tool, ensure_mapping
from .definitions import ToolDef
from .paths import Workspace


SKIP_DIRS = {"__pycache__", "node_modules", "venv", "build", "dist"}


class SnapTool(Tool):
    """生成当前项目源码快照，并写入快照文件（默认 state.txt）。"""

    definition = ToolDef(
        name="snap_tool",
        description="返回当前项目的源码快照（配置文件与全部源码文件）",
        params={},
    )

    def __init__(
        self,
        root: Path,
        files: Sequence[str] = ("pyproject.toml",),
        suffixes: Sequence[str] = (".py",),
        output: Optional[str] = "state.txt",
    ):
        self._workspace = Workspace.at(root)
        self._root = self._workspace.root
        self._files = list(files)
        self._suffixes = {s if s.startswith(".") else f".{s}" for s in suffixes}
        self._output = output

    def execute(self, arguments: Dict[str, Any]) -> str:
        ensure_mapping(self.name, arguments)
        if not self._root.is_dir():
            raise ExecutionError(code="SNAPSHOT_FAILED", message=f"workspace {self._root} does not exist")

        parts: List[str] = []
        seen = set()
        for path in self._collect():
            if path in seen:
                continue
            seen.add(path)
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                raise ExecutionError(
                    code="SNAPSHOT_FAILED",
                    message=f"Error reading file {self._workspace.display(path)}: {exc}",
                )
            parts.append(f"File: {self._workspace.display(path)}\n{content}\n\n")
        snapshot = "".join(parts)

        if self._output:
            try:
                (self._root / self._output).write_text(snapshot, encoding="utf-8")
            except OSError as exc:
                raise ExecutionError(code="SNAPSHOT_FAILED", message=f"Error writing to file: {exc}")
        return snapshot

    def _collect(self) -> Iterable[Path]:
        output_path = (self._root / self._output).resolve() if self._output else None
        for name in self._files:
            path = (self._root / name).resolve()
            if path.is_file():
                yield path
        for path in sorted(self._root.rglob("*")):
            rel_parts = path.relative_to(self._root).parts
            if any(part.startswith(".") or part in SKIP_DIRS for part in rel_parts[:-1]):
                continue
            if not path.is_file() or path.name.startswith("."):
                continue
            if path.suffix not in self._suffixes:
                continue
            resolved = path.resolve()
            if resolved == output_path:
                continue
            yield resolved
