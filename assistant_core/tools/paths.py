"""工具可访问的工作区。

文件类工具只允许操作工作区根目录内的路径；
allow_absolute 为 True 时，根目录之外的绝对路径也放行。
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union


@dataclass(frozen=True)
class Workspace:
    root: Path
    allow_absolute: bool = False

    @classmethod
    def at(cls, root: Optional[Union[str, Path]], allow_absolute: bool = False) -> "Workspace":
        base = Path(root).expanduser() if root else Path.cwd()
        return cls(root=base.resolve(), allow_absolute=allow_absolute)

    def resolve(self, raw: str) -> Optional[Path]:
        """把模型给出的路径解析为绝对路径；越界或为空时返回 None。"""

        text = (raw or "").strip()
        if not text:
            return None
        candidate = Path(text).expanduser()
        if not candidate.is_absolute():
            candidate = self.root / candidate
        try:
            resolved = candidate.resolve()
        except (OSError, RuntimeError):
            return None
        if self.contains(resolved):
            return resolved
        # 相对路径（含 ../）永远不能逃出根目录
        if Path(text).expanduser().is_absolute() and self.allow_absolute:
            return resolved
        return None

    def contains(self, path: Path) -> bool:
        return path == self.root or self.root in path.parents

    def display(self, path: Path) -> str:
        """工作区内的路径显示为相对路径，其余保持原样。"""

        if self.contains(path):
            return path.relative_to(self.root).as_posix()
        return str(path)
