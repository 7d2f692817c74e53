"""工具注册表。

名称 → 工具实例的唯一映射。启动阶段按固定顺序逐个 register，
随后 freeze()；之后只读，因此查找路径不需要加锁。
"""

import logging
from typing import Dict, List

from assistant_core.domain.exceptions import NotFoundError, RegistrationError
from assistant_core.infrastructure.logging.logger import logger
from .base import Tool
from .definitions import ToolDef


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: Dict[str, Tool] = {}
        self._frozen = False

    def register(self, tool: Tool) -> None:
        name = tool.name
        if self._frozen:
            raise RegistrationError(
                code="REGISTRY_FROZEN",
                message=f"Cannot register `{name}`: registry is frozen",
                tool_name=name,
            )
        if name in self._tools:
            raise RegistrationError(
                code="DUPLICATE_TOOL",
                message=f"Tool `{name}` is already registered",
                tool_name=name,
            )
        self._tools[name] = tool
        logger.log(logging.DEBUG, "Registered tool", extra={"extra": {"tool_name": name}})

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, name: str) -> Tool:
        tool = self._tools.get(name)
        if tool is None:
            raise NotFoundError(
                code="TOOL_NOT_FOUND",
                message=f"Tool `{name}` not found",
                tool_name=name,
            )
        return tool

    def list_descriptors(self) -> List[ToolDef]:
        """按注册顺序返回全部工具定义（引用，不复制）。"""

        return [tool.definition for tool in self._tools.values()]

    def names(self) -> List[str]:
        return list(self._tools)

    def describe(self) -> str:
        """供控制台 `list tools` 命令使用的可读列表。"""

        lines = ["Available Tools:", ""]
        for tool in self._tools.values():
            lines.append(f"{tool.name} - {tool.definition.description}")
        return "\n".join(lines)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
