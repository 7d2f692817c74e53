"""工具能力契约。

每个工具只需要：
- 声明类属性 definition（ToolDef），用于注册与生成模型侧的工具清单；
- 实现 execute(arguments) -> str。

execute 自己负责校验参数：缺失/类型错误时抛出 ValidationError，
且必须在产生任何副作用之前完成校验；底层操作失败时抛出 ExecutionError。
调度层（ToolExecutor）负责把这些异常统一转换成失败的 ToolResult。
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from assistant_core.domain.exceptions import ValidationError
from .definitions import ToolDef


class Tool(ABC):
    definition: ToolDef

    @property
    def name(self) -> str:
        return self.definition.name

    @abstractmethod
    def execute(self, arguments: Dict[str, Any]) -> str:
        ...

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def _invalid(tool: str, message: str) -> ValidationError:
    return ValidationError(code="INVALID_ARGUMENTS", message=f"{tool}: {message}", tool_name=tool)


def ensure_mapping(tool: str, arguments: Any) -> Dict[str, Any]:
    if not isinstance(arguments, dict):
        raise _invalid(tool, "arguments must be a JSON object")
    if "_raw" in arguments and len(arguments) == 1:
        raise _invalid(tool, "arguments are not valid JSON")
    return arguments


def require_str(tool: str, arguments: Dict[str, Any], key: str, allow_empty: bool = False) -> str:
    value = arguments.get(key)
    if value is None:
        raise _invalid(tool, f"missing required field `{key}`")
    if not isinstance(value, str):
        raise _invalid(tool, f"field `{key}` must be a string")
    if not allow_empty and not value.strip():
        raise _invalid(tool, f"field `{key}` must not be empty")
    return value


def optional_str(tool: str, arguments: Dict[str, Any], key: str) -> Optional[str]:
    value = arguments.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise _invalid(tool, f"field `{key}` must be a string")
    return value


def optional_bool(tool: str, arguments: Dict[str, Any], key: str, default: bool = False) -> bool:
    value = arguments.get(key)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise _invalid(tool, f"field `{key}` must be a boolean")
    return value


def require_list(tool: str, arguments: Dict[str, Any], key: str) -> List[Any]:
    """读取数组参数。

    模型经常把嵌套 JSON 序列化成字符串传进来，这里对字符串做一次 json.loads。
    """

    value = arguments.get(key)
    if value is None:
        raise _invalid(tool, f"missing required field `{key}`")
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as exc:
            raise _invalid(tool, f"field `{key}` is not valid JSON: {exc.msg}")
    if not isinstance(value, list):
        raise _invalid(tool, f"field `{key}` must be an array")
    return value
