"""工具数据结构定义。

这些 dataclass 描述了“工具调用”的 schema，既用于：
- 将可用工具列表暴露给 LLM（ToolDef / ToolParam）。
- 在 AssistantEngine 中保存和执行模型触发的工具调用（ToolCall / ToolResult）。

ToolDef / ToolParam 在启动时构造一次，之后不可变。
"""

from dataclasses import dataclass, field
from typing import Dict, Any, Mapping


@dataclass(frozen=True)
class ToolParam:
    """单个工具参数的定义。"""

    name: str
    description: str
    required: bool
    schema: Mapping[str, Any]


@dataclass(frozen=True)
class ToolDef:
    """一个可供 LLM 调用的工具定义（名称、用途与参数 schema）。"""

    name: str
    description: str
    params: Mapping[str, ToolParam] = field(default_factory=dict)


@dataclass
class ToolCall:
    """模型发起的一次工具调用请求（参数未经校验）。"""

    id: str
    name: str
    arguments: Dict[str, Any]


@dataclass
class ToolResult:
    """工具执行结果的封装（文本形式）。

    success 为 False 时 content 是错误说明，同样会作为 tool 消息回到对话中。
    """

    call_id: str
    content: str
    success: bool = True
