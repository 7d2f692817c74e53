"""统一的对话与结果数据模型。

本模块定义了助手内部在不同 Provider 之间共享的标准数据结构：

- ChatMessage: 一条对话消息（system/user/assistant/tool）。
- ChatRequest: 发给底层 LLM Provider 的完整请求。
- ChatResult: 从 Provider 解析后的统一响应结果。

所有 Provider 适配器都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Any, Dict, List, TYPE_CHECKING

if TYPE_CHECKING:
    # 仅在类型检查时导入，避免运行时循环依赖
    from assistant_core.tools.definitions import ToolCall, ToolDef


# LLM 消息角色类型（与 OpenAI 兼容接口的 role 字段对应）
Role = Literal["system", "user", "assistant", "tool"]


@dataclass
class ChatMessage:
    """一条对话消息，既可用于请求，也可用于响应。

    - role: 消息角色，如 system/user/assistant/tool。
    - content: 纯文本内容。
    - meta: 附加元数据（trace_id、是否强制总结等），不直接发给 Provider。
    - tool_calls: 当 role 为 "assistant" 且模型触发工具调用时，
      这里保存模型发起的工具调用列表。
    - tool_call_id: 当 role 为 "tool" 时，用于关联某一次工具调用。
    - name: 当 role 为 "tool" 时，记录被调用的工具名。
    """

    role: Role
    content: str
    meta: Dict[str, Any] = field(default_factory=dict)
    tool_calls: Optional[List["ToolCall"]] = None
    tool_call_id: Optional[str] = None
    name: Optional[str] = None


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    AssistantEngine 拼好系统提示词与历史后生成 ChatRequest，再交给 ProviderClient。
    """

    provider: str  # 逻辑 Provider 名，如 "openai"
    model: str  # 逻辑模型名，如 "chat"（再由 registry 映射为真实模型名）
    messages: List[ChatMessage]
    temperature: float = 0.7
    top_p: float = 0.95
    max_tokens: Optional[int] = None
    # 工具定义列表：由 ToolRegistry.list_descriptors() 提供
    tools: Optional[List["ToolDef"]] = None
    tool_choice: Literal["auto", "none", "required"] = "auto"


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatChoice:
    """单个候选回答（目前通常只用 index=0 的一条）。"""

    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次对话调用的最终结果。"""

    provider: str
    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None
