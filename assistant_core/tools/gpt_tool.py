import json
from typing import Any, Dict, List, Optional

from assistant_core.domain.exceptions import ValidationError
from assistant_core.domain.models import ChatMessage, ChatRequest
from assistant_core.providers.base import ProviderClient
from .base import Tool, ensure_mapping, optional_bool, optional_str, require_list
from .definitions import ToolDef, ToolParam
from .registry import ToolRegistry


_ROLES = ("system", "user", "assistant")


class GptTool(Tool):
    """发起一次独立的子对话（不带当前会话历史），返回模型回答。"""

    definition = ToolDef(
        name="gpt_tool",
        description="使用给定消息发起一次新的对话补全并返回回答文本",
        params={
            "messages": ToolParam(
                name="messages",
                description="消息数组，每条包含 role（system/user/assistant）与 content 字符串",
                required=True,
                schema={
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "role": {"type": "string", "enum": list(_ROLES)},
                            "content": {"type": "string"},
                        },
                        "required": ["role", "content"],
                    },
                },
            ),
            "model": ToolParam(
                name="model",
                description="可选，逻辑模型名或厂商模型 ID，默认与当前会话一致",
                required=False,
                schema={"type": "string"},
            ),
            "include_tools": ToolParam(
                name="include_tools",
                description="是否允许子对话请求工具调用（只返回调用请求，不会执行）",
                required=False,
                schema={"type": "boolean"},
            ),
        },
    )

    def __init__(self, provider: ProviderClient, registry: ToolRegistry, model: str, temperature: float = 0.7):
        self._provider = provider
        self._registry = registry
        self._model = model
        self._temperature = temperature

    def execute(self, arguments: Dict[str, Any]) -> str:
        arguments = ensure_mapping(self.name, arguments)
        messages = self._parse_messages(require_list(self.name, arguments, "messages"))
        model = optional_str(self.name, arguments, "model") or self._model
        include_tools = optional_bool(self.name, arguments, "include_tools")

        req = ChatRequest(
            provider=self._provider.name,
            model=model,
            messages=messages,
            temperature=self._temperature,
            tools=self._registry.list_descriptors() if include_tools else None,
        )
        result = self._provider.chat(req)
        if not result.choices:
            return ""
        reply = result.choices[0].message
        if reply.tool_calls:
            return json.dumps(
                [{"name": call.name, "arguments": call.arguments} for call in reply.tool_calls],
                ensure_ascii=False,
            )
        return reply.content or ""

    def _parse_messages(self, raw_messages: List[Any]) -> List[ChatMessage]:
        messages: List[ChatMessage] = []
        for idx, raw in enumerate(raw_messages):
            role: Optional[str] = raw.get("role") if isinstance(raw, dict) else None
            content = raw.get("content") if isinstance(raw, dict) else None
            if role not in _ROLES or not isinstance(content, str):
                raise ValidationError(
                    code="INVALID_ARGUMENTS",
                    message=f"{self.name}: message {idx} needs a role in {_ROLES} and string content",
                )
            messages.append(ChatMessage(role=role, content=content))
        if not messages:
            raise ValidationError(code="INVALID_ARGUMENTS", message=f"{self.name}: `messages` must not be empty")
        return messages
