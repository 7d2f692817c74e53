"""OpenAI 兼容 Provider 适配器。

本模块负责：

1. 接收统一的 ChatRequest。
2. 将其转换为 chat/completions 的 HTTP 请求格式（含工具清单）。
3. 调用 HTTP 接口并处理网络/API 异常。
4. 将响应 JSON 解析为统一的 ChatResult / ChatMessage 结构（含工具调用）。

OpenAI、Kimi（Moonshot）与 GLM 都提供兼容接口，因此共用同一个实现，
差异由 ProviderConfig 描述。
"""

import httpx
import json
from typing import Any, Dict, List

from assistant_core.domain.models import (
    ChatRequest,
    ChatResult,
    ChatMessage,
    ChatChoice,
    ChatUsage,
)
from assistant_core.domain.exceptions import NetworkError, ApiError, RateLimitError, ValidationError
from assistant_core.providers.registry import ProviderConfig, ModelConfig
from assistant_core.tools.definitions import ToolDef, ToolCall


class OpenAICompatibleClient:
    """OpenAI 兼容接口的客户端实现。"""

    def __init__(self, settings, config: ProviderConfig):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = settings
        self._config = config
        self.name = config.name

    def chat(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式对话调用。

        步骤：
        1. 读取模型配置（logical model -> provider model）。
        2. 构造 HTTP 请求 payload。
        3. 发送请求并捕获网络错误/限流/服务端错误。
        4. 使用统一的解析函数构造 ChatResult。
        """

        api_key = getattr(self._settings, self._config.api_key_setting, None)
        if not api_key:
            # 配置缺失走 ValidationError，方便上层统一处理
            raise ValidationError(
                code="MISSING_API_KEY",
                message=f"{self._config.api_key_setting.upper()} not set",
            )
        model_cfg = self._config.resolve_model(req.model)
        payload = self._build_payload(req, model_cfg)
        base = getattr(self._settings, self._config.base_url_setting, None) or self._config.base_url
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base.rstrip('/')}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e), provider=self.name)
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message=f"{self.name} rate limit", http_status=429)
        if resp.status_code >= 400:
            raise ApiError(code="API_ERROR", message=resp.text, http_status=resp.status_code, provider=self.name)
        data = resp.json()
        return self._parse_response(data, req)

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> dict:
        """将 ChatRequest 转成 chat/completions 所需的请求 JSON。"""

        msgs = [self._message_to_payload(m) for m in req.messages]
        payload = {
            "model": model_cfg.provider_model,
            "messages": msgs,
            "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
            "top_p": req.top_p,
        }
        if req.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in req.tools]
            payload["tool_choice"] = req.tool_choice
        return payload

    def _parse_response(self, data: dict, req: ChatRequest) -> ChatResult:
        choices: list[ChatChoice] = []
        for i, ch in enumerate(data.get("choices", [])):
            msg = ch.get("message") or {}
            cm = self._build_chat_message(msg)
            choices.append(ChatChoice(index=i, message=cm, finish_reason=ch.get("finish_reason")))
        usage_raw = data.get("usage") or {}
        usage = ChatUsage(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        )
        return ChatResult(provider=self.name, model=req.model, choices=choices, usage=usage, raw=data)

    @staticmethod
    def _serialize_tool(tool: ToolDef) -> Dict[str, Any]:
        """把内部的 ToolDef 转成 function tool 描述（模型侧工具清单）。"""

        properties: Dict[str, Any] = {}
        required: List[str] = []
        for name, param in tool.params.items():
            properties[name] = dict(param.schema or {"type": "string"})
            if param.description:
                properties[name]["description"] = param.description
            if param.required:
                required.append(name)
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": required,
                },
            },
        }

    def _build_chat_message(self, payload: Dict[str, Any]) -> ChatMessage:
        """将单条厂商 message 转换为 ChatMessage，并解析其中的 tool_calls。"""

        tool_calls_raw = payload.get("tool_calls") or []
        tool_calls: List[ToolCall] = []
        for idx, call in enumerate(tool_calls_raw):
            func = call.get("function") or {}
            name = func.get("name") or call.get("name") or ""
            arguments = self._parse_arguments(func.get("arguments"))
            tool_calls.append(
                ToolCall(
                    id=call.get("id") or f"tool_call_{idx}",
                    name=name,
                    arguments=arguments,
                )
            )

        # 部分模型仍会返回旧版 function_call 字段
        function_call = payload.get("function_call")
        if function_call:
            tool_calls.append(
                ToolCall(
                    id=function_call.get("id") or "function_call",
                    name=function_call.get("name") or "",
                    arguments=self._parse_arguments(function_call.get("arguments")),
                )
            )
        return ChatMessage(
            role=payload.get("role") or "assistant",
            content=payload.get("content") or "",
            tool_calls=tool_calls or None,
            tool_call_id=payload.get("tool_call_id"),
        )

    @staticmethod
    def _parse_arguments(raw: Any) -> Dict[str, Any]:
        """解析工具调用的 arguments 字段。

        接口会把 arguments 作为 JSON 字符串返回，这里做一层 json.loads；
        失败时保留原始字符串到 `_raw`，由工具在校验阶段拒绝。
        """

        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str):
            if not raw.strip():
                return {}
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                return {"_raw": raw}
            return parsed if isinstance(parsed, dict) else {"_raw": raw}
        return {}

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"role": message.role}
        if message.content or message.role != "assistant":
            payload["content"] = message.content
        if message.tool_calls:
            payload["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": json.dumps(call.arguments, ensure_ascii=False),
                    },
                }
                for call in message.tool_calls
            ]
        if message.tool_call_id:
            payload["tool_call_id"] = message.tool_call_id
        if message.name and message.role == "tool":
            payload["name"] = message.name
        return payload
