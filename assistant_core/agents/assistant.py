"""助手主循环。

一次对话轮次的状态机::

    等待模型 ──纯文本──▶ 结束（追加助手回答）
       │
       └─工具调用──▶ 调度 ──▶ 追加工具结果 ──▶ 等待模型

每次模型返回工具调用时，先追加带 tool_calls 的助手消息（接口要求工具结果前必须有对应的调用消息），
再为每个调用追加一条 role="tool" 的结果消息。pipeline_tool 与普通工具走完全相同的调度路径。

工具轮数达到 max_tool_rounds 后，不再提供工具，附加一条系统提示要求模型直接给出最终回答。
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional
from uuid import uuid4

from assistant_core.domain.conversation import Conversation, ConversationStore
from assistant_core.domain.exceptions import ApiError
from assistant_core.domain.models import ChatMessage, ChatRequest, ChatResult, ChatUsage
from assistant_core.infrastructure.logging.logger import logger
from assistant_core.providers.base import ProviderClient
from assistant_core.tools.definitions import ToolCall, ToolResult
from assistant_core.tools.executor import ToolExecutor


FINAL_HINT = (
    "You have reached the maximum number of tool calls for this turn. "
    "Do not request any more tools. Summarize what you found and answer the user directly."
)


@dataclass
class AssistantConfig:
    provider: str
    model: str
    max_tool_rounds: int = 10  # 单轮内最多请求模型的工具轮数
    temperature: float = 0.3


@dataclass
class AssistantEvent:
    """主循环产生的过程事件，仅用于控制台展示。

    kind:
        - "tool_call": 即将执行某个工具调用。
        - "tool_result": 工具执行结束（成功或失败）。
        - "final": 本轮最终回答。
    """

    kind: Literal["tool_call", "tool_result", "final"]
    call: Optional[ToolCall] = None
    result: Optional[ToolResult] = None
    message: Optional[ChatMessage] = None


EventListener = Callable[[AssistantEvent], None]


class AssistantEngine:
    def __init__(
        self,
        provider_client: ProviderClient,
        tool_executor: ToolExecutor,
        config: Optional[AssistantConfig] = None,
        store: Optional[ConversationStore] = None,
        listener: Optional[EventListener] = None,
    ):
        self._provider_client = provider_client
        self._tool_executor = tool_executor
        self._config = config or AssistantConfig(provider=provider_client.name, model="chat")
        self._store = store
        self._listener = listener
        self.last_usage: Optional[ChatUsage] = None

    def run_turn(self, conversation: Conversation, user_input: Optional[str] = None) -> ChatMessage:
        """执行一轮对话，直到模型给出纯文本回答，返回该回答消息。"""

        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "conversation_id": conversation.id,
        }
        if user_input is not None:
            self._append(conversation, ChatMessage(role="user", content=user_input))

        tool_defs = self._tool_executor.registry.list_descriptors()
        max_rounds = self._config.max_tool_rounds

        for round_num in range(1, max_rounds + 1):
            self._log(logging.INFO, "Tool round", log_ctx, round=round_num, max_rounds=max_rounds)
            req = ChatRequest(
                provider=self._config.provider,
                model=self._config.model,
                messages=list(conversation.messages),
                temperature=self._config.temperature,
                tools=tool_defs,
                tool_choice="auto",
            )
            assistant_msg = self._first_message(self._provider_client.chat(req), log_ctx)

            if not assistant_msg.tool_calls:
                return self._finish(conversation, assistant_msg, log_ctx, start_time, tool_rounds=round_num - 1)

            self._log(
                logging.INFO,
                "Executing tool calls",
                log_ctx,
                call_count=len(assistant_msg.tool_calls),
            )
            self._append(conversation, assistant_msg)
            for tool_call in assistant_msg.tool_calls:
                self._dispatch(conversation, tool_call, log_ctx)

        self._log(logging.WARNING, "Reached max tool rounds", log_ctx, max_rounds=max_rounds)
        req = ChatRequest(
            provider=self._config.provider,
            model=self._config.model,
            messages=list(conversation.messages) + [ChatMessage(role="system", content=FINAL_HINT)],
            temperature=self._config.temperature,
            tools=tool_defs,
            tool_choice="none",
        )
        assistant_msg = self._first_message(self._provider_client.chat(req), log_ctx)
        # 即使模型仍返回工具调用也不再执行，只保留文本部分
        assistant_msg.tool_calls = None
        assistant_msg.meta["forced_final"] = True
        return self._finish(conversation, assistant_msg, log_ctx, start_time, tool_rounds=max_rounds)

    def _dispatch(self, conversation: Conversation, tool_call: ToolCall, log_ctx: Dict[str, Any]) -> ToolResult:
        self._log(
            logging.INFO,
            "Tool call received",
            log_ctx,
            tool_name=tool_call.name,
            tool_call_id=tool_call.id,
            tool_args=tool_call.arguments,
        )
        self._emit(AssistantEvent(kind="tool_call", call=tool_call))
        tool_result = self._tool_executor.execute(tool_call)
        self._emit(AssistantEvent(kind="tool_result", call=tool_call, result=tool_result))
        self._append(
            conversation,
            ChatMessage(
                role="tool",
                content=tool_result.content,
                tool_call_id=tool_call.id,
                name=tool_call.name,
                meta={"success": tool_result.success},
            ),
        )
        return tool_result

    def _finish(
        self,
        conversation: Conversation,
        assistant_msg: ChatMessage,
        log_ctx: Dict[str, Any],
        start_time: float,
        tool_rounds: int,
    ) -> ChatMessage:
        assistant_msg.meta.update(
            {
                "provider": self._config.provider,
                "tool_rounds": tool_rounds,
                "usage": self._usage_meta_from_usage(self.last_usage),
            }
        )
        self._append(conversation, assistant_msg)
        self._emit(AssistantEvent(kind="final", message=assistant_msg))
        self._log(
            logging.INFO,
            "Completed assistant turn",
            log_ctx,
            elapsed_seconds=round(time.time() - start_time, 2),
            tool_rounds=tool_rounds,
        )
        return assistant_msg

    def _first_message(self, result: ChatResult, log_ctx: Dict[str, Any]) -> ChatMessage:
        self.last_usage = result.usage
        if result.usage:
            self._log(logging.INFO, "Token usage", log_ctx, **self._usage_meta_from_usage(result.usage))
        if not result.choices:
            raise ApiError(code="EMPTY_RESPONSE", message="Provider returned no choices", http_status=502)
        return result.choices[0].message

    def _append(self, conversation: Conversation, message: ChatMessage) -> None:
        conversation.append(message)
        if self._store is not None:
            self._store.save(conversation)

    def _emit(self, event: AssistantEvent) -> None:
        if self._listener is not None:
            self._listener(event)

    @staticmethod
    def _usage_meta_from_usage(usage: Optional[ChatUsage]) -> Dict[str, Any]:
        if not usage:
            return {}
        return {
            "prompt_tokens": usage.prompt_tokens,
            "completion_tokens": usage.completion_tokens,
            "total_tokens": usage.total_tokens,
        }

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})


def transcript(conversation: Conversation) -> List[str]:
    """把会话渲染成 `role: content` 形式的文本行，便于调试与测试断言。"""

    lines = []
    for message in conversation.messages:
        if message.tool_calls:
            names = ", ".join(call.name for call in message.tool_calls)
            lines.append(f"{message.role}: [tool_calls: {names}]")
        else:
            lines.append(f"{message.role}: {message.content}")
    return lines
