"""工具调度边界。

- ToolExecutor: 根据 ToolCall 查找并执行工具，把所有运行期错误
  （校验失败、工具不存在、执行失败）转换成失败的 ToolResult，绝不让异常逃出对话循环。
- build_default_registry: 启动时的显式注册列表，注册顺序即工具清单顺序。
"""

import logging
from typing import Callable, Optional

from assistant_core.domain.exceptions import BusinessError
from assistant_core.infrastructure.logging.logger import logger
from assistant_core.providers.base import ProviderClient
from .definitions import ToolCall, ToolResult
from .file_tool import FileTool
from .gpt_tool import GptTool
from .pipeline_tool import PipelineTool
from .registry import ToolRegistry
from .shell_tool import ShellTool
from .snap_tool import SnapTool


# 返回 False 表示用户拒绝本次调用
ApprovalFunc = Callable[[ToolCall], bool]


class ToolExecutor:
    def __init__(self, registry: ToolRegistry, approve: Optional[ApprovalFunc] = None):
        self._registry = registry
        self._approve = approve

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def execute(self, call: ToolCall) -> ToolResult:
        log_ctx = {"tool_name": call.name, "tool_call_id": call.id}
        try:
            tool = self._registry.lookup(call.name)
        except BusinessError as exc:
            logger.log(logging.WARNING, "Unknown tool requested", extra={"extra": log_ctx})
            return self._failure(call, exc)

        if self._approve is not None and not self._approve(call):
            logger.log(logging.WARNING, "Tool call rejected by user", extra={"extra": log_ctx})
            return ToolResult(call_id=call.id, content=f"User rejected tool call: {call.name}", success=False)

        try:
            content = tool.execute(call.arguments)
        except BusinessError as exc:
            logger.log(
                logging.WARNING,
                "Tool execution failed",
                extra={"extra": {**log_ctx, "code": exc.code, "error": exc.message, **exc.extra}},
            )
            return self._failure(call, exc)
        except Exception as exc:
            logger.exception("Tool crashed", extra={"extra": log_ctx})
            return ToolResult(
                call_id=call.id,
                content=f"Error [TOOL_CRASHED]: {call.name}: {exc}",
                success=False,
            )
        logger.log(
            logging.INFO,
            "Tool execution finished",
            extra={"extra": {**log_ctx, "result_preview": content[:200]}},
        )
        return ToolResult(call_id=call.id, content=content)

    @staticmethod
    def _failure(call: ToolCall, exc: BusinessError) -> ToolResult:
        return ToolResult(call_id=call.id, content=f"Error [{exc.code}]: {exc.message}", success=False)


def build_default_registry(settings, provider: Optional[ProviderClient] = None) -> ToolRegistry:
    """构造并冻结默认工具注册表。

    重名会抛出 RegistrationError，调用方不应捕获（属于启动期配置错误）。
    未提供 provider 时不注册 gpt_tool。
    """

    root = settings.workspace_path
    registry = ToolRegistry()
    tools = [
        ShellTool(cwd=root, timeout=settings.shell_timeout),
        FileTool(root=root, allow_absolute=settings.allow_tool_absolute_path),
        SnapTool(
            root=root,
            files=settings.snapshot_files,
            suffixes=settings.snapshot_suffixes,
            output=settings.snapshot_output,
        ),
    ]
    if provider is not None:
        tools.append(GptTool(provider, registry, model=settings.default_model))
    tools.append(PipelineTool(registry))

    for tool in tools:
        registry.register(tool)
    registry.freeze()
    return registry
