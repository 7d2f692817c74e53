"""Assistant Core 顶层包。

该包提供控制台助手的核心实现：配置加载、领域模型、Provider 适配、
工具注册与调度（含流水线工具）、对话主循环以及会话持久化。
"""

from assistant_core.agents.assistant import AssistantConfig, AssistantEngine
from assistant_core.tools.executor import ToolExecutor, build_default_registry

__all__ = ["AssistantConfig", "AssistantEngine", "ToolExecutor", "build_default_registry"]
