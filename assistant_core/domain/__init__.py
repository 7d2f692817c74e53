"""领域层模型与协议。

包含：
- models: 统一的 ChatMessage / ChatRequest / ChatResult 模型。
- conversation: 只追加的 Conversation 与 ConversationStore 抽象。
- exceptions: 业务异常类型定义（含工具调度错误分类）。
"""
