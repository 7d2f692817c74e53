"""系统提示词加载工具。

默认从 prompts/<locale>/assistant_system.md 读取，也可以通过配置指定自定义文件。
"""

from pathlib import Path
from typing import Optional


PROMPTS_DIR = Path(__file__).resolve().parent


def load_system_prompt(path: Optional[str] = None, locale: str = "en") -> str:
    """加载系统提示词文本；path 为空时使用内置提示词。"""

    fname = Path(path).expanduser() if path else PROMPTS_DIR / locale / "assistant_system.md"
    return fname.read_text(encoding="utf-8").strip()


def build_system_message(
    base_prompt: str,
    tools_listing: str,
    state: Optional[str] = None,
) -> str:
    """拼接完整的系统消息：基础提示词 + 可选项目快照 + 工具列表。"""

    parts = [base_prompt]
    if state:
        parts.append("Here is the current project source code:\n" + state)
    parts.append(tools_listing)
    return "\n\n".join(parts)
