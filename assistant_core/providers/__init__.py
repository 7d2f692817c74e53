"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供 OpenAI 兼容接口的具体实现 (openai_client)。
"""

from typing import Optional

from assistant_core.config.settings import settings
from assistant_core.providers.base import ProviderClient
from assistant_core.providers.openai_client import OpenAICompatibleClient
from assistant_core.providers.registry import get_provider_config


def create_provider(name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。

    未知名称会抛出 KeyError。
    """

    provider_name = (name or getattr(settings, "default_provider", "openai")).lower()
    return OpenAICompatibleClient(settings, get_provider_config(provider_name))
