"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "chat"。
- provider_model：厂商实际提供的模型 ID，例如 "gpt-4o"。

三家 Provider 都使用 OpenAI 兼容的 chat/completions 接口，
差别只在 base_url、密钥配置项与模型映射。"""

from dataclasses import dataclass
from typing import Dict, Mapping


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。

    api_key_setting / base_url_setting 是 Settings 上对应字段的名称。
    """

    name: str
    base_url: str
    api_key_setting: str
    base_url_setting: str
    models: Dict[str, ModelConfig]

    def resolve_model(self, name: str) -> ModelConfig:
        """逻辑名命中配置时返回对应模型，否则把 name 当作厂商模型 ID 透传。"""

        if name in self.models:
            return self.models[name]
        default = next(iter(self.models.values()))
        return ModelConfig(
            logical_name=name,
            provider_model=name,
            max_tokens=default.max_tokens,
            default_temperature=default.default_temperature,
        )


OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="https://api.openai.com/v1",
    api_key_setting="openai_api_key",
    base_url_setting="openai_base_url",
    models={
        "chat": ModelConfig(
            logical_name="chat",
            provider_model="gpt-4o",
            max_tokens=4096,
            default_temperature=0.7,
        )
    },
)

KIMI_CONFIG = ProviderConfig(
    name="kimi",
    base_url="https://api.moonshot.cn/v1",
    api_key_setting="kimi_api_key",
    base_url_setting="kimi_base_url",
    models={
        "chat": ModelConfig(
            logical_name="chat",
            provider_model="kimi-k2-turbo-preview",
            max_tokens=8192,
            default_temperature=0.7,
        )
    },
)

GLM_CONFIG = ProviderConfig(
    name="glm",
    base_url="https://open.bigmodel.cn/api/paas/v4",
    api_key_setting="glm_api_key",
    base_url_setting="glm_base_url",
    models={
        "chat": ModelConfig(
            logical_name="chat",
            provider_model="glm-4.6",
            max_tokens=8192,
            default_temperature=0.7,
        )
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
    "kimi": KIMI_CONFIG,
    "glm": GLM_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
