"""配置管理模块。

支持从初始化参数、环境变量、.env 以及 config.yaml 加载配置，优先级依次降低。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("ASSISTANT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """助手的全部运行配置。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(
        default="openai",
        description="默认使用的 Provider 名称，例如 openai、kimi、glm",
    )
    default_model: str = Field(
        default="chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型；未知名称按原样透传",
    )

    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API 密钥")
    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI API 基础URL",
    )
    kimi_api_key: Optional[str] = Field(default=None, description="Kimi API 密钥")
    kimi_base_url: str = Field(
        default="https://api.moonshot.cn/v1",
        description="Kimi API 基础URL",
    )
    glm_api_key: Optional[str] = Field(default=None, description="GLM API 密钥")
    glm_base_url: str = Field(
        default="https://open.bigmodel.cn/api/paas/v4",
        description="GLM API 基础URL",
    )
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")

    # ---- 会话与日志 ----
    storage_root: str = Field(default="conversations", description="会话存档目录")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    system_prompt_file: Optional[str] = Field(
        default=None,
        description="自定义系统提示词文件，为空时使用内置提示词",
    )

    # ---- 工具相关配置 ----
    max_tool_rounds: int = Field(
        default=10,
        ge=1,
        le=50,
        description="单轮对话内工具调用最大轮数，超过后强制模型给出最终回答",
    )
    workspace_root: str = Field(
        default_factory=lambda: str(Path.cwd()),
        description="工具可访问的项目根目录",
    )
    allow_tool_absolute_path: bool = Field(
        default=False,
        description="是否允许文件工具访问工作区之外的绝对路径（默认禁止）",
    )
    shell_timeout: float = Field(default=60.0, gt=0, description="单条 shell 命令超时时间（秒）")
    snapshot_files: List[str] = Field(
        default_factory=lambda: ["pyproject.toml", "README.md"],
        description="快照中优先收录的顶层文件",
    )
    snapshot_suffixes: List[str] = Field(
        default_factory=lambda: [".py"],
        description="快照递归收录的文件后缀",
    )
    snapshot_output: str = Field(default="state.txt", description="快照输出文件")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("openai_api_key", "kimi_api_key", "glm_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )

    @property
    def workspace_path(self) -> Path:
        return Path(self.workspace_root).expanduser().resolve()


settings = Settings()
