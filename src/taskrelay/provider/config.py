"""AssistantConfig -- 助手调用配置加载

从环境变量加载配置，不硬编码 provider/模型名。
"""

import os
from typing import Literal

import structlog
from pydantic import BaseModel, Field, SecretStr, ValidationError

log = structlog.get_logger()


class AssistantConfig(BaseModel):
    """助手调用配置 -- 从环境变量加载

    环境变量:
        TASKRELAY_ASSISTANT_MODE: 调用模式（claude_cli/litellm/echo）
        TASKRELAY_ASSISTANT_TIMEOUT_MS: 调用超时（毫秒，默认 120000）
        TASKRELAY_CLAUDE_CLI: Claude CLI 可执行文件
        TASKRELAY_MODEL_ALIAS: litellm 模式下的模型 group
        LITELLM_PROXY_URL: Proxy 地址（默认 http://localhost:4000）
        LITELLM_PROXY_KEY: Proxy 访问密钥
    """

    mode: Literal["claude_cli", "litellm", "echo"] = Field(
        default="claude_cli",
        description="助手调用模式",
    )
    timeout_ms: int = Field(
        default=120_000,
        ge=1000,
        description="单次调用墙钟超时（毫秒）",
    )
    cli_path: str = Field(default="claude", description="Claude CLI 可执行文件")
    model_alias: str = Field(default="main", description="litellm 模型 group")
    proxy_base_url: str = Field(
        default="http://localhost:4000",
        description="LiteLLM Proxy 基础 URL",
    )
    proxy_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Proxy 访问密钥（不是 LLM provider API key）",
    )

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000


def load_assistant_config() -> AssistantConfig:
    """从环境变量加载 AssistantConfig

    Returns:
        AssistantConfig 实例

    Raises:
        ValidationError: 模式未知或超时小于 1000ms
    """
    kwargs: dict = {}

    if val := os.environ.get("TASKRELAY_ASSISTANT_MODE"):
        kwargs["mode"] = val

    if val := os.environ.get("TASKRELAY_ASSISTANT_TIMEOUT_MS"):
        kwargs["timeout_ms"] = val

    if val := os.environ.get("TASKRELAY_CLAUDE_CLI"):
        kwargs["cli_path"] = val

    if val := os.environ.get("TASKRELAY_MODEL_ALIAS"):
        kwargs["model_alias"] = val

    if val := os.environ.get("LITELLM_PROXY_URL"):
        kwargs["proxy_base_url"] = val

    if val := os.environ.get("LITELLM_PROXY_KEY"):
        kwargs["proxy_api_key"] = SecretStr(val)

    try:
        return AssistantConfig(**kwargs)
    except ValidationError:
        log.error("invalid_assistant_config", fields=sorted(kwargs))
        raise
