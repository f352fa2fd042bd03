"""TaskRelay Provider -- 助手调用抽象层

packages 的公开接口导出。
"""

from .claude_cli import ClaudeCliClient
from .client import LiteLLMClient
from .config import AssistantConfig, load_assistant_config
from .echo_adapter import EchoMessageAdapter
from .exceptions import (
    AssistantProcessError,
    AssistantTimeoutError,
    ProviderError,
    ProxyUnreachableError,
)
from .models import ModelCallResult, TokenUsage
from .prompts import build_system_context, render_prompt


def create_assistant_client(config: AssistantConfig):
    """按配置模式创建助手客户端

    Returns:
        ClaudeCliClient / LiteLLMClient / EchoMessageAdapter
    """
    if config.mode == "claude_cli":
        return ClaudeCliClient(cli_path=config.cli_path)
    if config.mode == "litellm":
        return LiteLLMClient(
            proxy_base_url=config.proxy_base_url,
            proxy_api_key=config.proxy_api_key.get_secret_value(),
            timeout_s=config.timeout_s,
        )
    return EchoMessageAdapter()


__all__ = [
    "ModelCallResult",
    "TokenUsage",
    "ClaudeCliClient",
    "LiteLLMClient",
    "EchoMessageAdapter",
    "AssistantConfig",
    "load_assistant_config",
    "create_assistant_client",
    "build_system_context",
    "render_prompt",
    "ProviderError",
    "AssistantTimeoutError",
    "AssistantProcessError",
    "ProxyUnreachableError",
]
