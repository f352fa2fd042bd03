"""配置模块 -- 常量 + 环境变量加载的 RelayConfig

包含回复标记、Todoist API 地址、数据路径，以及启动时校验的运行参数。
"""

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, SecretStr, ValidationError

from .exceptions import ConfigError

# Todoist REST API 基础地址
TODOIST_BASE_URL: str = "https://api.todoist.com/api/v1"

# 助手回复前缀（防回环：带此前缀的评论永远不会被当作用户输入）
AI_INDICATOR: str = "🤖 **AI Agent**"

# 错误回复前缀（同样参与防回环过滤）
ERROR_PREFIX: str = "⚠️ AI agent error:"

# 错误回复末尾的重试提示
RETRY_HINT: str = "Retry by adding a comment."

# 任务完成时发布的结束通知
COMPLETION_NOTICE: str = "Task completed. Conversation history cleared."

# 保留前缀集合，两个入口的防回环判断共用
RESERVED_PREFIXES: tuple[str, ...] = (AI_INDICATOR, ERROR_PREFIX)

# 已处理评论 ID 集合上限，超过后按 FIFO 淘汰最旧的 10%
COMMENT_DEDUP_CEILING: int = 10_000
COMMENT_DEDUP_EVICT_RATIO: float = 0.1

# 默认触发标签
DEFAULT_TRIGGER_LABEL: str = "AI"


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKRELAY_DATA_DIR", "data"))


def get_store_path(backend: str = "json") -> str:
    """获取会话存储路径，按存储后端区分默认文件"""
    if val := os.environ.get("TASKRELAY_STORE_PATH"):
        return val
    if backend == "sqlite":
        return str(_get_base_dir() / "sqlite" / "taskrelay.db")
    return str(_get_base_dir() / "conversations.json")


def is_reserved_reply(text: str) -> bool:
    """判断评论是否为本服务自己发出的回复（助手回复或错误回复）"""
    return text.startswith(RESERVED_PREFIXES)


class RelayConfig(BaseModel):
    """运行配置 -- 启动时一次性从环境变量加载并校验

    环境变量:
        TODOIST_API_TOKEN: Todoist API token（必填）
        TODOIST_WEBHOOK_SECRET: webhook 签名密钥（必填）
        TASKRELAY_PORT: HTTP 端口
        TASKRELAY_POLL_INTERVAL_MS: 轮询间隔（毫秒）
        TASKRELAY_MAX_MESSAGES: 单任务会话最大消息数
        TASKRELAY_TRIGGER_LABEL: 触发标签
        TASKRELAY_POLL_BACKFILL: 首次轮询是否补处理启动前已存在的任务
        TASKRELAY_STORE_BACKEND: 会话存储后端（json/sqlite）
        TASKRELAY_NOTIFY_URL: 处理结果通知地址（可选）
    """

    tracker_api_token: SecretStr = Field(description="Todoist API token")
    webhook_secret: SecretStr = Field(description="webhook HMAC 签名密钥")
    port: int = Field(default=9000, ge=1, le=65535, description="HTTP 端口")
    poll_interval_ms: int = Field(default=60_000, ge=1000, description="轮询间隔（毫秒）")
    max_messages: int = Field(default=20, ge=1, description="会话最大消息数")
    trigger_label: str = Field(
        default=DEFAULT_TRIGGER_LABEL,
        min_length=1,
        description="触发助手处理的任务标签",
    )
    poll_backfill: bool = Field(
        default=True,
        description="True 时轮询边界从 epoch 开始，启动前打标签的任务在首次轮询中处理",
    )
    store_backend: Literal["json", "sqlite"] = Field(
        default="json",
        description="会话存储后端",
    )
    notify_url: str = Field(default="", description="处理结果通知 webhook，空表示关闭")

    @property
    def poll_interval_s(self) -> float:
        return self.poll_interval_ms / 1000


_ENV_MAPPING: dict[str, str] = {
    "TODOIST_API_TOKEN": "tracker_api_token",
    "TODOIST_WEBHOOK_SECRET": "webhook_secret",
    "TASKRELAY_PORT": "port",
    "TASKRELAY_POLL_INTERVAL_MS": "poll_interval_ms",
    "TASKRELAY_MAX_MESSAGES": "max_messages",
    "TASKRELAY_TRIGGER_LABEL": "trigger_label",
    "TASKRELAY_POLL_BACKFILL": "poll_backfill",
    "TASKRELAY_STORE_BACKEND": "store_backend",
    "TASKRELAY_NOTIFY_URL": "notify_url",
}


def load_relay_config() -> RelayConfig:
    """从环境变量加载 RelayConfig

    与 provider 配置不同，这里不做降级：任何非法值都在启动时直接失败。

    Returns:
        RelayConfig 实例

    Raises:
        ConfigError: 缺少必填项或数值越界
    """
    for required in ("TODOIST_API_TOKEN", "TODOIST_WEBHOOK_SECRET"):
        if not os.environ.get(required):
            raise ConfigError(f"{required} environment variable is required")

    kwargs: dict = {}
    for env_var, field_name in _ENV_MAPPING.items():
        if val := os.environ.get(env_var):
            kwargs[field_name] = val

    try:
        return RelayConfig(**kwargs)
    except ValidationError as e:
        # 将 pydantic 错误翻译回环境变量名，便于定位
        reverse = {v: k for k, v in _ENV_MAPPING.items()}
        problems = [
            f"{reverse.get(str(err['loc'][0]), err['loc'][0])}: {err['msg']}"
            for err in e.errors()
        ]
        raise ConfigError("; ".join(problems)) from e
