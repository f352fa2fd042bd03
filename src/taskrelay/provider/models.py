"""数据模型 -- TokenUsage + ModelCallResult

所有助手客户端（Claude CLI、LiteLLM、Echo）统一返回 ModelCallResult。
"""

from pydantic import BaseModel, Field


class TokenUsage(BaseModel):
    """Token 使用统计

    key 命名对齐 OpenAI/LiteLLM 行业标准：
    prompt_tokens / completion_tokens / total_tokens
    """

    prompt_tokens: int = Field(default=0, ge=0, description="输入 token 数")
    completion_tokens: int = Field(default=0, ge=0, description="输出 token 数")
    total_tokens: int = Field(default=0, ge=0, description="总 token 数")


class ModelCallResult(BaseModel):
    """助手调用结果"""

    content: str = Field(description="响应文本内容")
    model_alias: str = Field(default="", description="请求时使用的模型 group")
    model_name: str = Field(default="", description="实际调用的模型名称")
    provider: str = Field(default="", description="实际 provider（claude_cli/openai/echo 等）")
    duration_ms: int = Field(ge=0, description="端到端耗时（毫秒）")
    token_usage: TokenUsage = Field(
        default_factory=TokenUsage,
        description="Token 使用详情（CLI 模式不可用时为 0）",
    )
