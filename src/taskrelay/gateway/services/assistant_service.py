"""AssistantService -- 助手调用服务

invoke(system_context, history) -> 回复文本。
超时由这里统一以 asyncio.wait_for 强制，各客户端只负责单次调用；
超时取消会传递到客户端（Claude CLI 模式下终止子进程）。
"""

import asyncio
import shutil

import structlog
from taskrelay.provider import (
    AssistantTimeoutError,
    EchoMessageAdapter,
    ModelCallResult,
)

log = structlog.get_logger()

# 助手返回空文本时的占位回复
NO_RESPONSE = "(no response)"


class AssistantService:
    """助手调用服务"""

    def __init__(
        self,
        client=None,
        timeout_s: float = 120,
        model_alias: str = "main",
    ) -> None:
        """
        Args:
            client: 实现 complete(messages, model_alias) 的客户端；None 时使用 Echo
            timeout_s: 单次调用墙钟超时（秒）
            model_alias: 传给客户端的模型 alias
        """
        self._client = client or EchoMessageAdapter()
        self._timeout_s = timeout_s
        self._model_alias = model_alias

    @property
    def client(self):
        return self._client

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    async def invoke(self, system_context: str, history: list[dict[str, str]]) -> str:
        """调用助手

        Args:
            system_context: 任务上下文
            history: 会话历史（messages 格式）

        Returns:
            回复文本；空回复返回 "(no response)"

        Raises:
            AssistantTimeoutError: 超过 timeout_s
            ProviderError: 客户端调用失败
        """
        messages = [{"role": "system", "content": system_context}, *history]
        log.info(
            "assistant_invoke_start",
            history_length=len(history),
            timeout_s=self._timeout_s,
        )

        try:
            result: ModelCallResult = await asyncio.wait_for(
                self._client.complete(messages, model_alias=self._model_alias),
                timeout=self._timeout_s,
            )
        except TimeoutError as e:
            log.error("assistant_invoke_timeout", timeout_s=self._timeout_s)
            raise AssistantTimeoutError(self._timeout_s) from e

        log.info(
            "assistant_invoke_completed",
            provider=result.provider,
            duration_ms=result.duration_ms,
        )
        return result.content.strip() or NO_RESPONSE

    async def health_check(self) -> bool:
        """探测助手后端可用性

        LiteLLM 模式探测 Proxy；CLI 模式检查可执行文件；Echo 模式总是可用。
        """
        health_check = getattr(self._client, "health_check", None)
        if health_check is not None:
            return await health_check()
        cli_path = getattr(self._client, "cli_path", None)
        if cli_path is not None:
            return shutil.which(cli_path) is not None
        return True
