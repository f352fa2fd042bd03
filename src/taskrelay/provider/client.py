"""LiteLLMClient -- 经由 LiteLLM Proxy 的助手后端

TASKRELAY_ASSISTANT_MODE=litellm 时启用。Proxy 负责真实模型路由，
这里只传 model group 名与会话 messages。
"""

import time

import httpx
import structlog

from .exceptions import ProviderError, ProxyUnreachableError
from .models import ModelCallResult, TokenUsage

log = structlog.get_logger()

# 隔离 litellm 导入，方便测试 Mock
try:
    from litellm import acompletion
except ImportError:  # pragma: no cover
    acompletion = None  # type: ignore[assignment]

LIVENESS_PATH = "/health/liveliness"
LIVENESS_TIMEOUT_S = 5

# 视为 Proxy 不可达的异常：传输层错误 + litellm 自身的连接/超时异常（按类名识别）
_UNREACHABLE_TYPES = (ConnectionError, OSError, TimeoutError, httpx.TransportError)
_UNREACHABLE_NAMES = frozenset({"APIConnectionError", "APITimeoutError"})


def _translate_error(e: Exception, proxy_url: str) -> ProviderError:
    """把 acompletion 抛出的异常翻译为 ProviderError 体系"""
    if isinstance(e, _UNREACHABLE_TYPES) or type(e).__name__ in _UNREACHABLE_NAMES:
        return ProxyUnreachableError(proxy_url=proxy_url, original_error=e)
    return ProviderError(f"LLM call failed: {e}", recoverable=True)


def _token_usage(response) -> TokenUsage:
    usage = getattr(response, "usage", None)
    if usage is None:
        return TokenUsage()
    try:
        return TokenUsage(
            prompt_tokens=int(getattr(usage, "prompt_tokens", 0) or 0),
            completion_tokens=int(getattr(usage, "completion_tokens", 0) or 0),
            total_tokens=int(getattr(usage, "total_tokens", 0) or 0),
        )
    except (TypeError, ValueError):
        return TokenUsage()


class LiteLLMClient:
    """LiteLLM Proxy 客户端"""

    def __init__(
        self,
        proxy_base_url: str = "http://localhost:4000",
        proxy_api_key: str = "",
        timeout_s: float = 120,
    ) -> None:
        """
        Args:
            proxy_base_url: Proxy 地址
            proxy_api_key: Proxy 访问密钥，为空时发送占位值
            timeout_s: 传给 litellm 的请求超时；墙钟超时由 AssistantService 另行控制
        """
        self._proxy_url = proxy_base_url.rstrip("/")
        self._api_key = proxy_api_key or "no-key"
        self._timeout_s = timeout_s

    async def complete(
        self,
        messages: list[dict[str, str]],
        model_alias: str = "main",
        **kwargs,
    ) -> ModelCallResult:
        """发送一次 chat completion

        Raises:
            ProxyUnreachableError: Proxy 连接失败或超时
            ProviderError: litellm 未安装，或 Proxy 返回错误
        """
        if acompletion is None:
            raise ProviderError("litellm is not installed", recoverable=False)

        started = time.monotonic()
        try:
            response = await acompletion(
                model=model_alias,
                messages=messages,
                api_base=self._proxy_url,
                api_key=self._api_key,
                timeout=self._timeout_s,
                **kwargs,
            )
        except Exception as e:
            log.error(
                "litellm_call_failed",
                model_alias=model_alias,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise _translate_error(e, self._proxy_url) from e

        elapsed_ms = int((time.monotonic() - started) * 1000)
        result = ModelCallResult(
            content=response.choices[0].message.content or "",
            model_alias=model_alias,
            model_name=str(getattr(response, "model", "") or ""),
            provider="litellm",
            duration_ms=elapsed_ms,
            token_usage=_token_usage(response),
        )
        log.info(
            "litellm_call_completed",
            model_alias=model_alias,
            model_name=result.model_name,
            duration_ms=elapsed_ms,
            total_tokens=result.token_usage.total_tokens,
        )
        return result

    async def health_check(self) -> bool:
        """GET {proxy}/health/liveliness，任何异常都视为不可用"""
        url = self._proxy_url + LIVENESS_PATH
        try:
            async with httpx.AsyncClient() as http:
                resp = await http.get(url, timeout=LIVENESS_TIMEOUT_S)
        except Exception as e:
            log.debug("litellm_liveness_failed", url=url, error=str(e))
            return False
        return resp.status_code == 200
