"""Provider 异常体系

engine 对所有 ProviderError 子类一视同仁：发布错误回复，不重抛。
"""


class ProviderError(Exception):
    """Provider 包基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述（会出现在发布到 tracker 的错误回复里）
            recoverable: 是否可通过重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class AssistantTimeoutError(ProviderError):
    """助手调用超过墙钟超时"""

    def __init__(self, timeout_s: float) -> None:
        super().__init__(f"assistant timed out after {timeout_s:g}s", recoverable=True)
        self.timeout_s = timeout_s


class AssistantProcessError(ProviderError):
    """助手进程启动失败或以非零状态退出"""

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        """
        Args:
            message: 错误描述
            returncode: 进程退出码，未能启动时为 None
            stderr: 进程标准错误输出
        """
        super().__init__(message, recoverable=returncode is not None)
        self.returncode = returncode
        self.stderr = stderr


class ProxyUnreachableError(ProviderError):
    """LiteLLM Proxy 不可达（连接失败、超时、DNS 解析失败等）"""

    def __init__(self, proxy_url: str, original_error: Exception) -> None:
        """
        Args:
            proxy_url: 尝试连接的 Proxy 地址
            original_error: 原始异常
        """
        super().__init__(
            f"LiteLLM Proxy unreachable: {proxy_url} -- {original_error}",
            recoverable=True,
        )
        self.proxy_url = proxy_url
        self.original_error = original_error
