"""Core 异常体系

配置校验失败与会话存储读写失败。
"""


class ConfigError(ValueError):
    """启动配置非法（缺少必填项或超出数值范围）"""


class StoreError(Exception):
    """会话存储读写失败

    由 job 边界统一捕获并记录，不影响队列中后续 job。
    """

    def __init__(self, message: str, path: str = "") -> None:
        """
        Args:
            message: 错误描述
            path: 出错的存储路径（如有）
        """
        super().__init__(message)
        self.path = path
