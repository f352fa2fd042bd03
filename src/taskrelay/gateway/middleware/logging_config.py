"""日志初始化 -- structlog 通过 stdlib ProcessorFormatter 统一输出

TASKRELAY_LOG_FORMAT=json 输出单行 JSON，其他值为开发用彩色控制台；
TASKRELAY_LOG_LEVEL 控制根 logger 级别。uvicorn、httpx 等第三方库的
stdlib 日志也经由同一条处理链渲染。
"""

import logging
import os

import structlog

# 每次请求/轮询都会输出 INFO 的第三方 logger
_NOISY_LOGGERS = ("httpx", "LiteLLM", "uvicorn.access")


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(ensure_ascii=False)
    return structlog.dev.ConsoleRenderer()


def setup_logging(log_format: str | None = None, log_level: str | None = None) -> None:
    """配置 structlog 与根 logger

    Args:
        log_format: "json" 或 "dev"；None 时读取 TASKRELAY_LOG_FORMAT
        log_level: 日志级别名；None 时读取 TASKRELAY_LOG_LEVEL（默认 INFO）
    """
    log_format = log_format or os.environ.get("TASKRELAY_LOG_FORMAT", "dev")
    log_level = (log_level or os.environ.get("TASKRELAY_LOG_LEVEL", "INFO")).upper()
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=_renderer(log_format),
            foreign_pre_chain=pre_chain,
        )
    )
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.getLevelNamesMapping().get(log_level, logging.INFO))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logfire(app=None) -> bool:
    """按 LOGFIRE_SEND_TO_LOGFIRE 决定是否接入 Logfire

    需要 observability extra 与 LOGFIRE_TOKEN。未开启或初始化失败时
    只使用本地日志。

    Args:
        app: 需要追踪的 FastAPI 应用

    Returns:
        True 表示已接入
    """
    if os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower() != "true":
        return False
    try:
        import logfire

        logfire.configure()
        if app is not None:
            logfire.instrument_fastapi(app)
        logfire.instrument_httpx()
    except Exception as e:
        structlog.get_logger().warning("logfire_init_failed", error=str(e))
        return False
    structlog.get_logger().info("logfire_enabled")
    return True
