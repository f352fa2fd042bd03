"""依赖注入模块 -- 通过 FastAPI Depends 注入运行时组件

组件实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from taskrelay.core.config import RelayConfig
from taskrelay.core.store import ConversationStore

from .services.event_router import EventRouter


def get_relay_config(request: Request) -> RelayConfig:
    """从 app.state 获取 RelayConfig"""
    return request.app.state.relay_config


def get_store(request: Request) -> ConversationStore:
    """从 app.state 获取 ConversationStore"""
    return request.app.state.store


def get_event_router(request: Request) -> EventRouter:
    """从 app.state 获取 EventRouter"""
    return request.app.state.event_router
