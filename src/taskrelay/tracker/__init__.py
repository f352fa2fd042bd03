"""TaskRelay Tracker -- Todoist API 客户端

packages 的公开接口导出。
"""

from .client import WEBHOOK_EVENTS, TrackerClient
from .exceptions import TaskNotFoundError, TrackerError

__all__ = [
    "TrackerClient",
    "WEBHOOK_EVENTS",
    "TrackerError",
    "TaskNotFoundError",
]
