"""Tracker 异常体系

TrackerError 为基类，携带 HTTP 状态码（网络错误时为 None）。
"""


class TrackerError(Exception):
    """Todoist API 调用异常基类"""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"[{self.status_code}] {self.message}"


class TaskNotFoundError(TrackerError):
    """任务不存在（404）"""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}", status_code=404)
        self.task_id = task_id
