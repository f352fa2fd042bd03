"""NotificationService -- 处理结果推送通知

向 ntfy 风格的 webhook POST JSON。通知是附属功能：
任何失败只记录 warning，不影响主流程。
"""

from datetime import UTC, datetime
from typing import Literal

import httpx
import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()

NOTIFY_TIMEOUT_S = 5


class NotificationPayload(BaseModel):
    """通知内容"""

    task_title: str = Field(serialization_alias="taskTitle")
    status: Literal["success", "error"]
    message: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class NotificationService:
    """通知发送服务"""

    def __init__(
        self,
        webhook_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._webhook_url = webhook_url
        self._transport = transport

    async def send(self, payload: NotificationPayload) -> bool:
        """发送通知

        Returns:
            True 表示发送成功；失败时返回 False，不抛出异常
        """
        body = payload.model_dump(mode="json", by_alias=True)
        try:
            async with httpx.AsyncClient(transport=self._transport) as http_client:
                resp = await http_client.post(
                    self._webhook_url,
                    json=body,
                    timeout=NOTIFY_TIMEOUT_S,
                )
                resp.raise_for_status()
        except httpx.HTTPError as e:
            log.warning(
                "notification_failed",
                error=str(e),
                task_title=payload.task_title,
                status=payload.status,
            )
            return False

        log.info("notification_sent", task_title=payload.task_title, status=payload.status)
        return True
