"""TrackerClient -- Todoist REST API 封装

任务与评论走 v1 REST API（分页格式 {results, next_cursor}），
webhook 注册走 sync v9 API。
"""

from typing import Any

import httpx
import structlog

from taskrelay.core.config import TODOIST_BASE_URL
from taskrelay.core.models import TrackerComment, TrackerTask

from .exceptions import TaskNotFoundError, TrackerError

log = structlog.get_logger()

TODOIST_SYNC_URL = "https://api.todoist.com/sync/v9"

# 注册 webhook 时订阅的事件
WEBHOOK_EVENTS: tuple[str, ...] = (
    "item:added",
    "item:updated",
    "item:completed",
    "note:added",
)

# 分页上限，防止异常 cursor 导致无限翻页
MAX_PAGES = 100


class TrackerClient:
    """Todoist 客户端

    单个 httpx.AsyncClient 复用连接；测试时可通过 transport 注入 MockTransport。
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = TODOIST_BASE_URL,
        sync_url: str = TODOIST_SYNC_URL,
        timeout_s: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._sync_url = sync_url.rstrip("/")
        self._http = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {api_token}"},
            timeout=timeout_s,
            transport=transport,
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """发送请求，统一转换为 TrackerError"""
        try:
            resp = await self._http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            log.error("tracker_request_failed", method=method, url=url, error=str(e))
            raise TrackerError(f"{method} {url} failed: {e}") from e

        if resp.status_code >= 400:
            log.warning(
                "tracker_request_rejected",
                method=method,
                url=url,
                status_code=resp.status_code,
            )
            raise TrackerError(
                f"{method} {url} returned {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        return resp

    async def _paginate(self, path: str, params: dict[str, Any] | None = None) -> list[dict]:
        """按 next_cursor 翻页，返回全部 results"""
        params = dict(params or {})
        results: list[dict] = []
        for _ in range(MAX_PAGES):
            resp = await self._request("GET", f"{self._base_url}{path}", params=params)
            data = resp.json()
            results.extend(data.get("results") or [])
            cursor = data.get("next_cursor")
            if not cursor:
                return results
            params["cursor"] = cursor
        log.warning("tracker_pagination_truncated", path=path, pages=MAX_PAGES)
        return results

    async def get_task(self, task_id: str) -> TrackerTask:
        """获取任务快照

        Raises:
            TaskNotFoundError: 任务不存在
            TrackerError: 其他 API 或网络错误
        """
        log.info("tracker_fetch_task", task_id=task_id)
        try:
            resp = await self._request("GET", f"{self._base_url}/tasks/{task_id}")
        except TrackerError as e:
            if e.status_code == 404:
                raise TaskNotFoundError(task_id) from e
            raise
        return TrackerTask.model_validate(resp.json())

    async def list_tasks(self) -> list[TrackerTask]:
        """列出当前可见的全部任务"""
        raw = await self._paginate("/tasks")
        return [TrackerTask.model_validate(item) for item in raw]

    async def get_comments(self, task_id: str) -> list[TrackerComment]:
        """获取任务下的全部评论"""
        raw = await self._paginate("/comments", {"task_id": task_id})
        return [
            TrackerComment.model_validate({"task_id": task_id, **item}) for item in raw
        ]

    async def post_comment(self, task_id: str, content: str) -> TrackerComment | None:
        """发布评论（正文原样发送，前缀由调用方负责）"""
        log.info("tracker_post_comment", task_id=task_id, length=len(content))
        resp = await self._request(
            "POST",
            f"{self._base_url}/comments",
            json={"task_id": task_id, "content": content},
        )
        try:
            return TrackerComment.model_validate({"task_id": task_id, **resp.json()})
        except ValueError:
            # 发布已成功，响应体无法解析不影响结果
            return None

    async def has_label(self, task_id: str, label: str) -> bool:
        """任务是否带有指定标签；获取失败时返回 False，不抛出异常"""
        try:
            task = await self.get_task(task_id)
        except TrackerError as e:
            log.error("tracker_label_check_failed", task_id=task_id, error=str(e))
            return False
        return task.has_label(label)

    async def list_webhooks(self) -> list[dict]:
        """列出已注册的 webhook（sync API）"""
        resp = await self._request("POST", f"{self._sync_url}/webhooks/list")
        return resp.json().get("webhooks") or []

    async def add_webhook(
        self,
        url: str,
        events: tuple[str, ...] = WEBHOOK_EVENTS,
    ) -> dict:
        """注册 webhook（sync API）"""
        resp = await self._request(
            "POST",
            f"{self._sync_url}/webhooks/add",
            json={"url": url, "events": list(events)},
        )
        log.info("tracker_webhook_registered", url=url, events=list(events))
        return resp.json()
