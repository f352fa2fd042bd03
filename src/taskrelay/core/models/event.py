"""NormalizedEvent Domain Model

push 与 poll 两个入口都只产出这一组封闭的事件类型，
抹平渠道之间的 payload 差异。以 kind 字段作为判别字段。
"""

from datetime import UTC, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from .enums import EventKind, EventSource
from .task import TrackerTask


class _EventBase(BaseModel):
    """事件公共字段"""

    source: EventSource = Field(description="事件来源渠道")
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="入口接收时间",
    )


class TaskCreatedEvent(_EventBase):
    """新任务带触发标签创建"""

    kind: Literal["task_created"] = EventKind.TASK_CREATED.value
    task: TrackerTask

    @property
    def task_id(self) -> str:
        return self.task.id


class TaskRelabeledEvent(_EventBase):
    """已有任务新加上触发标签"""

    kind: Literal["task_relabeled"] = EventKind.TASK_RELABELED.value
    task: TrackerTask

    @property
    def task_id(self) -> str:
        return self.task.id


class CommentPostedEvent(_EventBase):
    """任务下的新评论"""

    kind: Literal["comment_posted"] = EventKind.COMMENT_POSTED.value
    task_id: str = Field(description="所属任务 ID")
    comment_id: str = Field(description="评论 ID，评论级去重键")
    author: str = Field(default="", description="发布者 ID")
    text: str = Field(description="评论正文")
    posted_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="发布时间",
    )


class TaskCompletedEvent(_EventBase):
    """任务完成"""

    kind: Literal["task_completed"] = EventKind.TASK_COMPLETED.value
    task_id: str = Field(description="任务 ID")


NormalizedEvent = Annotated[
    TaskCreatedEvent | TaskRelabeledEvent | CommentPostedEvent | TaskCompletedEvent,
    Field(discriminator="kind"),
]
