"""Tracker 快照模型 -- Todoist 任务与评论

任务和评论由外部 tracker 持有，这里只读取快照。
未知字段一律忽略，Todoist 新增字段不会破坏解析。
"""

from datetime import UTC, datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class TrackerTask(BaseModel):
    """Todoist 任务快照"""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str = Field(description="任务 ID")
    content: str = Field(description="任务标题")
    description: str = Field(default="", description="任务描述")
    labels: list[str] = Field(default_factory=list, description="标签集合")
    added_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        description="创建时间",
    )
    is_deleted: bool = Field(default=False, description="软删除标记")
    checked: bool = Field(default=False, description="已完成标记")

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, v):
        return v or ""

    @field_validator("labels", mode="before")
    @classmethod
    def _none_labels(cls, v):
        return v or []

    def has_label(self, label: str) -> bool:
        """任务是否带有指定标签"""
        return label in self.labels


class TrackerComment(BaseModel):
    """Todoist 评论快照（评论发布后不可变）"""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str = Field(description="评论 ID")
    # v1 API 与 webhook payload 使用 item_id
    task_id: str = Field(
        validation_alias=AliasChoices("task_id", "item_id"),
        description="所属任务 ID",
    )
    content: str = Field(default="", description="评论正文")
    posted_at: datetime = Field(description="发布时间")
    posted_uid: str = Field(default="", description="发布者 ID")
