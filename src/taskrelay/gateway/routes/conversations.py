"""会话查询路由（只读）

GET /api/conversations: 会话列表，按最近活动时间倒序。
GET /api/conversations/{task_id}: 会话详情，含全部消息。
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from starlette.responses import JSONResponse
from taskrelay.core.models import ConversationState
from taskrelay.core.store import ConversationStore

from ..deps import get_store

router = APIRouter()


class ConversationSummary(BaseModel):
    """会话摘要（列表项）"""

    task_id: str
    title: str
    message_count: int
    created_at: str
    last_activity_at: str


class ConversationListResponse(BaseModel):
    """会话列表响应"""

    conversations: list[ConversationSummary]


class MessageItem(BaseModel):
    role: str
    content: str


class ConversationDetail(BaseModel):
    """会话详情"""

    task_id: str
    state: ConversationState
    title: str
    messages: list[MessageItem]
    created_at: str
    last_activity_at: str


@router.get("/api/conversations", response_model=ConversationListResponse)
async def list_conversations(store: ConversationStore = Depends(get_store)):
    """查询会话列表"""
    conversations = await store.list_conversations()
    ordered = sorted(
        conversations.items(),
        key=lambda item: item[1].last_activity_at,
        reverse=True,
    )
    return ConversationListResponse(
        conversations=[
            ConversationSummary(
                task_id=task_id,
                title=conv.title,
                message_count=len(conv.messages),
                created_at=conv.created_at.isoformat(),
                last_activity_at=conv.last_activity_at.isoformat(),
            )
            for task_id, conv in ordered
        ]
    )


@router.get("/api/conversations/{task_id}")
async def get_conversation(
    task_id: str,
    store: ConversationStore = Depends(get_store),
):
    """查询会话详情；会话不存在（未见过或已完成）返回 404"""
    if not await store.exists(task_id):
        return JSONResponse(
            status_code=404,
            content={
                "error": {
                    "code": "CONVERSATION_NOT_FOUND",
                    "message": f"No conversation for task {task_id}",
                }
            },
        )

    conv = await store.load(task_id)
    return ConversationDetail(
        task_id=task_id,
        state=ConversationState.ACTIVE,
        title=conv.title,
        messages=[MessageItem(role=m.role.value, content=m.content) for m in conv.messages],
        created_at=conv.created_at.isoformat(),
        last_activity_at=conv.last_activity_at.isoformat(),
    )
