"""Webhook 接收路由

POST /webhook: 接收 Todoist webhook。
签名头存在但不匹配时返回 403，不入队；否则立即返回 200，
标准化与处理在 JobScheduler 中异步完成。
"""

import base64
import hashlib
import hmac

import structlog
from fastapi import APIRouter, Depends, Request
from starlette.responses import JSONResponse
from taskrelay.core.config import RelayConfig

from ..deps import get_event_router, get_relay_config
from ..services.event_router import EventRouter
from ..services.push_adapter import parse_envelope

log = structlog.get_logger()

router = APIRouter()

SIGNATURE_HEADER = "X-Todoist-Hmac-SHA256"


def compute_signature(body: bytes, secret: str) -> str:
    """base64(HMAC-SHA256(secret, body))"""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """常量时间比较签名

    以 bytes 比较：header 值可能含非 ASCII 字符，str 比较会抛 TypeError。
    """
    expected = compute_signature(body, secret).encode("ascii")
    provided = signature.strip().encode("utf-8", "surrogateescape")
    return hmac.compare_digest(expected, provided)


@router.post("/webhook")
async def receive_webhook(
    request: Request,
    config: RelayConfig = Depends(get_relay_config),
    event_router: EventRouter = Depends(get_event_router),
):
    """接收 webhook，校验签名后入队"""
    body = await request.body()

    signature = request.headers.get(SIGNATURE_HEADER)
    if signature is not None and not verify_signature(
        body, signature, config.webhook_secret.get_secret_value()
    ):
        log.warning("webhook_invalid_signature", size=len(body))
        return JSONResponse(status_code=403, content={"error": "Invalid signature"})

    envelope = parse_envelope(body)
    if envelope is not None:
        job_id = event_router.route_push(envelope)
        log.info("webhook_accepted", event_name=envelope.event_name, job_id=job_id)

    return {"ok": True}
