"""EchoMessageAdapter -- 不依赖外部进程的回声后端

TASKRELAY_ASSISTANT_MODE=echo 时启用，用于本地联调与测试。
"""

import asyncio
import time

from .models import ModelCallResult, TokenUsage

EMPTY_PLACEHOLDER = "(empty)"


def last_user_text(messages: list[dict[str, str]]) -> str:
    """最后一条 user 消息；没有时退回最后一条任意消息"""
    user_turns = [m for m in messages if m.get("role") == "user"]
    source = user_turns or messages
    if not source:
        return EMPTY_PLACEHOLDER
    return source[-1].get("content", EMPTY_PLACEHOLDER)


class EchoMessageAdapter:
    """回声客户端：回复 "Echo: {最后一条 user 消息}" """

    async def complete(
        self,
        messages: list[dict[str, str]],
        model_alias: str = "echo",
        **kwargs,
    ) -> ModelCallResult:
        started = time.monotonic()
        prompt = last_user_text(messages)
        reply = f"Echo: {prompt}"
        # 让出事件循环，行为上接近真实异步调用
        await asyncio.sleep(0.01)

        # token 数按空白分词粗略估算
        prompt_tokens = len(prompt.split())
        completion_tokens = len(reply.split())
        return ModelCallResult(
            content=reply,
            model_alias=model_alias,
            model_name="echo",
            provider="echo",
            duration_ms=int((time.monotonic() - started) * 1000),
            token_usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )
