"""CLI 入口模块 -- python -m taskrelay.tracker <command>

支持的命令：
  list-webhooks               列出已注册的 webhook
  register-webhook <url>      注册 webhook（已存在同 URL 时跳过）
"""

import asyncio
import os
import sys

from .client import TrackerClient
from .exceptions import TrackerError

USAGE = """用法: python -m taskrelay.tracker <command>
命令:
  list-webhooks               列出已注册的 webhook
  register-webhook <url>      注册 webhook（已存在同 URL 时跳过）"""


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    api_token = os.environ.get("TODOIST_API_TOKEN", "")
    if not api_token:
        print("TODOIST_API_TOKEN 环境变量未设置")
        sys.exit(1)

    command = sys.argv[1]

    try:
        if command == "list-webhooks":
            asyncio.run(list_webhooks(api_token))
        elif command == "register-webhook":
            if len(sys.argv) < 3:
                print("用法: python -m taskrelay.tracker register-webhook <url>")
                sys.exit(1)
            asyncio.run(register_webhook(api_token, sys.argv[2]))
        else:
            print(f"未知命令: {command}")
            print("可用命令: list-webhooks, register-webhook")
            sys.exit(1)
    except TrackerError as e:
        print(f"请求失败: {e}")
        sys.exit(2)


def _print_webhooks(webhooks: list[dict]) -> None:
    print(f"已注册 {len(webhooks)} 个 webhook:")
    for i, wh in enumerate(webhooks, start=1):
        print(f"  {i}. {wh.get('url')} (ID: {wh.get('id')})")
        print(f"     Events: {', '.join(wh.get('events') or [])}")


async def list_webhooks(api_token: str) -> list[dict]:
    """列出已注册 webhook"""
    client = TrackerClient(api_token)
    try:
        webhooks = await client.list_webhooks()
    finally:
        await client.close()
    _print_webhooks(webhooks)
    return webhooks


async def register_webhook(api_token: str, url: str) -> dict | None:
    """注册 webhook；同 URL 已存在时不重复注册

    Returns:
        新注册的 webhook；已存在时返回 None
    """
    client = TrackerClient(api_token)
    try:
        webhooks = await client.list_webhooks()
        _print_webhooks(webhooks)

        existing = next((wh for wh in webhooks if wh.get("url") == url), None)
        if existing is not None:
            print(f"\nwebhook 已注册: {url} (ID: {existing.get('id')})")
            return None

        print(f"\n注册 webhook: {url}")
        created = await client.add_webhook(url)
        print(f"注册完成: {created}")
        return created
    finally:
        await client.close()


if __name__ == "__main__":
    main()
