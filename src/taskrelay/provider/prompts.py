"""Prompt 构建

system context 描述当前任务；history 为会话消息（messages 格式）。
CLI 模式需要单个 prompt 字符串，由 render_prompt 拼接。
"""

from taskrelay.core.models import TrackerTask


def build_system_context(task: TrackerTask | None, title: str = "") -> str:
    """构建 system context

    Args:
        task: 当前任务快照；获取失败时可为 None
        title: task 为 None 时使用的标题（来自会话记录）
    """
    task_title = task.content if task is not None else title
    description = task.description if task is not None else ""

    lines = [
        "You are an AI assistant embedded in a Todoist workspace.",
        "You help solve tasks by reasoning, browsing the web, and running shell commands.",
        f'Current task: "{task_title}"',
    ]
    if description:
        lines.append(f'Task description: "{description}"')
    lines.extend(
        [
            "Respond concisely -- your reply will be posted as a Todoist comment.",
            "If you need to browse the web or run commands, use your available tools.",
        ]
    )
    return "\n".join(lines)


def render_prompt(system_context: str, history: list[dict[str, str]]) -> str:
    """将 system context 与会话历史拼接为单个 prompt"""
    parts = [system_context]
    if history:
        transcript = "\n\n".join(
            f"{m['role'].upper()}: {m['content']}" for m in history
        )
        parts.append(f"Conversation so far:\n{transcript}")
    return "\n\n".join(parts)


def split_messages(messages: list[dict[str, str]]) -> tuple[str, list[dict[str, str]]]:
    """将 messages 拆分为 (system context, 其余历史)"""
    system = "\n".join(m["content"] for m in messages if m.get("role") == "system")
    history = [m for m in messages if m.get("role") != "system"]
    return system, history
