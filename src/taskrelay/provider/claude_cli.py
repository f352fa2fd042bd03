"""ClaudeCliClient -- 以子进程方式调用 Claude CLI

以 print 模式运行 claude，stdout 即回复文本。
超时或调用方取消时终止子进程，避免遗留僵尸进程。
"""

import asyncio
import os
import time

import structlog

from .exceptions import AssistantProcessError, AssistantTimeoutError
from .models import ModelCallResult
from .prompts import render_prompt, split_messages

log = structlog.get_logger()

# 非交互调用参数：不持久化会话、跳过权限确认
DEFAULT_CLI_ARGS: tuple[str, ...] = (
    "--print",
    "--dangerously-skip-permissions",
    "--no-session-persistence",
    "--permission-mode",
    "bypassPermissions",
)

# stderr 写入错误信息时的截断长度
STDERR_PREVIEW_LENGTH = 500


class ClaudeCliClient:
    """Claude CLI 客户端"""

    def __init__(
        self,
        cli_path: str = "claude",
        cli_args: tuple[str, ...] = DEFAULT_CLI_ARGS,
        timeout_s: float | None = None,
    ) -> None:
        """
        Args:
            cli_path: claude 可执行文件
            cli_args: prompt 之前的固定参数
            timeout_s: 进程级超时，None 表示由调用方控制
        """
        self._cli_path = cli_path
        self._cli_args = cli_args
        self._timeout_s = timeout_s

    @property
    def cli_path(self) -> str:
        return self._cli_path

    async def complete(
        self,
        messages: list[dict[str, str]],
        model_alias: str = "claude_cli",
        **kwargs,
    ) -> ModelCallResult:
        """运行 claude 并返回 stdout

        Raises:
            AssistantTimeoutError: 超过 timeout_s
            AssistantProcessError: 启动失败或非零退出
        """
        system_context, history = split_messages(messages)
        prompt = render_prompt(system_context, history)
        start_time = time.monotonic()

        try:
            proc = await asyncio.create_subprocess_exec(
                self._cli_path,
                *self._cli_args,
                prompt,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=os.environ.copy(),
            )
        except OSError as e:
            log.error("claude_cli_spawn_failed", cli_path=self._cli_path, error=str(e))
            raise AssistantProcessError(f"Failed to spawn claude: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(), timeout=self._timeout_s
            )
        except TimeoutError as e:
            await self._terminate(proc)
            raise AssistantTimeoutError(self._timeout_s or 0) from e
        except BaseException:
            # 外层 wait_for 取消本协程时同样需要回收子进程
            await self._terminate(proc)
            raise

        duration_ms = int((time.monotonic() - start_time) * 1000)
        stderr_text = stderr.decode("utf-8", errors="replace").strip()

        if proc.returncode != 0:
            log.error(
                "claude_cli_failed",
                returncode=proc.returncode,
                stderr=stderr_text[:STDERR_PREVIEW_LENGTH],
                duration_ms=duration_ms,
            )
            raise AssistantProcessError(
                f"claude exited with code {proc.returncode}: "
                f"{stderr_text[:STDERR_PREVIEW_LENGTH]}",
                returncode=proc.returncode,
                stderr=stderr_text,
            )

        content = stdout.decode("utf-8", errors="replace").strip()
        log.info("claude_cli_completed", duration_ms=duration_ms, length=len(content))

        return ModelCallResult(
            content=content,
            model_alias=model_alias,
            model_name="claude",
            provider="claude_cli",
            duration_ms=duration_ms,
        )

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        if proc.returncode is not None:
            return
        try:
            proc.kill()
        except ProcessLookupError:
            return
        await proc.wait()
        log.warning("claude_cli_killed", pid=proc.pid)
