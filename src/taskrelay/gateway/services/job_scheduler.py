"""JobScheduler -- 单 worker 串行任务队列

push 与 poll 两个入口都把处理逻辑包装成无参协程函数入队，
由唯一的 worker 按入队顺序逐个执行，同一时刻只有一个 job 在运行。
job 的失败在边界处记录日志，不影响后续 job。
"""

import asyncio
from collections.abc import Awaitable, Callable

import structlog
from ulid import ULID

log = structlog.get_logger()

Job = Callable[[], Awaitable[None]]


class JobScheduler:
    """FIFO 串行调度器（无并行、无取消）"""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[tuple[str, str, Job]] = asyncio.Queue()
        self._worker: asyncio.Task | None = None
        self._current: str | None = None
        self._completed = 0
        self._failed = 0

    @property
    def running(self) -> bool:
        """worker 是否在运行"""
        return self._worker is not None and not self._worker.done()

    @property
    def pending(self) -> int:
        """排队中（尚未开始）的 job 数"""
        return self._queue.qsize()

    @property
    def current_job(self) -> str | None:
        """正在执行的 job 名称"""
        return self._current

    @property
    def stats(self) -> dict[str, int]:
        return {
            "pending": self.pending,
            "completed": self._completed,
            "failed": self._failed,
        }

    def enqueue(self, job: Job, name: str = "job") -> str:
        """入队一个 job

        Args:
            job: 无参协程函数
            name: 日志中使用的 job 名称

        Returns:
            job_id
        """
        job_id = str(ULID())
        self._queue.put_nowait((job_id, name, job))
        log.debug("job_enqueued", job_id=job_id, job_name=name, pending=self.pending)
        return job_id

    def start(self) -> None:
        """启动 worker（重复调用无副作用）"""
        if self.running:
            return
        self._worker = asyncio.create_task(self._run(), name="taskrelay-job-worker")
        log.info("job_scheduler_started")

    async def join(self) -> None:
        """等待队列中所有 job（含执行中 job 新入队的 job）完成"""
        await self._queue.join()

    async def stop(self, timeout: float = 10.0) -> None:
        """先排空队列，再停止 worker

        Args:
            timeout: 排空等待上限（秒），超时后剩余 job 被丢弃
        """
        if self.running:
            try:
                await asyncio.wait_for(self._queue.join(), timeout=timeout)
            except TimeoutError:
                log.warning(
                    "job_scheduler_drain_timeout",
                    timeout_s=timeout,
                    dropped=self.pending,
                    current_job=self._current,
                )

        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
        log.info("job_scheduler_stopped", **self.stats)

    async def _run(self) -> None:
        while True:
            job_id, name, job = await self._queue.get()
            self._current = name
            try:
                with structlog.contextvars.bound_contextvars(job_id=job_id, job_name=name):
                    await self._execute(job)
            finally:
                self._current = None
                self._queue.task_done()

    async def _execute(self, job: Job) -> None:
        try:
            await job()
        except Exception as e:
            # job 边界：记录后继续处理下一个
            self._failed += 1
            log.exception("job_failed", error=str(e), error_type=type(e).__name__)
        else:
            self._completed += 1
            log.debug("job_completed")
