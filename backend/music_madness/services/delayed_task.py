"""
可取消的延迟任务
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable

logger = logging.getLogger(__name__)


class DelayedTask:
    """延迟执行一个协程，任务句柄保存在会话上，可在触发前取消"""

    def __init__(self, delay: float, callback: Callable[..., Awaitable[Any]], *args: Any, name: str = ""):
        self.delay = delay
        self.name = name or getattr(callback, "__name__", "delayed")
        self._callback = callback
        self._args = args
        self._task = asyncio.get_running_loop().create_task(self._run())
        self._task.add_done_callback(self._on_done)

    async def _run(self):
        await asyncio.sleep(self.delay)
        return await self._callback(*self._args)

    def _on_done(self, task: "asyncio.Task") -> None:
        if task.cancelled():
            logger.debug("延迟任务 %s 已取消", self.name)
            return
        error = task.exception()
        if error is not None:
            logger.error("延迟任务 %s 执行失败", self.name, exc_info=error)

    def cancel(self) -> bool:
        """取消尚未完成的任务"""
        if self._task.done():
            return False
        return self._task.cancel()

    def done(self) -> bool:
        return self._task.done()

    def __await__(self):
        return self._task.__await__()
