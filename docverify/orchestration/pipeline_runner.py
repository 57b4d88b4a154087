"""Bounded pool for detached verification pipelines.

Each pipeline runs as an asyncio task keyed by verification id. A semaphore
caps how many run at once; further submissions wait for a slot. The task is
the completion signal: callers await ``wait_for(key)`` or ``drain()``
instead of sleeping.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Optional

from docverify.config.logging import get_logger
from docverify.config.settings import settings


class PipelineRunner:
    """Spawns, tracks and awaits detached pipeline tasks."""

    def __init__(self, max_concurrent: Optional[int] = None):
        """
        Initialize the runner.

        Args:
            max_concurrent: Pipelines allowed to run at once.
                Defaults to settings.max_concurrent_pipelines.
        """
        self.max_concurrent = max_concurrent or settings.max_concurrent_pipelines
        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = 0
        self.logger = get_logger("PipelineRunner")

    def submit(self, key: str, pipeline: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """
        Schedule a pipeline and return immediately.

        Args:
            key: Verification id the pipeline belongs to
            pipeline: Zero-argument coroutine function running the pipeline

        Returns:
            The scheduled task

        Raises:
            RuntimeError: If a pipeline for this key is still running
        """
        existing = self._tasks.get(key)
        if existing is not None and not existing.done():
            raise RuntimeError(f"Pipeline already running for {key}")

        task = asyncio.create_task(self._run(key, pipeline), name=f"pipeline-{key}")
        self._tasks[key] = task
        task.add_done_callback(lambda t: self._forget(key, t))
        self.logger.debug(f"Pipeline scheduled: {key}", active=self.active_count)
        return task

    async def _run(self, key: str, pipeline: Callable[[], Awaitable[None]]) -> None:
        async with self._semaphore:
            self._running += 1
            try:
                await pipeline()
            except Exception as e:
                # Pipelines record their own failures; anything reaching here
                # escaped the failure handler itself
                self.logger.exception(f"Pipeline {key} raised: {e}")
            finally:
                self._running -= 1

    def _forget(self, key: str, task: asyncio.Task) -> None:
        # A retry may already have replaced the finished task
        if self._tasks.get(key) is task:
            del self._tasks[key]

    async def wait_for(self, key: str, timeout: Optional[float] = None) -> None:
        """Block until the pipeline for ``key`` has finished (no-op if unknown or done)."""
        task = self._tasks.get(key)
        if task is None:
            return
        await asyncio.wait_for(asyncio.shield(task), timeout)

    async def drain(self) -> None:
        """Wait until every scheduled pipeline, including ones scheduled meanwhile, is done."""
        while True:
            pending = [t for t in self._tasks.values() if not t.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel running pipelines and wait for them to unwind."""
        pending = [t for t in self._tasks.values() if not t.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        self.logger.info(f"Pipeline runner shut down, cancelled {len(pending)} pipelines")

    def is_running(self, key: str) -> bool:
        task = self._tasks.get(key)
        return task is not None and not task.done()

    @property
    def active_count(self) -> int:
        """Pipelines scheduled and not yet finished (running or waiting for a slot)."""
        return sum(1 for t in self._tasks.values() if not t.done())

    @property
    def running_count(self) -> int:
        """Pipelines currently holding a pool slot."""
        return self._running
