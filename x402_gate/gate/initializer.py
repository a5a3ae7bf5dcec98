"""One-time async startup work shared by concurrent requests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class LazyInitializer:
    """Runs an async initialization exactly once and lets every caller await it.

    All callers arriving while initialization is in flight await the same
    task. After success the task reference is dropped and ``ready()`` returns
    without suspending. After a failure the reference is dropped as well, so
    the next caller starts a fresh attempt; the error reaches every caller
    that was waiting on the failed attempt.

    With ``eager=True`` the work is scheduled at construction when an event
    loop is running. Middleware is normally built at import time with no loop,
    in which case the first ``ready()`` call starts it.
    """

    def __init__(
        self,
        initialize: Callable[[], Awaitable[None]] | None,
        *,
        name: str = "initializer",
        eager: bool = True,
    ) -> None:
        self._initialize = initialize
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._done = initialize is None

        if eager and not self._done:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
            if loop is not None:
                self._task = self._start(loop)

    @property
    def done(self) -> bool:
        return self._done

    @property
    def pending(self) -> bool:
        return self._task is not None

    async def ready(self) -> None:
        """Wait until initialization has completed.

        Raises:
            Exception: Whatever the initialization raised on this attempt.
        """
        if self._done:
            return

        loop = asyncio.get_running_loop()
        task = self._task
        if task is None or task.get_loop() is not loop:
            task = self._start(loop)
            self._task = task

        # A cancelled waiter must not cancel the shared work
        await asyncio.shield(task)

    def _start(self, loop: asyncio.AbstractEventLoop) -> asyncio.Task[None]:
        logger.debug("Starting %s", self._name)
        task = loop.create_task(self._run())
        task.add_done_callback(self._on_done)
        return task

    async def _run(self) -> None:
        assert self._initialize is not None
        await self._initialize()
        self._done = True
        logger.debug("%s ready", self._name)

    def _on_done(self, task: asyncio.Task[None]) -> None:
        if self._task is task:
            self._task = None
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("%s failed, will retry on next request: %s", self._name, exc)
