"""
Serialized commit queue.

The backend's staging area is a single shared mutable resource: a second
stage operation starting before the previous commit finished could attach the
wrong files to the wrong version. Every commit therefore goes through one
queue processed by a single worker, in submission order.

Task lifecycle: pending -> running -> completed(version id) | failed(error).
A failing task settles only its own future; the worker moves on.
"""

import asyncio
from pathlib import Path
from typing import Optional, Protocol

from chronicle.logging import get_chronicle_logger

from .backend import VersionBackend
from .errors import CommitFailure
from .schemas import CommitTask

log = get_chronicle_logger("queue")


class CommitRunner(Protocol):
    """Anything that can run commit tasks and hand back their version ids."""

    def enqueue(self, path: Path, message: str) -> "asyncio.Future[str]":
        ...

    async def join(self) -> None:
        ...

    async def close(self) -> None:
        ...


class CommitQueue:
    """
    FIFO queue running at most one commit at a time against a backend.

    The worker is started lazily on the running event loop. There is no
    cancellation and no timeout: a stuck backend call blocks every later task.
    """

    def __init__(self, backend: VersionBackend):
        """
        Initialize the commit queue.

        Args:
            backend: Backend whose ``commit`` the tasks run
        """
        self.backend = backend
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._sequence = 0
        self._pending = 0
        self.completed = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        """Number of tasks waiting or running."""
        return self._pending

    def enqueue(self, path: Path, message: str) -> "asyncio.Future[str]":
        """
        Append a commit task.

        Args:
            path: Path whose working tree content is committed
            message: Commit message

        Returns:
            Future resolving to the version id, or raising ``CommitFailure``
        """
        self._ensure_worker()
        assert self._loop is not None and self._queue is not None

        self._sequence += 1
        task = CommitTask(
            path=Path(path),
            message=message,
            future=self._loop.create_future(),
            sequence=self._sequence,
        )
        self._pending += 1
        self._queue.put_nowait(task)
        log.debug(
            f"Enqueued commit #{task.sequence} for {task.path}",
            sequence=task.sequence,
            pending=self.pending,
        )
        return task.future

    async def join(self) -> None:
        """Wait until every enqueued task has completed or failed."""
        if self._queue is not None and self._loop is asyncio.get_running_loop():
            await self._queue.join()

    async def close(self) -> None:
        """Stop the worker once queued tasks are done."""
        if self._loop is not asyncio.get_running_loop():
            return
        await self.join()
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            try:
                await worker
            except asyncio.CancelledError:
                pass

    def _ensure_worker(self) -> None:
        loop = asyncio.get_running_loop()
        if self._loop is not loop or self._queue is None:
            # A previous event loop (and its worker) is gone: start afresh.
            self._loop = loop
            self._queue = asyncio.Queue()
            self._worker = None
            self._pending = 0
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._work())

    async def _work(self) -> None:
        assert self._queue is not None
        queue = self._queue
        while True:
            task = await queue.get()
            try:
                await self._run(task)
            finally:
                self._pending -= 1
                queue.task_done()

    async def _run(self, task: CommitTask) -> None:
        log.debug(f"Running commit #{task.sequence} for {task.path}", sequence=task.sequence)
        try:
            version_id = await asyncio.to_thread(self.backend.commit, task.path, task.message)
        except Exception as e:
            self.failed += 1
            error = CommitFailure(str(task.path), task.message, e)
            log.bind(sequence=task.sequence).error("{}", error)
            if not task.future.done():
                task.future.set_exception(error)
            return

        self.completed += 1
        if not task.future.done():
            task.future.set_result(version_id)
