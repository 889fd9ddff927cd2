"""
Persistent event loop for Celery worker processes.

Confirmation tasks are synchronous Celery callables, but the order store is
async and its asyncpg pool belongs to the loop it was created on. Each worker
process therefore runs one ``WorkerLoop`` on a daemon thread and every task
submits its coroutine there with ``run_async()``, so the store connects once
per process.

Works with ``--pool=prefork`` (one loop per child, started in
``worker_process_init``) and ``--pool=threads`` (Celery threads share the loop
through ``asyncio.run_coroutine_threadsafe``).

Usage:
    from orderflow.celery.loop import run_async

    outcome = run_async(worker.process(task))
"""

import asyncio
import threading
from collections.abc import Coroutine
from typing import Any, TypeVar

from loguru import logger

T = TypeVar("T")


class WorkerLoop:
    """An event loop running forever on its own thread."""

    def __init__(self, thread_name: str = "orderflow-event-loop") -> None:
        self.thread_name = thread_name
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._serve, name=thread_name, daemon=True)
        self._thread.start()

    def _serve(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    @property
    def alive(self) -> bool:
        return not self.loop.is_closed()

    def submit(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run ``coro`` on this loop and block the calling thread for its result."""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result()

    def close(self, join_timeout: float = 5.0) -> None:
        if not self.alive:
            return
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=join_timeout)
        if self.loop.is_running():
            # Still busy after the join timeout; leave it to die with the process
            logger.warning(f"{self.thread_name} did not stop within {join_timeout}s")
            return
        self.loop.close()


_current: WorkerLoop | None = None
_lock = threading.Lock()


def _ensure_loop() -> WorkerLoop:
    global _current

    with _lock:
        if _current is None or not _current.alive:
            _current = WorkerLoop()
        return _current


def init_worker_loop() -> None:
    """Start this process's loop. Called from worker_process_init."""
    _ensure_loop()


def close_worker_loop() -> None:
    """Stop this process's loop. Called from worker_shutdown."""
    global _current

    with _lock:
        if _current is not None:
            _current.close()
        _current = None


def get_worker_loop() -> asyncio.AbstractEventLoop:
    """
    The process's persistent loop.

    Outside a Celery worker (tests, eager mode) it is started on first use.
    """
    return _ensure_loop().loop


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine on the persistent loop from any thread; replaces asyncio.run()."""
    return _ensure_loop().submit(coro)


def is_loop_running() -> bool:
    """Check if the worker loop exists and is not closed."""
    return _current is not None and _current.alive
