# ref_watcher/executor.py
# AI-Mind (C) 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Thread pool that runs tasks for the same key strictly in submission order."""

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Hashable

logger = logging.getLogger(__name__)


class KeyedExecutor:
    """Serial per key, parallel across keys.

    Each key has a FIFO queue. At most one worker drains a given queue at
    a time, so tasks for one path never overlap or reorder, while tasks
    for different paths share the pool.
    """

    def __init__(self, max_workers: int = 4, thread_name_prefix: str = "ref-watcher"):
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix=thread_name_prefix
        )
        self._queues: dict[Hashable, deque[Callable[[], None]]] = {}
        self._lock = threading.Lock()
        self._shutdown = False

    def submit(self, key: Hashable, task: Callable[[], None]) -> bool:
        """Queue a task behind any earlier tasks for key.

        Returns:
            False if the executor has been shut down (task dropped).
        """
        with self._lock:
            if self._shutdown:
                logger.debug(f"Executor shut down, dropping task for {key}")
                return False
            queue = self._queues.get(key)
            if queue is not None:
                queue.append(task)
                return True
            self._queues[key] = deque([task])
            self._pool.submit(self._drain, key)
        return True

    def _drain(self, key: Hashable) -> None:
        while True:
            with self._lock:
                queue = self._queues[key]
                if not queue:
                    del self._queues[key]
                    return
                task = queue.popleft()
            try:
                task()
            except Exception:
                logger.exception(f"Task for {key} failed")

    def shutdown(self, wait: bool = True) -> None:
        """Refuse new tasks; optionally wait for queued ones to finish."""
        with self._lock:
            self._shutdown = True
        self._pool.shutdown(wait=wait)
