import logging
import queue
from typing import Callable

logger = logging.getLogger(__name__)


class ActionQueue:
    """
    FIFO hand-off from notification threads to the single consumer thread.

    Producers call `push` from any thread. The consumer calls `drain_all`
    once per cycle; it runs only the actions that were queued when the drain
    started, so a busy producer cannot keep a drain going forever.
    """

    def __init__(self):
        self._queue: "queue.SimpleQueue[Callable[[], object]]" = queue.SimpleQueue()

    def push(self, action: Callable[[], object]):
        self._queue.put(action)

    def drain_all(self) -> int:
        """Execute queued actions in order. Returns how many ran."""
        pending = self._queue.qsize()
        executed = 0
        for _ in range(pending):
            try:
                action = self._queue.get_nowait()
            except queue.Empty:
                break
            executed += 1
            try:
                action()
            except Exception:
                logger.exception("Queued action failed")
        return executed

    def clear(self) -> int:
        """Drop everything queued without running it."""
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return dropped
            dropped += 1

    def __len__(self) -> int:
        return self._queue.qsize()
