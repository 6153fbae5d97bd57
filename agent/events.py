"""
Progress channel and permission request types shared by the executor and tools.
"""

import asyncio
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class PendingPermission:
    """What the permission collaborator sees before a destructive command runs"""
    tool_name: str
    raw_args: Dict[str, Any] = field(default_factory=dict)
    human_description: str = ""
    diff_preview: Optional[str] = None


class ProgressNotifier:
    """One-way, bounded channel of plain-text progress messages.

    send() never blocks and never raises: when the buffer is full the
    message is dropped and counted, and after close() sends are ignored.
    Safe to call from tool worker threads.
    """

    def __init__(self, maxsize: int = 256):
        self._queue: "queue.Queue[str]" = queue.Queue(maxsize=maxsize)
        self._closed = threading.Event()
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, message: str) -> bool:
        if self._closed.is_set():
            return False
        try:
            self._queue.put_nowait(message)
            return True
        except queue.Full:
            self.dropped += 1
            logger.debug(f"Progress buffer full, dropped message ({self.dropped} so far)")
            return False

    def close(self) -> None:
        self._closed.set()

    def drain(self) -> List[str]:
        """Remove and return every buffered message."""
        out: List[str] = []
        while True:
            try:
                out.append(self._queue.get_nowait())
            except queue.Empty:
                return out

    async def stream(self, poll_interval: float = 0.05) -> AsyncIterator[str]:
        """Yield messages until the channel is closed and empty."""
        while True:
            # read the flag first: nothing is enqueued after close()
            closed = self._closed.is_set()
            batch = self.drain()
            for message in batch:
                yield message
            if not batch:
                if closed:
                    return
                await asyncio.sleep(poll_interval)
