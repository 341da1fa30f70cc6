from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Iterable, Iterator, Optional, Tuple

from bgremover.utils.logger import get_logger
from bgremover.utils.types import FramePacket


class FrameSync:
    """Bounded, thread-safe frame buffer; when full the oldest frame is dropped."""

    def __init__(self, max_buffer: int = 4):
        self.buffer: Deque[FramePacket] = deque(maxlen=max_buffer)
        self.dropped = 0
        self._closed = False
        self._cond = threading.Condition()

    def push(self, packet: FramePacket) -> None:
        with self._cond:
            if len(self.buffer) == self.buffer.maxlen:
                self.dropped += 1
            self.buffer.append(packet)
            self._cond.notify()

    def latest(self) -> Optional[FramePacket]:
        with self._cond:
            return self.buffer[-1] if self.buffer else None

    def pop(self, timeout: Optional[float] = None) -> Optional[FramePacket]:
        """Oldest buffered frame; None once closed and drained, or on timeout."""
        with self._cond:
            if not self._cond.wait_for(lambda: self.buffer or self._closed, timeout=timeout):
                return None
            return self.buffer.popleft() if self.buffer else None

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


class CaptureThread:
    """
    Producer side of the capture -> processing stage.

    Reads ``frames`` on a background thread into a FrameSync; the caller's
    thread consumes them and stays the only user of the pipeline.
    """

    def __init__(self, frames: Iterable[Tuple[int, FramePacket]], max_buffer: int = 2):
        self.sync = FrameSync(max_buffer=max_buffer)
        self.logger = get_logger(__name__)
        self.error: Optional[BaseException] = None
        self._frames = frames
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="capture", daemon=True)

    def _run(self) -> None:
        try:
            for _, packet in self._frames:
                if self._stop.is_set():
                    break
                self.sync.push(packet)
        except Exception as exc:
            self.error = exc
            self.logger.exception("Capture thread failed")
        finally:
            self.sync.close()

    def start(self) -> "CaptureThread":
        self._thread.start()
        return self

    def __iter__(self) -> Iterator[Tuple[int, FramePacket]]:
        while True:
            packet = self.sync.pop()
            if packet is None:
                break
            yield packet.frame_id, packet
        if self.error is not None:
            raise self.error

    def stop(self, timeout: float = 2.0) -> None:
        self._stop.set()
        self._thread.join(timeout=timeout)
        if self.sync.dropped:
            self.logger.info("Capture dropped %d stale frames", self.sync.dropped)
