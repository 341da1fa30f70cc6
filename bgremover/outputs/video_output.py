from __future__ import annotations

from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from bgremover.utils.logger import get_logger


class VideoOutput:
    """mp4v writer opened lazily on the first frame so the size is known."""

    def __init__(self, path: str | Path, fps: float = 30.0, rgb_frames: bool = False, fourcc: str = "mp4v"):
        self.path = Path(path)
        self.fps = fps
        self.rgb_frames = rgb_frames
        self.fourcc = fourcc
        self.logger = get_logger(__name__)
        self.frames_written = 0
        self._writer: Optional[cv2.VideoWriter] = None

    def write(self, frame: np.ndarray) -> None:
        if self._writer is None:
            height, width = frame.shape[:2]
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._writer = cv2.VideoWriter(str(self.path), cv2.VideoWriter_fourcc(*self.fourcc), self.fps, (width, height))
            if not self._writer.isOpened():
                raise RuntimeError(f"Could not open VideoWriter ({self.fourcc}) for {self.path}. Try a different codec/container.")
            self.logger.info("Writing %s (%dx%d @ %.1f fps)", self.path, width, height, self.fps)
        if self.rgb_frames:
            frame = cv2.cvtColor(frame, cv2.COLOR_RGB2BGR)
        self._writer.write(frame)
        self.frames_written += 1

    def close(self) -> None:
        if self._writer is not None:
            self._writer.release()
            self._writer = None
            self.logger.info("Saved video: %s (%d frames)", self.path, self.frames_written)
