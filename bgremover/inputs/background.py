from __future__ import annotations

from pathlib import Path
from typing import Optional, Tuple

import cv2
import numpy as np

from bgremover.utils.errors import ConfigurationError
from bgremover.utils.logger import get_logger

VIDEO_SUFFIXES = {".mp4", ".avi", ".mov", ".mkv", ".webm"}


class BackgroundSource:
    """
    Replacement background: a still image, a looping video or a solid color.

    Every returned image has exactly the requested frame size and the same
    channel order as the frames it replaces.
    """

    def __init__(
        self,
        path: Optional[str | Path] = None,
        color: Tuple[int, int, int] = (0, 255, 0),
        color_order: str = "bgr",
    ):
        self.logger = get_logger(__name__)
        self.path = Path(path) if path else None
        self.color_order = color_order
        # color is configured as RGB
        self.color = tuple(int(c) for c in (color[::-1] if color_order == "bgr" else color))
        self._image: Optional[np.ndarray] = None
        self._cap = None
        self._cache: Optional[np.ndarray] = None

        if self.path is None:
            self.logger.info("Background: solid color %s", tuple(color))
            return
        if not self.path.exists():
            raise ConfigurationError(f"Background not found: {self.path}")

        if self.path.suffix.lower() in VIDEO_SUFFIXES:
            self._cap = cv2.VideoCapture(str(self.path))
            if not self._cap.isOpened():
                raise ConfigurationError(f"Could not open background video: {self.path}")
            self.logger.info("Background: looping video %s", self.path)
        else:
            image = cv2.imread(str(self.path), cv2.IMREAD_COLOR)
            if image is None:
                raise ConfigurationError(f"Could not read background image: {self.path}")
            self._image = self._to_order(image)
            self.logger.info("Background: image %s (%dx%d)", self.path, image.shape[1], image.shape[0])

    def _to_order(self, bgr: np.ndarray) -> np.ndarray:
        return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB) if self.color_order == "rgb" else bgr

    def _next_video_frame(self) -> np.ndarray:
        ok, frame = self._cap.read()
        if not ok:
            self._cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ok, frame = self._cap.read()
            if not ok:
                raise RuntimeError(f"Background video has no frames: {self.path}")
        return self._to_order(frame)

    def frame_for(self, shape: Tuple[int, ...]) -> np.ndarray:
        """Background image sized for a frame of ``shape`` (H, W, 3)."""
        height, width = shape[:2]
        if self._cap is not None:
            return cv2.resize(self._next_video_frame(), (width, height), interpolation=cv2.INTER_LINEAR)

        if self._cache is not None and self._cache.shape[:2] == (height, width):
            return self._cache
        if self._image is None:
            self._cache = np.empty((height, width, 3), dtype=np.uint8)
            self._cache[:] = self.color
        else:
            self._cache = cv2.resize(self._image, (width, height), interpolation=cv2.INTER_AREA)
        return self._cache

    def close(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
