from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Optional, Tuple, Union

import cv2

from bgremover.inputs.base_input import BaseInput
from bgremover.utils.logger import get_logger
from bgremover.utils.types import FramePacket


@dataclass
class VideoMeta:
    fps: float
    width: int
    height: int
    frame_count: int


class VideoInput(BaseInput):
    """Video file or camera (integer device index) capture."""

    def __init__(
        self,
        source: Union[int, str, Path],
        allow_missing: bool = False,
        frame_rate: Optional[float] = None,
        size: Optional[Tuple[int, int]] = None,
    ):
        self.is_camera = isinstance(source, int)
        self.source = source if self.is_camera else Path(source)
        self.logger = get_logger(__name__)
        self.frame_rate = frame_rate
        self.cap = None
        self.meta: Optional[VideoMeta] = None
        self.allow_missing = allow_missing

        if not self.is_camera and not self.source.exists():
            if allow_missing:
                self.logger.warning("Video %s not found; proceeding inert for testing.", self.source)
                return
            raise FileNotFoundError(f"Video not found: {self.source}")

        self.cap = cv2.VideoCapture(self.source if self.is_camera else str(self.source))
        if not self.cap.isOpened():
            if allow_missing:
                self.logger.warning("Could not open video %s; proceeding inert for testing.", self.source)
                self.cap = None
                return
            raise RuntimeError(f"Could not open video: {self.source}")

        if self.is_camera and size:
            self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, size[0])
            self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, size[1])

        self.meta = VideoMeta(
            fps=float(self.cap.get(cv2.CAP_PROP_FPS) or (frame_rate or 30.0)),
            width=int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            height=int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
            frame_count=0 if self.is_camera else int(self.cap.get(cv2.CAP_PROP_FRAME_COUNT) or 0),
        )
        self.logger.info(
            "Video opened: %s fps=%.2f size=%dx%d frames=%d",
            self.source,
            self.meta.fps,
            self.meta.width,
            self.meta.height,
            self.meta.frame_count,
        )

    @property
    def name(self) -> str:
        return f"camera:{self.source}" if self.is_camera else str(self.source)

    def start(self) -> None:
        # Initialization handled in __init__
        return

    def frames(self) -> Generator[Tuple[int, FramePacket], None, None]:
        if self.cap is None:
            return
        fps = self.meta.fps if self.meta else (self.frame_rate or 30)
        idx = 0
        while True:
            ok, frame = self.cap.read()
            if not ok:
                break
            idx += 1
            yield idx, FramePacket(frame=frame, timestamp=idx / fps, frame_id=idx, source=self.name)

    def stop(self) -> None:
        if self.cap:
            self.cap.release()
            self.cap = None
            self.logger.info("Closed video %s", self.source)
