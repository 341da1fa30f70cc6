from __future__ import annotations

from enum import IntFlag
from typing import Callable, Optional

import cv2
import numpy as np

from bgremover.segmentation.numeric import mask_to_image


class DebugFlags(IntFlag):
    NONE = 0
    SHOW_OUTPUT_FRAME = 1 << 0
    SHOW_MODEL_INPUT_FRAME = 1 << 1
    SHOW_MODEL_OUTPUT = 1 << 2

    @classmethod
    def from_settings(cls, settings) -> "DebugFlags":
        flags = cls.NONE
        if settings.show_output_frame:
            flags |= cls.SHOW_OUTPUT_FRAME
        if settings.show_model_input_frame:
            flags |= cls.SHOW_MODEL_INPUT_FRAME
        if settings.show_model_output:
            flags |= cls.SHOW_MODEL_OUTPUT
        return flags


class DebugView:
    """Read-only display of intermediate buffers, gated by DebugFlags."""

    QUIT_KEYS = (ord("q"), 27)

    def __init__(
        self,
        flags: DebugFlags,
        rgb_frames: bool = False,
        show: Optional[Callable[[str, np.ndarray], None]] = None,
        wait_key: Optional[Callable[[int], int]] = None,
    ):
        self.flags = DebugFlags(flags)
        self.rgb_frames = rgb_frames
        self._show = show or cv2.imshow
        self._wait_key = wait_key or cv2.waitKey
        self.quit_requested = False

    def __bool__(self) -> bool:
        return bool(self.flags)

    def _display(self, window: str, img: np.ndarray) -> None:
        if self.rgb_frames and img.ndim == 3:
            img = cv2.cvtColor(img, cv2.COLOR_RGB2BGR)
        self._show(window, img)

    def model_input(self, small: np.ndarray) -> None:
        if self.flags & DebugFlags.SHOW_MODEL_INPUT_FRAME:
            self._display("model input", small)

    def model_output(self, mask: np.ndarray) -> None:
        if self.flags & DebugFlags.SHOW_MODEL_OUTPUT:
            self._display("model output", mask_to_image(mask))

    def output_frame(self, frame: np.ndarray) -> None:
        if self.flags & DebugFlags.SHOW_OUTPUT_FRAME:
            self._display("output", frame)

    def poll(self) -> bool:
        """Pump the GUI event loop; returns False once the user asked to quit."""
        if self.flags and (self._wait_key(1) & 0xFF) in self.QUIT_KEYS:
            self.quit_requested = True
        return not self.quit_requested

    def close(self) -> None:
        if self.flags:
            cv2.destroyAllWindows()
