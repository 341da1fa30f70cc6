from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional

import cv2
import numpy as np

from bgremover.segmentation import numeric
from bgremover.segmentation.model_kinds import PERSON_CLASS, PERSON_THRESHOLD, DecodeOptions
from bgremover.utils.errors import ShapeMismatchError
from bgremover.utils.logger import get_logger
from bgremover.utils.timing import StageTimer

if TYPE_CHECKING:
    from bgremover.segmentation.model_adapter import ModelAdapter
    from bgremover.visualization.debug_view import DebugView


@dataclass(frozen=True)
class SegmentationOptions:
    person_class: int = PERSON_CLASS
    threshold: float = PERSON_THRESHOLD
    decode_workers: int = 1
    interpolation: int = cv2.INTER_LINEAR
    # Frames arrive as BGR from OpenCV capture; models expect RGB.
    swap_rb: bool = False
    check_range: bool = __debug__

    @property
    def decode_options(self) -> DecodeOptions:
        return DecodeOptions(person_class=self.person_class, threshold=self.threshold)


@dataclass
class FrameStats:
    inference_ms: float = 0.0
    stages_ms: Dict[str, float] = field(default_factory=dict)
    background_fraction: float = 0.0


class SegmentationPipeline:
    """
    Frame -> person mask -> composited frame.

    ``adapter`` is anything exposing ``geometry``, ``variant`` and
    ``run_inference()`` (normally a ModelAdapter).
    """

    def __init__(
        self,
        adapter: "ModelAdapter",
        options: Optional[SegmentationOptions] = None,
        debug: Optional["DebugView"] = None,
    ):
        self.adapter = adapter
        self.options = options or SegmentationOptions()
        self.debug = debug
        self.logger = get_logger(__name__)
        self._decode_options = self.options.decode_options
        self._lock = threading.Lock()
        self._executor = (
            ThreadPoolExecutor(max_workers=self.options.decode_workers, thread_name_prefix="decode")
            if self.options.decode_workers > 1
            else None
        )

    def preprocess(self, frame: np.ndarray) -> np.ndarray:
        """Resize to model resolution and normalize; returns height x width x 3 float32."""
        geom = self.adapter.geometry
        variant = self.adapter.variant
        small = numeric.resize(frame, geom.width, geom.height, self.options.interpolation)
        if self.debug is not None:
            self.debug.model_input(small)
        if self.options.swap_rb:
            small = small[..., ::-1]

        tensor = variant.normalize(small)
        if tensor.nbytes != geom.tensor_nbytes:
            raise ShapeMismatchError(
                f"model input is {tensor.nbytes} bytes, expected {geom.tensor_nbytes} "
                f"({geom.width}x{geom.height}x3 float32)"
            )
        if self.options.check_range:
            numeric.check_values_in_range(tensor, *variant.value_range)
        return tensor

    def decode(self, output: np.ndarray) -> np.ndarray:
        """Model output buffer -> (mask_height, mask_width) uint8 mask, 1 = background."""
        geom = self.adapter.geometry
        variant = self.adapter.variant
        output = np.asarray(output)
        expected = geom.mask_width * geom.mask_height * variant.channels
        if output.size != expected:
            raise ShapeMismatchError(
                f"model output has {output.size} values, expected {expected} "
                f"({geom.mask_width}x{geom.mask_height}x{variant.channels})"
            )
        cells = output.reshape(geom.mask_height, geom.mask_width, variant.channels)
        opts = self._decode_options
        return numeric.decode_rows(
            cells,
            lambda band: variant.decode(band, opts),
            workers=self.options.decode_workers,
            executor=self._executor,
        )

    def segment(self, frame: np.ndarray, timer: Optional[StageTimer] = None) -> np.ndarray:
        """Full-resolution binary mask for ``frame``, 1 = background."""
        timer = timer or StageTimer()
        with timer.stage("preprocess"):
            tensor = self.preprocess(frame)

        with self._lock:
            t0 = time.perf_counter()
            output = self.adapter.run_inference(tensor)
            inference_ms = timer.mark("inference", t0)
            self.logger.debug("Inference time: %.1fms", inference_ms)
            with timer.stage("decode"):
                mask = self.decode(output)

        if self.debug is not None:
            self.debug.model_output(mask)

        with timer.stage("upscale"):
            return numeric.resize(mask, frame.shape[1], frame.shape[0], self.options.interpolation)

    def process(self, frame: np.ndarray, replacement: np.ndarray) -> FrameStats:
        """Replace the background of ``frame`` with ``replacement`` in place."""
        if frame.shape != replacement.shape:
            raise ShapeMismatchError(
                f"frame {frame.shape} and replacement image {replacement.shape} must have the same size"
            )
        timer = StageTimer()
        mask = self.segment(frame, timer)
        with timer.stage("composite"):
            numeric.composite(frame, replacement, mask)
        return FrameStats(
            inference_ms=timer.stages_ms.get("inference", 0.0),
            stages_ms=dict(timer.stages_ms),
            background_fraction=float(mask.mean()) if mask.size else 0.0,
        )

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None
