"""
Numeric helpers shared by the model variants and the pipeline.

Frames are HxWx3 uint8 arrays. Model output grids are row-major
(index = y * mask_width + x) and are handled here as (rows, cols, channels).
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional, Sequence, Tuple

import cv2
import numpy as np

MASK_BACKGROUND = 1
MASK_PERSON = 0

INTERPOLATION_FLAGS = {
    "linear": cv2.INTER_LINEAR,
    "cubic": cv2.INTER_CUBIC,
    "area": cv2.INTER_AREA,
    "nearest": cv2.INTER_NEAREST,
}


def scale_to_unit(img: np.ndarray) -> np.ndarray:
    """uint8 [0, 255] -> float32 [-0.5, 0.5]."""
    return img.astype(np.float32) / 255.0 - 0.5


def subtract_mean(img: np.ndarray, mean: Sequence[float]) -> np.ndarray:
    return img.astype(np.float32) - np.asarray(mean, dtype=np.float32)


def check_values_in_range(tensor: np.ndarray, lo: float, hi: float) -> None:
    """Debug check: every element of ``tensor`` lies in [lo, hi]."""
    tmin, tmax = float(tensor.min()), float(tensor.max())
    assert tmin >= lo, f"normalized value {tmin} below {lo}"
    assert tmax <= hi, f"normalized value {tmax} above {hi}"


def argmax_mask(scores: np.ndarray, keep_class: int) -> np.ndarray:
    """(rows, cols, classes) scores -> 1 where the winning class is not ``keep_class``."""
    labels = np.argmax(scores, axis=-1)  # first occurrence wins ties
    return (labels != keep_class).astype(np.uint8)


def threshold_mask(probs: np.ndarray, threshold: float) -> np.ndarray:
    """(rows, cols, 1) probabilities -> 1 where below ``threshold``."""
    return (probs[..., 0] < threshold).astype(np.uint8)


def decode_rows(
    cells: np.ndarray,
    decode_fn: Callable[[np.ndarray], np.ndarray],
    workers: int = 1,
    executor: Optional[ThreadPoolExecutor] = None,
) -> np.ndarray:
    """
    Apply ``decode_fn`` to a (rows, cols, channels) grid.

    With more than one worker the rows are split into bands; every band
    writes to its own slice of the result, so no locking is needed and the
    output is identical to the single-band decode.
    """
    rows, cols = cells.shape[:2]
    if workers <= 1 or rows < 2:
        return decode_fn(cells)

    out = np.empty((rows, cols), dtype=np.uint8)
    bounds = np.linspace(0, rows, num=min(workers, rows) + 1, dtype=int)
    bands = list(zip(bounds[:-1], bounds[1:]))

    def _run(band: Tuple[int, int]) -> None:
        y0, y1 = band
        out[y0:y1] = decode_fn(cells[y0:y1])

    if executor is not None:
        list(executor.map(_run, bands))
    else:
        with ThreadPoolExecutor(max_workers=len(bands)) as pool:
            list(pool.map(_run, bands))
    return out


def resize(img: np.ndarray, width: int, height: int, interpolation: int = cv2.INTER_LINEAR) -> np.ndarray:
    if img.shape[1] == width and img.shape[0] == height:
        return img.copy()
    return cv2.resize(img, (width, height), interpolation=interpolation)


def composite(frame: np.ndarray, replacement: np.ndarray, mask: np.ndarray) -> None:
    """Copy ``replacement`` into ``frame`` wherever ``mask`` is set. Mutates ``frame``."""
    np.copyto(frame, replacement, where=(mask != MASK_PERSON)[..., None])


def mask_to_image(mask: np.ndarray) -> np.ndarray:
    """Binary mask -> viewable uint8 image (background white)."""
    return (mask * 255).astype(np.uint8)
