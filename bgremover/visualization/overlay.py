from __future__ import annotations

from typing import Dict, List, Optional

import cv2
import numpy as np

WARNING_BGR = (0, 0, 255)


def draw_hud(
    frame: np.ndarray,
    fps: float,
    stages_ms: Dict[str, float],
    warnings: Optional[List[str]] = None,
    rgb: bool = False,
) -> np.ndarray:
    """Minimal HUD overlay with FPS and stage timings. ``rgb`` marks RGB-ordered frames."""
    render = frame.copy()
    warning_color = WARNING_BGR[::-1] if rgb else WARNING_BGR
    y = 25
    cv2.putText(render, f"bgremover | FPS: {fps:5.1f}", (15, y), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2)
    y += 28
    for name, ms in list(stages_ms.items())[:7]:
        cv2.putText(render, f"{name}: {ms:5.1f} ms", (15, y), cv2.FONT_HERSHEY_SIMPLEX, 0.6, (220, 220, 220), 2)
        y += 22
    if warnings:
        y += 8
        for w in warnings[:3]:
            cv2.putText(render, w, (15, y), cv2.FONT_HERSHEY_SIMPLEX, 0.65, warning_color, 2)
            y += 24
    return render
