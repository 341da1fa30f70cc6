from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass
class FramePacket:
    frame: np.ndarray
    timestamp: float
    frame_id: int = 0
    source: Optional[str] = None
