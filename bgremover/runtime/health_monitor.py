from typing import Any, Dict

from bgremover.utils.logger import get_logger


class HealthMonitor:
    """Tracks per-frame latency against the frame-rate budget."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.logger = get_logger(__name__)
        target_fps = float(config.get("target_fps", 0) or 0)
        self.budget_ms = float(config.get("watchdog_ms", 0) or (1000.0 / target_fps if target_fps > 0 else 0))
        self.frames = 0
        self.misses = 0

    def check_latency(self, latency_ms: float) -> bool:
        self.frames += 1
        if self.budget_ms and latency_ms > self.budget_ms:
            self.misses += 1
            self.logger.warning("Latency budget exceeded: %.2f ms > %.2f ms", latency_ms, self.budget_ms)
            return False
        return True

    @property
    def miss_ratio(self) -> float:
        return self.misses / self.frames if self.frames else 0.0
