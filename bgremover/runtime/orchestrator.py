from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

import numpy as np

from bgremover.runtime.health_monitor import HealthMonitor
from bgremover.segmentation.pipeline import SegmentationPipeline
from bgremover.utils.timing import FPSMeter, StageTimer


@dataclass
class FrameReport:
    frame_id: int
    fps: float
    stages_ms: Dict[str, float] = field(default_factory=dict)
    inference_ms: float = 0.0
    background_fraction: float = 0.0
    budget_ok: bool = True
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frame_id": self.frame_id,
            "fps": self.fps,
            "stages_ms": self.stages_ms,
            "inference_ms": self.inference_ms,
            "background_fraction": self.background_fraction,
            "budget_ok": self.budget_ok,
            "warnings": self.warnings,
        }


class Orchestrator:
    """Drives the pipeline one frame at a time and keeps runtime stats."""

    def __init__(self, pipeline: SegmentationPipeline, cfg: Dict[str, Any], logger):
        self.pipeline = pipeline
        self.cfg = cfg
        self.logger = logger
        runtime_cfg = cfg.get("runtime", {})
        self.fps_meter = FPSMeter(smoothing=float(runtime_cfg.get("fps_smoothing", 0.9)))
        self.health = HealthMonitor(runtime_cfg)
        self.log_every = int(runtime_cfg.get("log_every", 30))
        self.frames_processed = 0

    def process_frame(self, frame_id: int, frame: np.ndarray, background: np.ndarray) -> FrameReport:
        timer = StageTimer()
        stats = self.pipeline.process(frame, background)
        total_ms = timer.total_ms
        fps = self.fps_meter.tick()
        self.frames_processed += 1

        warnings: List[str] = []
        budget_ok = self.health.check_latency(total_ms)
        if not budget_ok:
            warnings.append(f"WARNING: frame took {total_ms:.1f} ms (budget {self.health.budget_ms:.1f} ms)")

        stages = dict(stats.stages_ms)
        stages["total"] = total_ms
        report = FrameReport(
            frame_id=frame_id,
            fps=fps,
            stages_ms=stages,
            inference_ms=stats.inference_ms,
            background_fraction=stats.background_fraction,
            budget_ok=budget_ok,
            warnings=warnings,
        )
        if self.log_every and frame_id % self.log_every == 0:
            self.logger.info(
                "[FRAME %d] fps=%.1f inference=%.1fms total=%.1fms background=%.0f%%",
                frame_id,
                fps,
                stats.inference_ms,
                total_ms,
                stats.background_fraction * 100.0,
            )
        return report

    def summary(self) -> Dict[str, Any]:
        return {
            "frames": self.frames_processed,
            "fps": self.fps_meter.fps,
            "budget_ms": self.health.budget_ms,
            "budget_misses": self.health.misses,
            "budget_miss_ratio": self.health.miss_ratio,
        }
