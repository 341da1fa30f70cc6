from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from bgremover.utils.errors import ConfigurationError


def load_yaml(path: str | Path) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path.resolve()}")
    with config_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def get(cfg: Dict[str, Any], key: str, default: Any = None) -> Any:
    """
    Dot-access helper:
      get(cfg, "runtime.output_dir", "results")
    """
    cur: Any = cfg
    for part in key.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur


def set_path(cfg: Dict[str, Any], key: str, value: Any) -> None:
    """Dot-path setter used for CLI overrides; intermediate dicts are created."""
    cur = cfg
    parts = key.split(".")
    for part in parts[:-1]:
        nxt = cur.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            cur[part] = nxt
        cur = nxt
    cur[parts[-1]] = value


INTERPOLATIONS = ("linear", "cubic", "area", "nearest")


@dataclass
class ModelSettings:
    path: str
    kind: str
    threads: int = 1
    gpu: bool = False
    engine: str = "auto"
    gpu_delegate_library: Optional[str] = None
    gpu_delegate_options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SegmentationSettings:
    person_class: int = 15
    threshold: float = 0.5
    decode_workers: int = 1
    value_range: Optional[Tuple[float, float]] = None
    interpolation: str = "linear"


@dataclass
class DebugSettings:
    show_output_frame: bool = False
    show_model_input_frame: bool = False
    show_model_output: bool = False


@dataclass
class AppSettings:
    model: ModelSettings
    segmentation: SegmentationSettings
    debug: DebugSettings
    video_input: Union[int, str] = 0
    color_order: str = "bgr"
    capture_size: Optional[Tuple[int, int]] = None
    background_path: Optional[str] = None
    background_color: Tuple[int, int, int] = (0, 255, 0)
    output_dir: str = "results"
    log_level: str = "INFO"
    save_video: bool = True
    save_metrics: bool = True
    threaded_capture: bool = False
    queue_size: int = 2
    target_fps: float = 30.0
    log_every: int = 30
    overlay: bool = False

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "AppSettings":
        model_path = get(cfg, "model.path")
        if not model_path:
            raise ConfigurationError("model.path is required")
        model_kind = get(cfg, "model.kind")
        if not model_kind:
            raise ConfigurationError("model.kind is required")

        threads = _positive_int(get(cfg, "model.threads", 1), "model.threads")
        engine = str(get(cfg, "model.engine", "auto")).lower()
        model = ModelSettings(
            path=str(model_path),
            kind=str(model_kind),
            threads=threads,
            gpu=bool(get(cfg, "model.gpu", False)),
            engine=engine,
            gpu_delegate_library=get(cfg, "model.gpu_delegate_library"),
            gpu_delegate_options=dict(get(cfg, "model.gpu_delegate_options", {}) or {}),
        )

        threshold = float(get(cfg, "segmentation.threshold", 0.5))
        if not 0.0 <= threshold <= 1.0:
            raise ConfigurationError(f"segmentation.threshold must be within [0, 1], got {threshold}")
        person_class = int(get(cfg, "segmentation.person_class", 15))
        if person_class < 0:
            raise ConfigurationError(f"segmentation.person_class must be >= 0, got {person_class}")
        interpolation = str(get(cfg, "segmentation.interpolation", "linear")).lower()
        if interpolation not in INTERPOLATIONS:
            raise ConfigurationError(f"segmentation.interpolation must be one of {INTERPOLATIONS}, got {interpolation!r}")
        value_range = get(cfg, "segmentation.value_range")
        if value_range is not None:
            if len(value_range) != 2 or float(value_range[0]) > float(value_range[1]):
                raise ConfigurationError(f"segmentation.value_range must be [lo, hi], got {value_range!r}")
            value_range = (float(value_range[0]), float(value_range[1]))
        segmentation = SegmentationSettings(
            person_class=person_class,
            threshold=threshold,
            decode_workers=_positive_int(get(cfg, "segmentation.decode_workers", 1), "segmentation.decode_workers"),
            value_range=value_range,
            interpolation=interpolation,
        )

        debug = DebugSettings(
            show_output_frame=bool(get(cfg, "debug.show_output_frame", False)),
            show_model_input_frame=bool(get(cfg, "debug.show_model_input_frame", False)),
            show_model_output=bool(get(cfg, "debug.show_model_output", False)),
        )

        video_input = get(cfg, "video.input", 0)
        if isinstance(video_input, str) and video_input.isdigit():
            video_input = int(video_input)
        color_order = str(get(cfg, "video.color_order", "bgr")).lower()
        if color_order not in ("bgr", "rgb"):
            raise ConfigurationError(f"video.color_order must be 'bgr' or 'rgb', got {color_order!r}")
        width, height = get(cfg, "video.width"), get(cfg, "video.height")
        capture_size = (int(width), int(height)) if width and height else None

        color = get(cfg, "background.color", [0, 255, 0])
        if len(color) != 3:
            raise ConfigurationError(f"background.color must have 3 components, got {color!r}")

        return cls(
            model=model,
            segmentation=segmentation,
            debug=debug,
            video_input=video_input,
            color_order=color_order,
            capture_size=capture_size,
            background_path=get(cfg, "background.path"),
            background_color=tuple(int(c) for c in color),
            output_dir=str(get(cfg, "runtime.output_dir", "results")),
            log_level=str(get(cfg, "runtime.log_level", "INFO")),
            save_video=bool(get(cfg, "runtime.save_video", True)),
            save_metrics=bool(get(cfg, "runtime.save_metrics", True)),
            threaded_capture=bool(get(cfg, "runtime.threaded_capture", False)),
            queue_size=_positive_int(get(cfg, "runtime.queue_size", 2), "runtime.queue_size"),
            target_fps=float(get(cfg, "runtime.target_fps", 30.0)),
            log_every=_positive_int(get(cfg, "runtime.log_every", 30), "runtime.log_every"),
            overlay=bool(get(cfg, "runtime.overlay", False)),
        )


def _positive_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or (isinstance(value, float) and not value.is_integer()):
        raise ConfigurationError(f"{key} must be a positive integer, got {value!r}")
    try:
        ivalue = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{key} must be a positive integer, got {value!r}") from exc
    if ivalue < 1:
        raise ConfigurationError(f"{key} must be a positive integer, got {value!r}")
    return ivalue
