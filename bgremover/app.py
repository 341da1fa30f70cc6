from __future__ import annotations

import argparse
import json
import logging
from contextlib import ExitStack
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import cv2
from rich.console import Console
from tqdm import tqdm

from bgremover.inputs.background import BackgroundSource
from bgremover.inputs.video_input import VideoInput
from bgremover.outputs.video_output import VideoOutput
from bgremover.runtime.frame_sync import CaptureThread
from bgremover.runtime.orchestrator import Orchestrator
from bgremover.segmentation.model_adapter import ModelAdapter
from bgremover.segmentation.numeric import INTERPOLATION_FLAGS
from bgremover.segmentation.pipeline import SegmentationOptions, SegmentationPipeline
from bgremover.utils.config import AppSettings, load_yaml, set_path
from bgremover.utils.logger import setup_logger
from bgremover.visualization.debug_view import DebugFlags, DebugView
from bgremover.visualization.overlay import draw_hud

# CLI flag -> config key
OVERRIDES = {
    "input": "video.input",
    "background": "background.path",
    "model": "model.path",
    "model_kind": "model.kind",
    "threads": "model.threads",
    "engine": "model.engine",
    "output_dir": "runtime.output_dir",
    "log_level": "runtime.log_level",
}
DEBUG_FLAGS = ("show_output_frame", "show_model_input_frame", "show_model_output")


def make_run_dir(base_dir: str | Path) -> Path:
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    run_dir = Path(base_dir) / f"run_{ts}"
    run_dir.mkdir(parents=True, exist_ok=True)
    return run_dir


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Real-time person/background segmentation and replacement")
    parser.add_argument("--config", default="configs/system.yaml", help="Path to YAML config")
    parser.add_argument("--input", help="Input video path or camera index")
    parser.add_argument("--background", help="Replacement background image or video")
    parser.add_argument("--model", help="Segmentation model file (.tflite or .onnx)")
    parser.add_argument("--model-kind", choices=["deeplabv3", "bodypix_resnet", "bodypix_mobilenet"])
    parser.add_argument("--threads", type=int, help="Inference threads")
    parser.add_argument("--engine", choices=["auto", "tflite", "onnx"])
    parser.add_argument("--gpu", action="store_true", default=None, help="Enable GPU acceleration")
    parser.add_argument("--output-dir", help="Base directory for run outputs")
    parser.add_argument("--log-level")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N frames (0 = until input ends)")
    parser.add_argument("--no-save", action="store_true", help="Do not write output.mp4")
    for flag in DEBUG_FLAGS:
        parser.add_argument("--" + flag.replace("_", "-"), action="store_true", default=None)
    return parser


def apply_overrides(cfg: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    for attr, key in OVERRIDES.items():
        value = getattr(args, attr, None)
        if value is not None:
            set_path(cfg, key, value)
    if args.gpu:
        set_path(cfg, "model.gpu", True)
    if args.no_save:
        set_path(cfg, "runtime.save_video", False)
    for flag in DEBUG_FLAGS:
        if getattr(args, flag, None):
            set_path(cfg, f"debug.{flag}", True)
    return cfg


def use_threaded_capture(settings: AppSettings, vin: VideoInput, logger: logging.Logger) -> bool:
    """Background capture drops stale frames, so it only applies to cameras."""
    if not settings.threaded_capture:
        return False
    if not vin.is_camera:
        logger.warning("runtime.threaded_capture ignored for file input %s; every frame is processed", vin.name)
        return False
    return True


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    cfg = load_yaml(args.config) if Path(args.config).exists() or args.config != "configs/system.yaml" else {}
    cfg = apply_overrides(cfg, args)
    settings = AppSettings.from_config(cfg)

    run_dir = make_run_dir(settings.output_dir)
    logger = setup_logger(log_dir=run_dir, level=settings.log_level)

    console = Console()
    console.print(f"[bold]bgremover[/bold] run dir: {run_dir}")
    console.print(f"model: {settings.model.path} ({settings.model.kind}, threads={settings.model.threads}, gpu={settings.model.gpu})")

    rgb = settings.color_order == "rgb"
    debug = DebugView(DebugFlags.from_settings(settings.debug), rgb_frames=rgb)
    options = SegmentationOptions(
        person_class=settings.segmentation.person_class,
        threshold=settings.segmentation.threshold,
        decode_workers=settings.segmentation.decode_workers,
        interpolation=INTERPOLATION_FLAGS[settings.segmentation.interpolation],
        swap_rb=not rgb,
    )

    metrics: Dict[str, Any] = {"config": cfg, "frames": []}

    with ExitStack() as stack:
        adapter = stack.enter_context(
            ModelAdapter(
                settings.model.path,
                settings.model.kind,
                num_threads=settings.model.threads,
                use_gpu=settings.model.gpu,
                engine=settings.model.engine,
                value_range=settings.segmentation.value_range,
                gpu_delegate_library=settings.model.gpu_delegate_library,
                gpu_delegate_options=settings.model.gpu_delegate_options or None,
            )
        )
        pipeline = SegmentationPipeline(adapter, options, debug=debug if debug else None)
        stack.callback(pipeline.close)
        metrics["model"] = {
            "path": settings.model.path,
            "kind": adapter.kind.value,
            "width": adapter.width,
            "height": adapter.height,
            "stride": adapter.stride,
        }

        vin = VideoInput(settings.video_input, size=settings.capture_size)
        stack.callback(vin.stop)
        logger.info("Input: %s", vin.name)
        metrics["input"] = {"source": vin.name, "meta": vin.meta.__dict__ if vin.meta else {}}

        background = BackgroundSource(settings.background_path, settings.background_color, settings.color_order)
        stack.callback(background.close)

        writer = None
        if settings.save_video:
            writer = VideoOutput(run_dir / "output.mp4", fps=vin.meta.fps if vin.meta else 30.0, rgb_frames=rgb)
            stack.callback(writer.close)
        stack.callback(debug.close)

        orchestrator = Orchestrator(pipeline, cfg, logger)

        frames = vin.frames()
        if use_threaded_capture(settings, vin, logger):
            capture = CaptureThread(frames, max_buffer=settings.queue_size).start()
            stack.callback(capture.stop)
            frames = iter(capture)

        total = vin.meta.frame_count if vin.meta and vin.meta.frame_count > 0 else None
        if args.max_frames:
            total = min(total, args.max_frames) if total else args.max_frames
        for frame_id, packet in tqdm(frames, total=total, desc="Processing"):
            frame = cv2.cvtColor(packet.frame, cv2.COLOR_BGR2RGB) if rgb else packet.frame
            report = orchestrator.process_frame(frame_id, frame, background.frame_for(frame.shape))

            render = frame
            if settings.overlay:
                render = draw_hud(frame, report.fps, report.stages_ms, report.warnings, rgb=rgb)
            if writer is not None:
                writer.write(render)
            debug.output_frame(render)

            if settings.save_metrics:
                metrics["frames"].append(report.to_dict())
            if not debug.poll() or (args.max_frames and frame_id >= args.max_frames):
                break

        metrics["summary"] = orchestrator.summary()

    if settings.save_metrics:
        metrics_path = run_dir / "metrics.json"
        metrics_path.write_text(json.dumps(metrics, indent=2, default=str), encoding="utf-8")
        logger.info("Saved metrics: %s", metrics_path)

    logger.info("Done.")


if __name__ == "__main__":
    main()
