#!/usr/bin/env python3
"""Replace the background of a single image and save the result plus the mask."""
from __future__ import annotations

import argparse
from pathlib import Path

import cv2

from bgremover.inputs.background import BackgroundSource
from bgremover.segmentation import numeric
from bgremover.segmentation.model_adapter import ModelAdapter
from bgremover.segmentation.pipeline import SegmentationOptions, SegmentationPipeline
from bgremover.utils.logger import setup_logger
from bgremover.utils.timing import StageTimer


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("image")
    parser.add_argument("--model", required=True)
    parser.add_argument("--model-kind", required=True)
    parser.add_argument("--background", help="Background image (default: solid green)")
    parser.add_argument("--out", default="results/segmented.png")
    args = parser.parse_args()

    setup_logger(log_dir=None)
    frame = cv2.imread(args.image, cv2.IMREAD_COLOR)
    if frame is None:
        raise RuntimeError(f"Cannot read image: {args.image}")

    background = BackgroundSource(args.background)
    timer = StageTimer()
    with ModelAdapter(args.model, args.model_kind) as adapter:
        pipeline = SegmentationPipeline(adapter, SegmentationOptions(swap_rb=True))
        mask = pipeline.segment(frame, timer)
        pipeline.close()
    numeric.composite(frame, background.frame_for(frame.shape), mask)

    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    cv2.imwrite(str(out), frame)
    cv2.imwrite(str(out.with_name(out.stem + "_mask.png")), numeric.mask_to_image(mask))

    print("Segmentation OK")
    print("Mask shape:", mask.shape)
    print("Background fraction:", round(float(mask.mean()), 4))
    print("Inference (ms):", round(timer.stages_ms.get("inference", 0.0), 2))
    print("Saved:", out)


if __name__ == "__main__":
    main()
