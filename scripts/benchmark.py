#!/usr/bin/env python3
"""
Benchmark the segmentation pipeline on synthetic frames.

  python scripts/benchmark.py --model models/deeplabv3_257_mv_gpu.tflite --model-kind deeplabv3
"""
from __future__ import annotations

import argparse
import time
from statistics import median

import numpy as np
from rich.console import Console
from rich.table import Table
from tqdm import tqdm

from bgremover.segmentation.model_adapter import ModelAdapter
from bgremover.segmentation.pipeline import SegmentationOptions, SegmentationPipeline


def percentile(xs, q):
    return float(np.percentile(np.asarray(xs), q)) if xs else 0.0


def main():
    parser = argparse.ArgumentParser(description="bgremover pipeline benchmark")
    parser.add_argument("--model", required=True)
    parser.add_argument("--model-kind", required=True)
    parser.add_argument("--threads", type=int, default=4)
    parser.add_argument("--gpu", action="store_true")
    parser.add_argument("--width", type=int, default=1280)
    parser.add_argument("--height", type=int, default=720)
    parser.add_argument("-n", type=int, default=50)
    parser.add_argument("--warmup", type=int, default=5)
    parser.add_argument("--decode-workers", type=int, default=1)
    args = parser.parse_args()

    rng = np.random.default_rng(0)
    frame = rng.integers(0, 256, size=(args.height, args.width, 3), dtype=np.uint8)
    background = np.zeros_like(frame)

    with ModelAdapter(args.model, args.model_kind, num_threads=args.threads, use_gpu=args.gpu) as adapter:
        pipeline = SegmentationPipeline(adapter, SegmentationOptions(decode_workers=args.decode_workers, check_range=False))
        for _ in range(args.warmup):
            pipeline.process(frame.copy(), background)

        totals, inference = [], []
        for _ in tqdm(range(args.n), desc="Benchmark"):
            work = frame.copy()
            t0 = time.perf_counter()
            stats = pipeline.process(work, background)
            totals.append((time.perf_counter() - t0) * 1000.0)
            inference.append(stats.inference_ms)
        pipeline.close()

    table = Table(title=f"{args.model_kind} {adapter.width}x{adapter.height} stride={adapter.stride}")
    table.add_column("metric")
    table.add_column("value", justify="right")
    table.add_row("frame p50 (ms)", f"{median(totals):.2f}")
    table.add_row("frame p95 (ms)", f"{percentile(totals, 95):.2f}")
    table.add_row("inference p50 (ms)", f"{median(inference):.2f}")
    table.add_row("inference p95 (ms)", f"{percentile(inference, 95):.2f}")
    table.add_row("fps (p50)", f"{1000.0 / median(totals):.1f}")
    Console().print(table)


if __name__ == "__main__":
    main()
