#!/usr/bin/env python3
import json
import sys
from pathlib import Path
from statistics import mean, median


def safe_mean(xs):
    xs = [x for x in xs if x is not None]
    return mean(xs) if xs else None


def pct(n, d):
    return (100.0 * n / d) if d else 0.0


def main():
    if len(sys.argv) < 2:
        print("Usage: python scripts/summarize_run.py results/run_YYYYMMDD_HHMMSS")
        sys.exit(1)

    run_dir = Path(sys.argv[1])
    metrics_path = run_dir / "metrics.json"
    if not metrics_path.exists():
        raise FileNotFoundError(f"Missing: {metrics_path}")

    m = json.loads(metrics_path.read_text())
    frames = m.get("frames", [])
    n = len(frames)
    if n == 0:
        print("No frames found in metrics.json")
        return

    fps_vals = [f.get("fps") for f in frames if f.get("fps") is not None]
    inf_ms = [f.get("inference_ms") for f in frames]
    total_ms = [f.get("stages_ms", {}).get("total") for f in frames]
    bg = [f.get("background_fraction") for f in frames]
    misses = sum(1 for f in frames if not f.get("budget_ok", True))

    model = m.get("model", {})
    print(f"Run: {run_dir}")
    print(f"Model: {model.get('kind')} {model.get('width')}x{model.get('height')} stride={model.get('stride')}")
    print(f"Frames: {n}")
    print(f"FPS mean/median: {safe_mean(fps_vals) or 0:.1f} / {median(fps_vals) if fps_vals else 0:.1f}")
    print(f"Inference mean (ms): {safe_mean(inf_ms) or 0:.2f}")
    print(f"Frame total mean (ms): {safe_mean(total_ms) or 0:.2f}")
    print(f"Background fraction mean: {safe_mean(bg) or 0:.3f}")
    print(f"Budget misses: {misses} ({pct(misses, n):.1f}%)")


if __name__ == "__main__":
    main()
