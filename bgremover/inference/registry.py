from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from bgremover.inference.base_engine import BaseEngine
from bgremover.utils.errors import ConfigurationError

ENGINE_SUFFIXES = {".tflite": "tflite", ".onnx": "onnx"}


def resolve_engine_name(model_path: str | Path, engine: str = "auto") -> str:
    engine = (engine or "auto").lower()
    if engine == "auto":
        suffix = Path(model_path).suffix.lower()
        if suffix not in ENGINE_SUFFIXES:
            raise ConfigurationError(
                f"Cannot infer inference engine from {model_path!s}; expected one of {sorted(ENGINE_SUFFIXES)}"
            )
        return ENGINE_SUFFIXES[suffix]
    if engine not in ENGINE_SUFFIXES.values():
        raise ConfigurationError(f"Unknown inference engine {engine!r}")
    return engine


def open_engine(
    model_path: str | Path,
    num_threads: int = 1,
    use_gpu: bool = False,
    engine: str = "auto",
    gpu_delegate_library: Optional[str] = None,
    gpu_delegate_options: Optional[Dict[str, Any]] = None,
) -> BaseEngine:
    """Load ``model_path`` with the backend chosen by name or file suffix."""
    name = resolve_engine_name(model_path, engine)
    if name == "tflite":
        from bgremover.inference.tflite_engine import TFLiteEngine

        return TFLiteEngine(
            model_path,
            num_threads=num_threads,
            use_gpu=use_gpu,
            gpu_delegate_library=gpu_delegate_library,
            gpu_delegate_options=gpu_delegate_options,
        )

    from bgremover.inference.onnx_engine import OnnxEngine

    return OnnxEngine(model_path, num_threads=num_threads, use_gpu=use_gpu)
