from __future__ import annotations

from contextlib import ExitStack
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np

from bgremover.inference.base_engine import BaseEngine, TensorSpec
from bgremover.utils.errors import ModelLoadError
from bgremover.utils.logger import get_logger

DEFAULT_GPU_DELEGATE = "libtensorflowlite_gpu_delegate.so"

# Sustained speed over fast single answer, latency before precision.
DEFAULT_GPU_OPTIONS: Dict[str, Any] = {
    "inference_preference": "sustained_speed",
    "inference_priority1": "min_latency",
}


class TFLiteEngine(BaseEngine):
    """LiteRT (TensorFlow Lite) interpreter with an optional GPU delegate."""

    name = "tflite"

    def __init__(
        self,
        model_path: str | Path,
        num_threads: int = 1,
        use_gpu: bool = False,
        gpu_delegate_library: Optional[str] = None,
        gpu_delegate_options: Optional[Dict[str, Any]] = None,
    ):
        self.model_path = Path(model_path)
        self.logger = get_logger(__name__)
        self._resources = ExitStack()
        self._interpreter = None

        if not self.model_path.is_file():
            raise ModelLoadError(f"Model not found: {self.model_path}")

        try:
            from ai_edge_litert.interpreter import Interpreter, load_delegate
        except ImportError as exc:
            raise ModelLoadError("LiteRT is required for .tflite models: pip install 'bgremover[tflite]'") from exc

        try:
            delegates = []
            if use_gpu:
                options = {**DEFAULT_GPU_OPTIONS, **(gpu_delegate_options or {})}
                library = gpu_delegate_library or DEFAULT_GPU_DELEGATE
                try:
                    delegate = load_delegate(library, {k: str(v) for k, v in options.items()})
                except (OSError, ValueError, RuntimeError) as exc:
                    raise ModelLoadError(f"Could not attach GPU delegate {library}: {exc}") from exc
                self._resources.callback(self._drop_delegates, delegates)
                delegates.append(delegate)
                self.logger.info("GPU delegate attached: %s %s", library, options)

            try:
                interpreter = Interpreter(
                    model_path=str(self.model_path),
                    num_threads=num_threads,
                    experimental_delegates=delegates or None,
                )
                interpreter.allocate_tensors()
            except (ValueError, RuntimeError) as exc:
                raise ModelLoadError(f"Could not load model {self.model_path}: {exc}") from exc
            self._interpreter = interpreter
            self._resources.callback(self._drop_interpreter)
        except BaseException:
            self._resources.close()
            raise

        self._input = interpreter.get_input_details()[0]
        self._output = interpreter.get_output_details()[0]

    @staticmethod
    def _spec(details: Dict[str, Any]) -> TensorSpec:
        return TensorSpec(
            name=str(details.get("name", "")),
            shape=tuple(int(d) for d in details["shape"]),
            dtype=np.dtype(details["dtype"]),
        )

    @property
    def input_spec(self) -> TensorSpec:
        return self._spec(self._input)

    @property
    def output_spec(self) -> TensorSpec:
        return self._spec(self._output)

    def set_input(self, tensor: np.ndarray) -> None:
        self._interpreter.set_tensor(self._input["index"], tensor)

    def invoke(self) -> None:
        self._interpreter.invoke()

    def get_output(self) -> np.ndarray:
        return self._interpreter.get_tensor(self._output["index"])

    def close(self) -> None:
        self._resources.close()

    def _drop_interpreter(self) -> None:
        self._interpreter = None
        self.logger.debug("Interpreter released for %s", self.model_path)

    def _drop_delegates(self, delegates: list) -> None:
        delegates.clear()
        self.logger.debug("GPU delegate released")
