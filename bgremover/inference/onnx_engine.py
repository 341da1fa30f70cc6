from __future__ import annotations

from pathlib import Path
from typing import Dict

import numpy as np
import onnxruntime as ort

from bgremover.inference.base_engine import BaseEngine, TensorSpec
from bgremover.utils.errors import ModelLoadError
from bgremover.utils.logger import get_logger

_ONNX_DTYPES: Dict[str, np.dtype] = {
    "tensor(float)": np.dtype(np.float32),
    "tensor(float16)": np.dtype(np.float16),
    "tensor(double)": np.dtype(np.float64),
    "tensor(uint8)": np.dtype(np.uint8),
    "tensor(int32)": np.dtype(np.int32),
    "tensor(int64)": np.dtype(np.int64),
}


class OnnxEngine(BaseEngine):
    """ONNX Runtime session; GPU means the CUDA execution provider."""

    name = "onnx"

    def __init__(self, model_path: str | Path, num_threads: int = 1, use_gpu: bool = False):
        self.model_path = Path(model_path)
        self.logger = get_logger(__name__)
        if not self.model_path.is_file():
            raise ModelLoadError(f"Model not found: {self.model_path}")

        providers = ["CPUExecutionProvider"]
        if use_gpu:
            if "CUDAExecutionProvider" not in ort.get_available_providers():
                raise ModelLoadError("GPU requested but CUDAExecutionProvider is not available")
            providers.insert(0, "CUDAExecutionProvider")

        opts = ort.SessionOptions()
        opts.intra_op_num_threads = num_threads
        opts.inter_op_num_threads = 1
        opts.graph_optimization_level = ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        try:
            self._session = ort.InferenceSession(str(self.model_path), sess_options=opts, providers=providers)
        except Exception as exc:  # onnxruntime raises its own Fail/InvalidGraph types
            raise ModelLoadError(f"Could not load model {self.model_path}: {exc}") from exc
        if use_gpu and "CUDAExecutionProvider" not in self._session.get_providers():
            raise ModelLoadError("CUDAExecutionProvider could not be attached to the session")
        self.logger.info("ONNX Runtime providers: %s", self._session.get_providers())

        self._input = self._session.get_inputs()[0]
        self._output = self._session.get_outputs()[0]
        self._feed: np.ndarray | None = None
        self._result: np.ndarray | None = None

    @staticmethod
    def _spec(arg) -> TensorSpec:
        shape = tuple(d if isinstance(d, int) else -1 for d in arg.shape)
        dtype = _ONNX_DTYPES.get(arg.type, np.dtype(np.object_))
        return TensorSpec(name=arg.name, shape=shape, dtype=dtype)

    @property
    def input_spec(self) -> TensorSpec:
        return self._spec(self._input)

    @property
    def output_spec(self) -> TensorSpec:
        return self._spec(self._output)

    def set_input(self, tensor: np.ndarray) -> None:
        self._feed = tensor

    def invoke(self) -> None:
        if self._session is None:
            raise RuntimeError("ONNX session already closed")
        self._result = self._session.run([self._output.name], {self._input.name: self._feed})[0]

    def get_output(self) -> np.ndarray:
        if self._result is None:
            raise RuntimeError("invoke() has not been called")
        return self._result

    def close(self) -> None:
        if self._session is not None:
            self._session = None
            self._feed = None
            self._result = None
            self.logger.debug("ONNX session released for %s", self.model_path)
