from typing import Callable, List, Optional, Tuple

import numpy as np
import pytest

from bgremover.inference.base_engine import BaseEngine, TensorSpec
from bgremover.segmentation.model_adapter import TensorGeometry
from bgremover.segmentation.model_kinds import resolve_variant


class FakeEngine(BaseEngine):
    """In-memory engine: returns a fixed (or computed) output buffer."""

    name = "fake"

    def __init__(
        self,
        input_shape: Tuple[int, ...] = (1, 32, 32, 3),
        output_shape: Tuple[int, ...] = (1, 32, 32, 21),
        output: Optional[np.ndarray] = None,
        compute: Optional[Callable[[np.ndarray], np.ndarray]] = None,
        input_dtype=np.float32,
        output_dtype=np.float32,
        events: Optional[List[str]] = None,
    ):
        self._input_spec = TensorSpec("input", tuple(input_shape), np.dtype(input_dtype))
        self._output_spec = TensorSpec("output", tuple(output_shape), np.dtype(output_dtype))
        self.output = output if output is not None else np.zeros(output_shape, dtype=np.float32)
        self.compute = compute
        self.inputs: List[np.ndarray] = []
        self.invocations = 0
        self.closed = 0
        self.events = events if events is not None else []

    @property
    def input_spec(self) -> TensorSpec:
        return self._input_spec

    @property
    def output_spec(self) -> TensorSpec:
        return self._output_spec

    def set_input(self, tensor: np.ndarray) -> None:
        self.inputs.append(tensor.copy())

    def invoke(self) -> None:
        self.invocations += 1
        if self.compute is not None:
            self.output = self.compute(self.inputs[-1])

    def get_output(self) -> np.ndarray:
        return self.output

    def close(self) -> None:
        self.closed += 1
        self.events.append("engine.close")


def factory_for(engine: FakeEngine):
    calls = []

    def _factory(model_path, **kwargs):
        calls.append((model_path, kwargs))
        return engine

    _factory.calls = calls
    return _factory


class StubAdapter:
    """Adapter double that skips the per-kind stride checks."""

    def __init__(self, kind, width, height, stride, output):
        self.variant = resolve_variant(kind)
        self.geometry = TensorGeometry(width=width, height=height, stride=stride, channels=self.variant.channels)
        self.output = np.asarray(output, dtype=np.float32)
        self.inputs = []

    def run_inference(self, tensor):
        self.inputs.append(tensor)
        return self.output


@pytest.fixture
def stub_adapter():
    return StubAdapter
