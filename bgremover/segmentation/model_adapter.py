from __future__ import annotations

from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

import numpy as np

from bgremover.inference.base_engine import BaseEngine, TensorSpec
from bgremover.inference.registry import open_engine
from bgremover.segmentation.model_kinds import ModelKind, ModelVariant, resolve_variant
from bgremover.utils.errors import ConfigurationError, ModelGeometryError
from bgremover.utils.logger import get_logger

EngineFactory = Callable[..., BaseEngine]


@dataclass(frozen=True)
class TensorGeometry:
    """Input/output tensor facts read back from the loaded model."""

    width: int
    height: int
    stride: int
    channels: int

    @property
    def mask_width(self) -> int:
        return self.width // self.stride

    @property
    def mask_height(self) -> int:
        return self.height // self.stride

    @property
    def input_shape(self) -> Tuple[int, int, int, int]:
        return (1, self.width, self.height, 3)

    @property
    def output_shape(self) -> Tuple[int, int, int, int]:
        return (1, self.mask_width, self.mask_height, self.channels)

    @property
    def tensor_nbytes(self) -> int:
        return self.width * self.height * 3 * np.dtype(np.float32).itemsize


def read_geometry(input_spec: TensorSpec, output_spec: TensorSpec, variant: ModelVariant) -> TensorGeometry:
    """Validate engine tensors against ``variant``; raises ModelGeometryError."""
    if np.dtype(input_spec.dtype) != np.float32:
        raise ModelGeometryError(f"input tensor must be float32, got {input_spec.describe()}")
    if len(input_spec.shape) != 4:
        raise ModelGeometryError(f"input tensor must have 4 dimensions, got {input_spec.describe()}")
    batch, width, height, in_channels = input_spec.shape
    if batch != 1:
        raise ModelGeometryError(f"input tensor batch size must be 1, got {input_spec.describe()}")
    if width <= 0 or height <= 0:
        raise ModelGeometryError(f"input tensor must have a fixed spatial size, got {input_spec.describe()}")
    if in_channels != 3:
        raise ModelGeometryError(f"input tensor must have 3 channels, got {input_spec.describe()}")

    if np.dtype(output_spec.dtype) != np.float32:
        raise ModelGeometryError(f"output tensor must be float32, got {output_spec.describe()}")
    if len(output_spec.shape) != 4:
        raise ModelGeometryError(f"output tensor must have 4 dimensions, got {output_spec.describe()}")
    _, out_w, out_h, out_channels = output_spec.shape
    if out_w <= 0 or width % out_w != 0:
        raise ModelGeometryError(f"output tensor width {out_w} does not divide input tensor width {width}")
    stride = width // out_w
    if out_h <= 0 or height % out_h != 0:
        raise ModelGeometryError(f"output tensor height {out_h} does not divide input tensor height {height}")
    if height // out_h != stride:
        raise ModelGeometryError(f"vertical stride {height // out_h} doesn't match horizontal stride {stride}")

    if stride not in variant.strides:
        raise ModelGeometryError(
            f"stride {stride} is not valid for {variant.kind.value} (expected one of {sorted(variant.strides)})"
        )
    if out_channels != variant.channels:
        raise ModelGeometryError(
            f"{variant.kind.value} output must have {variant.channels} channels, got {out_channels}"
        )
    return TensorGeometry(width=width, height=height, stride=stride, channels=out_channels)


class ModelAdapter:
    """
    Owns one loaded segmentation model for the lifetime of the process.

    The adapter is not reentrant: callers must serialize run_inference(),
    and consume its result before calling it again.
    """

    def __init__(
        self,
        model_path: str | Path,
        model_kind: Union[str, ModelKind],
        num_threads: int = 1,
        use_gpu: bool = False,
        engine: str = "auto",
        value_range: Optional[Tuple[float, float]] = None,
        gpu_delegate_library: Optional[str] = None,
        gpu_delegate_options: Optional[Dict[str, Any]] = None,
        engine_factory: EngineFactory = open_engine,
    ):
        self.logger = get_logger(__name__)
        self.model_path = Path(model_path)
        self.variant = resolve_variant(model_kind, value_range)
        if isinstance(num_threads, bool) or not isinstance(num_threads, int) or num_threads < 1:
            raise ConfigurationError(f"thread count must be a positive integer, got {num_threads!r}")
        self.num_threads = num_threads
        self.use_gpu = use_gpu

        self._resources = ExitStack()
        try:
            kwargs: Dict[str, Any] = {"num_threads": num_threads, "use_gpu": use_gpu, "engine": engine}
            if gpu_delegate_library is not None:
                kwargs["gpu_delegate_library"] = gpu_delegate_library
            if gpu_delegate_options is not None:
                kwargs["gpu_delegate_options"] = gpu_delegate_options
            self._engine: Optional[BaseEngine] = engine_factory(self.model_path, **kwargs)
            self._resources.callback(self._release_engine)

            self.logger.info("Input tensor: %s", self._engine.input_spec.describe())
            self.logger.info("Output tensor: %s", self._engine.output_spec.describe())
            self.geometry = read_geometry(self._engine.input_spec, self._engine.output_spec, self.variant)
        except BaseException:
            self._resources.close()
            raise

        self.logger.info(
            "Initialized %s with %dx%dpx input and stride=%d for model %s",
            getattr(self._engine, "name", "engine"),
            self.geometry.width,
            self.geometry.height,
            self.geometry.stride,
            self.model_path,
        )

    @property
    def kind(self) -> ModelKind:
        return self.variant.kind

    @property
    def width(self) -> int:
        return self.geometry.width

    @property
    def height(self) -> int:
        return self.geometry.height

    @property
    def stride(self) -> int:
        return self.geometry.stride

    @property
    def closed(self) -> bool:
        return self._engine is None

    def run_inference(self, tensor: np.ndarray) -> np.ndarray:
        """
        Copy ``tensor`` (height x width x 3 float32) into the model input and
        run inference synchronously. The returned buffer belongs to the
        adapter and is only valid until the next call.
        """
        if self._engine is None:
            raise RuntimeError("ModelAdapter is closed")
        self._engine.set_input(np.ascontiguousarray(tensor, dtype=np.float32).reshape(self.geometry.input_shape))
        self._engine.invoke()
        return self._engine.get_output()

    def close(self) -> None:
        self._resources.close()

    def _release_engine(self) -> None:
        engine, self._engine = self._engine, None
        if engine is not None:
            engine.close()
            self.logger.info("Released inference engine for %s", self.model_path)

    def __enter__(self) -> "ModelAdapter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
