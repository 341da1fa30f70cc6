from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class TensorSpec:
    name: str
    shape: Tuple[int, ...]  # dynamic dims are -1
    dtype: np.dtype

    def describe(self) -> str:
        return "[" + ", ".join(str(d) for d in self.shape) + f"] {np.dtype(self.dtype).name}"


class BaseEngine(abc.ABC):
    """
    Loaded model plus the runtime that executes it.

    Construction loads the model, configures threads and optional GPU
    acceleration and allocates tensors. Only tensor 0 of the input and
    output lists is used.
    """

    name = "engine"

    @property
    @abc.abstractmethod
    def input_spec(self) -> TensorSpec:
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def output_spec(self) -> TensorSpec:
        raise NotImplementedError

    @abc.abstractmethod
    def set_input(self, tensor: np.ndarray) -> None:
        ...

    @abc.abstractmethod
    def invoke(self) -> None:
        """Run inference synchronously on the current input."""
        ...

    @abc.abstractmethod
    def get_output(self) -> np.ndarray:
        """Raw output tensor 0. Only valid until the next invoke()."""
        ...

    @abc.abstractmethod
    def close(self) -> None:
        """Release runtime resources. Safe to call more than once."""
        ...
