from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, FrozenSet, Optional, Tuple, Union

import numpy as np

from bgremover.segmentation import numeric
from bgremover.utils.errors import ConfigurationError

# Pascal VOC labels the DeepLabV3 models are trained on; index == class id.
DEEPLABV3_LABELS = (
    "background", "aeroplane", "bicycle", "bird", "board", "bottle", "bus",
    "car", "cat", "chair", "cow", "diningtable", "dog", "horse",
    "motorbike", "person", "pottedplant", "sheep", "sofa", "train", "tv",
)
PERSON_CLASS = DEEPLABV3_LABELS.index("person")
PERSON_THRESHOLD = 0.5

# https://github.com/tensorflow/tfjs-models/blob/master/body-pix/src/resnet.ts
RESNET_MEAN = (123.15, 115.90, 103.06)


class ModelKind(str, Enum):
    DEEPLABV3 = "deeplabv3"
    BODYPIX_RESNET = "bodypix_resnet"
    BODYPIX_MOBILENET = "bodypix_mobilenet"

    @classmethod
    def parse(cls, value: Union[str, "ModelKind"]) -> "ModelKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            names = ", ".join(k.value for k in cls)
            raise ConfigurationError(f"Invalid model type {value!r} (expected one of: {names})") from None


@dataclass(frozen=True)
class DecodeOptions:
    person_class: int = PERSON_CLASS
    threshold: float = PERSON_THRESHOLD


@dataclass(frozen=True)
class ModelVariant:
    """Everything that differs between model families, resolved once at load time."""

    kind: ModelKind
    channels: int
    strides: FrozenSet[int]
    value_range: Tuple[float, float]
    normalize: Callable[[np.ndarray], np.ndarray]
    decode: Callable[[np.ndarray, DecodeOptions], np.ndarray]

    def with_range(self, value_range: Optional[Tuple[float, float]]) -> "ModelVariant":
        if value_range is None:
            return self
        return replace(self, value_range=(float(value_range[0]), float(value_range[1])))


def _decode_classes(cells: np.ndarray, opts: DecodeOptions) -> np.ndarray:
    return numeric.argmax_mask(cells, opts.person_class)


def _decode_probability(cells: np.ndarray, opts: DecodeOptions) -> np.ndarray:
    return numeric.threshold_mask(cells, opts.threshold)


def _normalize_resnet(img: np.ndarray) -> np.ndarray:
    return numeric.subtract_mean(img, RESNET_MEAN)


VARIANTS = {
    ModelKind.DEEPLABV3: ModelVariant(
        kind=ModelKind.DEEPLABV3,
        channels=len(DEEPLABV3_LABELS),
        strides=frozenset({1}),
        value_range=(-0.5, 0.5),
        normalize=numeric.scale_to_unit,
        decode=_decode_classes,
    ),
    ModelKind.BODYPIX_RESNET: ModelVariant(
        kind=ModelKind.BODYPIX_RESNET,
        channels=1,
        strides=frozenset({16, 32}),
        # Not verified against the model's training data; override with segmentation.value_range.
        value_range=(-127.0, 255.0),
        normalize=_normalize_resnet,
        decode=_decode_probability,
    ),
    ModelKind.BODYPIX_MOBILENET: ModelVariant(
        kind=ModelKind.BODYPIX_MOBILENET,
        channels=1,
        strides=frozenset({8, 16}),
        value_range=(-0.5, 0.5),
        normalize=numeric.scale_to_unit,
        decode=_decode_probability,
    ),
}


def resolve_variant(
    kind: Union[str, ModelKind],
    value_range: Optional[Tuple[float, float]] = None,
) -> ModelVariant:
    return VARIANTS[ModelKind.parse(kind)].with_range(value_range)
