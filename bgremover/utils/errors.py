from __future__ import annotations


class BackgroundRemoverError(RuntimeError):
    """Base class for every error raised by bgremover."""


class ConfigurationError(BackgroundRemoverError, ValueError):
    """Invalid model kind, thread count, engine name or config value."""


class ModelLoadError(ConfigurationError):
    """Model file or inference runtime could not be loaded."""


class ModelGeometryError(ConfigurationError):
    """Model tensors do not match the contract of its model kind."""


class ShapeMismatchError(BackgroundRemoverError, ValueError):
    """A buffer does not have the size the loaded model requires."""
