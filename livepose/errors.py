"""
Exception types raised by the pose pipeline.
"""


class LiveposeError(Exception):
    """Base class for all pipeline errors."""


class EncodingError(LiveposeError):
    """A source frame or pixel buffer cannot be turned into an input tensor."""


class DecodeError(LiveposeError):
    """A model output tensor does not match the declared output contract."""


class InferenceUnavailable(LiveposeError):
    """The inference engine is not loaded or has been closed."""


class ModelConfigurationError(LiveposeError):
    """The loaded model does not declare the input/output shapes its variant expects."""
