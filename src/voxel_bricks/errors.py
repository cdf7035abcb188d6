"""
Conversion Errors

Every failure a conversion run can report to its caller. All of them are
terminal: they are deterministic functions of the input, so the pipeline
never retries and never writes a partial save.
"""


class ConversionError(Exception):
    """Base class for user-facing conversion failures."""


class InvalidScale(ConversionError, ValueError):
    """A footprint or height multiplier is not a positive integer."""


class EmptyModel(ConversionError):
    """The voxel grid has no occupied cells, so there is nothing to place."""


class ModelTooLarge(ConversionError):
    """The mapped model does not fit in the save format's coordinate range."""


class SerializationOverflow(ConversionError):
    """A single field cannot be encoded by the save format."""
