"""
errors.py - Exception taxonomy for the conversion pipeline.

Every failure the pipeline treats as fatal derives from ConversionError,
so the command line can report it once and exit non-zero.
"""


class ConversionError(Exception):
    """Base class for fatal conversion failures."""


class ReadError(ConversionError):
    """The raw volume file is missing, unreadable or truncated."""


class ParseError(ConversionError):
    """The threat annotation file exists but is not well-formed."""


class GeometryError(ConversionError):
    """The volume header cannot be mapped to image geometry."""


class EncodeError(ConversionError):
    """The encoder rejected a model or could not write the file."""
