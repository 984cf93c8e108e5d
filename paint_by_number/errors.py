"""Exceptions raised by the conversion pipeline.

AIDEV-NOTE: Every failure of a single convert() call is one of these. They
subclass ValueError so callers that already guard image loading with
``except ValueError`` keep working.
"""


class ConversionError(ValueError):
    """Base class for all conversion failures."""


class DecodeError(ConversionError):
    """The image bytes could not be read as a raster image."""


class ConfigError(ConversionError):
    """The conversion settings are invalid (cell size, palette size, grid type)."""


class EmptyImageError(ConversionError):
    """The decoded image has zero area."""


class ConversionCancelled(ConversionError):
    """The conversion was abandoned because a newer one was requested."""
