"""Error types raised by the atlas renderer."""


class AtlasError(Exception):
    """Base class for every error raised by :mod:`mandelbrot_atlas`."""


class ConfigurationError(AtlasError, ValueError):
    """Invalid configuration detected before any tile is rendered."""


class SinkError(AtlasError):
    """A tile image could not be encoded or written."""
