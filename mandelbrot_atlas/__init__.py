"""Public API for rendering Mandelbrot tile atlases."""

from .atlas import AtlasTile, format_bound, partition
from .config import AtlasConfig
from .exceptions import AtlasError, ConfigurationError, SinkError
from .geometry import AffineMapper, Range, Rect, Resolution, pixel_mappers
from .renderer import PixelBuffer, compute_tile, escape_counts, escape_time, intensity, render_tile
from .scheduler import AtlasReport, TileOutcome, TileScheduler, render_atlas, render_atlas_tile, should_persist
from .sink import FileImageSink, ImageSink

__all__ = [
    "AffineMapper",
    "AtlasConfig",
    "AtlasError",
    "AtlasReport",
    "AtlasTile",
    "ConfigurationError",
    "FileImageSink",
    "ImageSink",
    "PixelBuffer",
    "Range",
    "Rect",
    "Resolution",
    "SinkError",
    "TileOutcome",
    "TileScheduler",
    "compute_tile",
    "escape_counts",
    "escape_time",
    "format_bound",
    "intensity",
    "partition",
    "pixel_mappers",
    "render_atlas",
    "render_atlas_tile",
    "render_tile",
    "should_persist",
]
