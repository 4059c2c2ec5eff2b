"""Escape-time evaluation and tile rasterization."""

from __future__ import annotations

from typing import Iterable, Iterator, Optional

import numpy as np
import tensorflow as tf

from .exceptions import ConfigurationError
from .geometry import Rect, Resolution, pixel_mappers

ESCAPE_RADIUS_SQR = np.float32(4.0)
# Heuristic early exit for orbits that fall back onto the origin. Not a proof of
# boundedness for every point in the plane.
COLLAPSE_RADIUS_SQR = np.float32(1e-5)

UNRESOLVED = -1
# Pixels evaluated per TensorFlow call; bounds the memory held by one tile job.
BAND_PIXELS = 1 << 20

EscapeResult = Optional[int]
TileSample = tuple[tuple[int, int], EscapeResult]


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise ConfigurationError(f"escape limit must be at least 1, got {limit}")


def escape_time(c: complex, limit: int) -> EscapeResult:
    """Return the iteration at which the orbit of ``c`` escapes, or ``None``.

    The orbit of ``z <- z**2 + c`` starts at zero and is followed for at most
    ``limit`` iterations in float32. A non-finite ``|z|**2`` counts as escaped.
    """

    _check_limit(limit)
    c_re = np.float32(c.real)
    c_im = np.float32(c.imag)
    z_re = np.float32(0.0)
    z_im = np.float32(0.0)
    two = np.float32(2.0)

    with np.errstate(over="ignore", invalid="ignore"):
        for i in range(limit):
            norm_sqr = z_re * z_re + z_im * z_im
            if not np.isfinite(norm_sqr) or norm_sqr > ESCAPE_RADIUS_SQR:
                return i
            if i > 0 and norm_sqr <= COLLAPSE_RADIUS_SQR:
                return None
            z_re, z_im = z_re * z_re - z_im * z_im + c_re, two * z_re * z_im + c_im
    return None


class TileComputation:
    """Lazy ``((x, y), escape result)`` sequence over every pixel of a tile.

    Iterating twice recomputes the same values. Columns are the outer loop and
    rows the inner one; consumers must not depend on that order.
    """

    def __init__(self, resolution: Resolution, rect: Rect, limit: int):
        self.resolution = resolution
        self.rect = rect
        _check_limit(limit)
        self.limit = limit
        self._x_map, self._y_map = pixel_mappers(resolution, rect)

    def __len__(self) -> int:
        return self.resolution.size

    def __iter__(self) -> Iterator[TileSample]:
        for x in range(self.resolution.width):
            re = self._x_map(x)
            for y in range(self.resolution.height):
                im = self._y_map(y)
                yield (x, y), escape_time(complex(re, im), self.limit)


def compute_tile(resolution: Resolution, rect: Rect, limit: int) -> TileComputation:
    return TileComputation(resolution, rect, limit)


def intensity(result: EscapeResult, limit: int) -> int:
    """Map an escape result onto a 0-255 intensity, interior points being black."""

    if result is None:
        return 0
    return 255 - int(np.float32(result) * (np.float32(255.0) / np.float32(limit)))


class PixelBuffer:
    """Single-channel 8-bit raster stored row-major as ``x + y * width``."""

    def __init__(self, resolution: Resolution):
        self.resolution = resolution
        self.data = np.zeros(resolution.size, dtype=np.uint8)

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "PixelBuffer":
        pixels = np.asarray(pixels, dtype=np.uint8)
        height, width = pixels.shape
        buffer = cls(Resolution(width, height))
        buffer.data[:] = pixels.reshape(-1)
        return buffer

    def put(self, x: int, y: int, value: int) -> None:
        index = x + y * self.resolution.width
        # Coordinates come from the sample sequence, not from this buffer.
        if 0 <= index < self.data.size:
            self.data[index] = value

    def accumulate(self, samples: Iterable[TileSample], limit: int) -> "PixelBuffer":
        for (x, y), result in samples:
            self.put(x, y, intensity(result, limit))
        return self

    def intensity_range(self) -> int:
        """Spread between the brightest and darkest pixel."""

        return int(self.data.max()) - int(self.data.min())

    def freeze(self) -> "PixelBuffer":
        self.data.flags.writeable = False
        return self

    def as_array(self) -> np.ndarray:
        """View of the pixels shaped ``(height, width)``."""

        return self.data.reshape(self.resolution.height, self.resolution.width)


@tf.function
def _escape_step(
    i: tf.Tensor,
    z_re: tf.Tensor,
    z_im: tf.Tensor,
    c_re: tf.Tensor,
    c_im: tf.Tensor,
    counts: tf.Tensor,
    active: tf.Tensor,
) -> tuple[tf.Tensor, tf.Tensor, tf.Tensor, tf.Tensor]:
    """Advance every unresolved orbit by one iteration."""

    norm_sqr = z_re * z_re + z_im * z_im
    escaped = tf.logical_and(
        active,
        tf.logical_or(tf.logical_not(tf.math.is_finite(norm_sqr)), norm_sqr > ESCAPE_RADIUS_SQR),
    )
    collapsed = tf.logical_and(
        tf.logical_and(active, tf.logical_not(escaped)),
        tf.logical_and(i > 0, norm_sqr <= COLLAPSE_RADIUS_SQR),
    )
    counts = tf.where(escaped, tf.fill(tf.shape(counts), i), counts)
    active = tf.logical_and(active, tf.logical_not(tf.logical_or(escaped, collapsed)))

    next_re = z_re * z_re - z_im * z_im + c_re
    next_im = 2.0 * z_re * z_im + c_im
    z_re = tf.where(active, next_re, z_re)
    z_im = tf.where(active, next_im, z_im)
    return z_re, z_im, counts, active


@tf.function
def _escape_run(c_re: tf.Tensor, c_im: tf.Tensor, limit: tf.Tensor) -> tf.Tensor:
    """Iterate all orbits of a tile with a TensorFlow while loop."""

    limit = tf.cast(limit, tf.int32)
    i = tf.constant(0, dtype=tf.int32)
    z_re = tf.zeros_like(c_re)
    z_im = tf.zeros_like(c_im)
    counts = tf.fill(tf.shape(c_re), tf.constant(UNRESOLVED, dtype=tf.int32))
    active = tf.ones_like(c_re, tf.bool)

    def cond(i, z_re, z_im, counts, active):
        return tf.logical_and(tf.less(i, limit), tf.reduce_any(active))

    def body(i, z_re, z_im, counts, active):
        z_re, z_im, counts, active = _escape_step(i, z_re, z_im, c_re, c_im, counts, active)
        return i + 1, z_re, z_im, counts, active

    _, _, _, counts, _ = tf.while_loop(cond, body, (i, z_re, z_im, counts, active))
    return counts


def _band_counts(re: np.ndarray, im: np.ndarray, limit: int, device: Optional[str]) -> np.ndarray:
    c_re, c_im = np.meshgrid(re, im)
    with tf.device(device if device is not None else "/CPU:0"):
        counts = _escape_run(
            tf.convert_to_tensor(c_re, dtype=tf.float32),
            tf.convert_to_tensor(c_im, dtype=tf.float32),
            tf.constant(limit, dtype=tf.int32),
        )
    return counts.numpy()


def _bands(resolution: Resolution, band_pixels: int) -> Iterator[tuple[int, int]]:
    rows = max(1, band_pixels // resolution.width)
    for start in range(0, resolution.height, rows):
        yield start, min(start + rows, resolution.height)


def escape_counts(
    resolution: Resolution,
    rect: Rect,
    limit: int,
    *,
    device: Optional[str] = None,
    band_pixels: int = BAND_PIXELS,
) -> np.ndarray:
    """Escape iterations for every pixel, shaped ``(height, width)``; unresolved points are ``-1``."""

    _check_limit(limit)
    x_map, y_map = pixel_mappers(resolution, rect)
    re = x_map.apply(np.arange(resolution.width))
    counts = np.empty((resolution.height, resolution.width), dtype=np.int32)
    for start, stop in _bands(resolution, band_pixels):
        counts[start:stop] = _band_counts(re, y_map.apply(np.arange(start, stop)), limit, device)
    return counts


def _intensities(counts: np.ndarray, limit: int) -> np.ndarray:
    escaped = np.where(counts == UNRESOLVED, 0, counts)
    scaled = (escaped.astype(np.float32) * (np.float32(255.0) / np.float32(limit))).astype(np.uint8)
    return np.where(counts == UNRESOLVED, 0, 255 - scaled).astype(np.uint8)


def render_tile(
    resolution: Resolution,
    rect: Rect,
    limit: int,
    *,
    backend: str = "tensorflow",
    device: Optional[str] = None,
    band_pixels: int = BAND_PIXELS,
) -> PixelBuffer:
    """Render ``rect`` into a fresh :class:`PixelBuffer`.

    The tensorflow backend works through the tile in bands of whole rows of at
    most ``band_pixels`` pixels, writing each band's intensities straight into
    the buffer.
    """

    _check_limit(limit)
    if backend == "python":
        return PixelBuffer(resolution).accumulate(compute_tile(resolution, rect, limit), limit)
    if backend != "tensorflow":
        raise ConfigurationError(f"unknown backend '{backend}'")

    buffer = PixelBuffer(resolution)
    pixels = buffer.as_array()
    x_map, y_map = pixel_mappers(resolution, rect)
    re = x_map.apply(np.arange(resolution.width))
    for start, stop in _bands(resolution, band_pixels):
        counts = _band_counts(re, y_map.apply(np.arange(start, stop)), limit, device)
        pixels[start:stop] = _intensities(counts, limit)
    return buffer
