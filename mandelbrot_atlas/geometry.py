"""Plane geometry and the affine mapping between pixel and plane coordinates."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np

from .exceptions import ConfigurationError


@dataclass(frozen=True)
class Resolution:
    """Pixel dimensions of a rendered tile."""

    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ConfigurationError(f"resolution must be positive, got {self.width}x{self.height}")

    @property
    def size(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class Range:
    """Closed interval ``[min, max]``."""

    min: float
    max: float

    def __post_init__(self) -> None:
        if math.isnan(self.min) or math.isnan(self.max):
            raise ConfigurationError("range bounds must not be NaN")

    @property
    def span(self) -> float:
        return self.max - self.min


@dataclass(frozen=True)
class Rect:
    """Rectangle of the complex plane; ``x`` is the real axis, ``y`` the imaginary one."""

    x: Range
    y: Range

    @classmethod
    def from_bounds(cls, x_min: float, x_max: float, y_min: float, y_max: float) -> "Rect":
        return cls(Range(x_min, x_max), Range(y_min, y_max))


@dataclass(frozen=True)
class AffineMapper:
    """Linear map ``f(x) = a * x + b`` evaluated in float32.

    Build one with :meth:`between`; the two coefficients are all it stores, so a
    mapper can be shared between worker threads and reused for every pixel.
    """

    a: np.float32
    b: np.float32

    @classmethod
    def between(cls, source: tuple[float, float], target: tuple[float, float]) -> "AffineMapper":
        """Map ``source[0] -> target[0]`` and ``source[1] -> target[1]``."""

        in_min, in_max = np.float32(source[0]), np.float32(source[1])
        out_min, out_max = np.float32(target[0]), np.float32(target[1])
        if in_min == in_max:
            raise ConfigurationError(f"cannot map from the degenerate interval [{source[0]}, {source[1]}]")
        a = (out_max - out_min) / (in_max - in_min)
        b = out_min - in_min * a
        return cls(a=np.float32(a), b=np.float32(b))

    def __call__(self, value) -> np.float32:
        return np.float32(value) * self.a + self.b

    def apply(self, values: np.ndarray) -> np.ndarray:
        """Vectorized form of :meth:`__call__` over an array of inputs."""

        return np.asarray(values, dtype=np.float32) * self.a + self.b


def pixel_mappers(resolution: Resolution, rect: Rect) -> tuple[AffineMapper, AffineMapper]:
    """Return the column and row mappers for ``rect`` sampled at ``resolution``.

    Row 0 lands on ``rect.y.max``; rows grow downwards while the imaginary axis
    grows upwards.
    """

    x_map = AffineMapper.between((0.0, float(resolution.width)), (rect.x.min, rect.x.max))
    y_map = AffineMapper.between((float(resolution.height), 0.0), (rect.y.min, rect.y.max))
    return x_map, y_map
