"""Run-wide configuration for an atlas render."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from pathlib import Path

from .exceptions import ConfigurationError
from .geometry import Rect, Resolution
from .sink import normalize_format

BACKENDS = ("tensorflow", "python")
MAX_ESCAPE_LIMIT = 65535

DEFAULT_RESOLUTION = Resolution(8192, 8192)
DEFAULT_DOMAIN = Rect.from_bounds(-2.0, 1.0, -1.5, 1.5)


def _default_workers() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class AtlasConfig:
    """Parameters shared by every tile of one atlas run."""

    resolution: Resolution = DEFAULT_RESOLUTION
    limit: int = 256
    domain: Rect = DEFAULT_DOMAIN
    grid_size: int = 128
    threshold: int = 20
    output_dir: Path = Path("atlas")
    image_format: str = "png"
    workers: int = field(default_factory=_default_workers)
    backend: str = "tensorflow"
    device: str = "/CPU:0"

    def __post_init__(self) -> None:
        if not 1 <= self.limit <= MAX_ESCAPE_LIMIT:
            raise ConfigurationError(f"escape limit must be within 1..{MAX_ESCAPE_LIMIT}, got {self.limit}")
        if self.grid_size < 1:
            raise ConfigurationError(f"grid size must be at least 1, got {self.grid_size}")
        if not 0 <= self.threshold <= 255:
            raise ConfigurationError(f"threshold must be within 0..255, got {self.threshold}")
        if self.workers < 1:
            raise ConfigurationError(f"worker count must be at least 1, got {self.workers}")
        if self.backend not in BACKENDS:
            raise ConfigurationError(f"unknown backend '{self.backend}'; choose from {', '.join(BACKENDS)}")

        for axis, bounds in (("x", self.domain.x), ("y", self.domain.y)):
            if not (math.isfinite(bounds.min) and math.isfinite(bounds.max)):
                raise ConfigurationError(f"domain {axis} bounds must be finite")
            if bounds.min >= bounds.max:
                raise ConfigurationError(
                    f"domain {axis} range must have min < max, got [{bounds.min}, {bounds.max}]"
                )

        object.__setattr__(self, "output_dir", Path(self.output_dir))
        object.__setattr__(self, "image_format", normalize_format(self.image_format))

    @property
    def tile_count(self) -> int:
        return self.grid_size * self.grid_size
