"""Partitioning of the global domain into atlas tiles."""

from __future__ import annotations

from dataclasses import dataclass

from .exceptions import ConfigurationError
from .geometry import AffineMapper, Range, Rect

NAME_PREFIX = "mandelbrot_"


@dataclass(frozen=True)
class AtlasTile:
    grid_x: int
    grid_y: int
    rect: Rect

    @property
    def bounds_label(self) -> str:
        """Tile bounds as ``[x.min,x.max]_[y.min,y.max]``."""

        x, y = self.rect.x, self.rect.y
        return (
            f"[{format_bound(x.min)},{format_bound(x.max)}]"
            f"_[{format_bound(y.min)},{format_bound(y.max)}]"
        )

    @property
    def name(self) -> str:
        return f"{NAME_PREFIX}{self.bounds_label}"


def format_bound(value: float) -> str:
    """Three decimals and at least two integer digits, e.g. ``-02.000`` or ``01.500``."""

    value = float(value)
    sign = "-" if value < 0 else ""
    return f"{sign}{abs(value):06.3f}"


def partition(domain: Rect, grid_size: int) -> list[AtlasTile]:
    """Split ``domain`` into ``grid_size`` x ``grid_size`` tiles sharing their edges."""

    if grid_size < 1:
        raise ConfigurationError(f"grid size must be at least 1, got {grid_size}")

    x_map = AffineMapper.between((0.0, float(grid_size)), (domain.x.min, domain.x.max))
    y_map = AffineMapper.between((0.0, float(grid_size)), (domain.y.min, domain.y.max))
    x_edges = [float(x_map(i)) for i in range(grid_size + 1)]
    y_edges = [float(y_map(j)) for j in range(grid_size + 1)]
    # Outer edges are the domain itself, not its float32 image.
    x_edges[0], x_edges[-1] = float(domain.x.min), float(domain.x.max)
    y_edges[0], y_edges[-1] = float(domain.y.min), float(domain.y.max)

    return [
        AtlasTile(
            grid_x=i,
            grid_y=j,
            rect=Rect(Range(x_edges[i], x_edges[i + 1]), Range(y_edges[j], y_edges[j + 1])),
        )
        for i in range(grid_size)
        for j in range(grid_size)
    ]
