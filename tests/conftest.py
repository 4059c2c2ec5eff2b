import pytest

from mandelbrot_atlas import Rect, Resolution


@pytest.fixture
def full_domain():
    return Rect.from_bounds(-2.0, 1.0, -1.5, 1.5)


@pytest.fixture
def small_resolution():
    return Resolution(16, 16)
