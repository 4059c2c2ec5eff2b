import math
from pathlib import Path

import pytest

from mandelbrot_atlas import AtlasConfig, ConfigurationError, Rect, Resolution


def test_reference_defaults():
    config = AtlasConfig()

    assert config.resolution == Resolution(8192, 8192)
    assert config.limit == 256
    assert config.domain == Rect.from_bounds(-2.0, 1.0, -1.5, 1.5)
    assert config.grid_size == 128
    assert config.tile_count == 16384
    assert config.threshold == 20
    assert config.output_dir == Path('atlas')
    assert config.image_format == 'png'
    assert config.backend == 'tensorflow'
    assert config.workers >= 1


def test_output_dir_and_format_are_normalized():
    config = AtlasConfig(output_dir='tiles/out', image_format='.PNG')

    assert config.output_dir == Path('tiles/out')
    assert config.image_format == 'png'


def test_config_is_immutable():
    config = AtlasConfig()

    with pytest.raises(AttributeError):
        config.limit = 10


@pytest.mark.parametrize(
    'overrides',
    [
        dict(limit=0),
        dict(limit=65536),
        dict(grid_size=0),
        dict(threshold=-1),
        dict(threshold=256),
        dict(workers=0),
        dict(backend='gpu'),
        dict(image_format='nope'),
        dict(domain=Rect.from_bounds(1.0, -2.0, -1.5, 1.5)),
        dict(domain=Rect.from_bounds(-2.0, 1.0, 0.5, 0.5)),
        dict(domain=Rect.from_bounds(-math.inf, 1.0, -1.5, 1.5)),
    ]
)
def test_invalid_configuration_fails_fast(overrides):
    with pytest.raises(ConfigurationError):
        AtlasConfig(**overrides)
