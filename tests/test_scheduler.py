import logging
import threading

import numpy as np
import pytest

from mandelbrot_atlas import (
    AtlasConfig,
    PixelBuffer,
    Rect,
    Resolution,
    SinkError,
    TileScheduler,
    partition,
    render_atlas,
    render_atlas_tile,
    should_persist,
)
from mandelbrot_atlas.scheduler import CANCELLED, FAILED, SKIPPED, WRITTEN


class RecordingSink:
    def __init__(self, fail_for=()):
        self.fail_for = set(fail_for)
        self.persisted = {}
        self._lock = threading.Lock()

    def persist(self, buffer, name):
        if name in self.fail_for:
            raise SinkError(f'disk full while writing {name}')
        with self._lock:
            self.persisted[name] = buffer.data.copy()
        return name


class BlockingSink(RecordingSink):
    """Holds the first write until released."""

    def __init__(self):
        super().__init__()
        self.started = threading.Event()
        self.release = threading.Event()

    def persist(self, buffer, name):
        self.started.set()
        self.release.wait(timeout=30)
        return super().persist(buffer, name)


class ExplodingSink:
    def persist(self, buffer, name):
        raise RuntimeError('bug in sink')


def _config(tmp_path, **overrides):
    options = dict(
        resolution=Resolution(16, 16),
        limit=32,
        domain=Rect.from_bounds(-2.0, 1.0, -1.5, 1.5),
        grid_size=2,
        threshold=20,
        output_dir=tmp_path / 'atlas',
        workers=2,
        backend='python',
    )
    options.update(overrides)
    return AtlasConfig(**options)


def test_flat_buffer_is_not_persisted():
    assert not should_persist(PixelBuffer.from_array(np.full((8, 8), 100)), 20)


def test_full_range_buffer_is_persisted():
    assert should_persist(PixelBuffer.from_array(np.arange(256).reshape(16, 16)), 20)


def test_threshold_is_exclusive():
    pixels = np.zeros((2, 2))
    pixels[0, 0] = 20
    assert not should_persist(PixelBuffer.from_array(pixels), 20)
    pixels[0, 0] = 21
    assert should_persist(PixelBuffer.from_array(pixels), 20)


@pytest.mark.parametrize('backend', ['python', 'tensorflow'])
def test_atlas_is_written_to_disk(tmp_path, backend):
    config = _config(tmp_path, backend=backend)

    report = render_atlas(config)

    assert len(report.outcomes) == 4
    assert report.ok
    assert report.counts[WRITTEN] == 4
    for outcome in report.outcomes:
        assert outcome.path == tmp_path / 'atlas' / f'{outcome.tile.name}.png'
        assert outcome.path.is_file()


@pytest.mark.parametrize(
    'bounds',
    [
        (-0.1, 0.1, -0.1, 0.1),  # inside the main cardioid, every pixel black
        (2.5, 3.0, 2.5, 3.0),  # escapes straight away, one flat shade
    ]
)
def test_uniform_tiles_are_skipped(tmp_path, bounds, caplog):
    config = _config(tmp_path, domain=Rect.from_bounds(*bounds), grid_size=1)

    with caplog.at_level(logging.INFO, logger='mandelbrot_atlas'):
        report = render_atlas(config)

    assert [outcome.status for outcome in report.outcomes] == [SKIPPED]
    assert list((tmp_path / 'atlas').iterdir()) == []
    assert any(message.startswith('Skipping ') for message in caplog.messages)


def test_sink_failure_is_local_to_its_tile(tmp_path):
    config = _config(tmp_path, threshold=0)
    failing = partition(config.domain, config.grid_size)[0].name
    sink = RecordingSink(fail_for=[failing])

    report = TileScheduler(config, sink).run()

    assert report.counts[FAILED] == 1
    assert report.counts[WRITTEN] == 3
    assert not report.ok
    assert report.failed[0].tile.name == failing
    assert 'disk full' in report.failed[0].error
    assert failing not in sink.persisted
    assert len(sink.persisted) == 3


def test_other_errors_propagate(tmp_path):
    config = _config(tmp_path, threshold=0)

    with pytest.raises(RuntimeError):
        TileScheduler(config, ExplodingSink()).run()


def test_cancelled_run_renders_nothing(tmp_path):
    sink = RecordingSink()
    scheduler = TileScheduler(_config(tmp_path), sink)
    scheduler.cancel()

    report = scheduler.run()

    assert report.counts[CANCELLED] == 4
    assert not report.ok
    assert sink.persisted == {}


def test_tile_job_checks_cancellation_first(tmp_path):
    config = _config(tmp_path)
    tile = partition(config.domain, config.grid_size)[0]
    cancel = threading.Event()
    cancel.set()

    outcome = render_atlas_tile(tile, config, RecordingSink(), cancel)

    assert outcome.status == CANCELLED


def test_tiles_render_independently_of_order(tmp_path):
    config = _config(tmp_path, threshold=0, workers=3)
    tiles = partition(config.domain, config.grid_size)
    forward, backward = RecordingSink(), RecordingSink()

    TileScheduler(config, forward).run(tiles)
    TileScheduler(config, backward).run(list(reversed(tiles)))

    assert forward.persisted.keys() == backward.persisted.keys()
    for name, data in forward.persisted.items():
        assert np.array_equal(data, backward.persisted[name])


def test_summary(tmp_path):
    report = render_atlas(_config(tmp_path))

    assert report.summary() == '4 tiles: 4 written, 0 skipped, 0 failed, 0 cancelled'


def test_interrupt_cancels_tiles_not_yet_started(tmp_path, monkeypatch):
    from mandelbrot_atlas import scheduler as scheduler_module

    real_wait = scheduler_module.wait
    sink = BlockingSink()
    calls = []

    def interrupted_wait(futures, return_when):
        calls.append(return_when)
        if len(calls) == 1:
            assert sink.started.wait(timeout=30)
            raise KeyboardInterrupt
        sink.release.set()
        return real_wait(futures, return_when=return_when)

    monkeypatch.setattr(scheduler_module, 'wait', interrupted_wait)
    scheduler = TileScheduler(_config(tmp_path, threshold=0, workers=1), sink)

    report = scheduler.run()

    assert scheduler.cancel_event.is_set()
    assert report.counts[WRITTEN] == 1
    assert report.counts[CANCELLED] == 3
    assert not report.ok
    assert [outcome.status for outcome in report.outcomes] == [WRITTEN, CANCELLED, CANCELLED, CANCELLED]
