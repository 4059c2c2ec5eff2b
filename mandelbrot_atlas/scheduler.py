"""Parallel rendering of every atlas tile."""

from __future__ import annotations

import logging
import threading
from collections import Counter
from concurrent.futures import ALL_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from .atlas import AtlasTile, partition
from .config import AtlasConfig
from .exceptions import SinkError
from .renderer import PixelBuffer, render_tile
from .sink import FileImageSink, ImageSink

logger = logging.getLogger(__name__)

WRITTEN = "written"
SKIPPED = "skipped"
FAILED = "failed"
CANCELLED = "cancelled"


@dataclass(frozen=True)
class TileOutcome:
    tile: AtlasTile
    status: str
    path: Optional[Path] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class AtlasReport:
    """Outcome of every tile in a run, in dispatch order."""

    outcomes: tuple[TileOutcome, ...]

    @property
    def counts(self) -> Counter:
        return Counter(outcome.status for outcome in self.outcomes)

    @property
    def failed(self) -> list[TileOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == FAILED]

    @property
    def ok(self) -> bool:
        counts = self.counts
        return counts[FAILED] == 0 and counts[CANCELLED] == 0

    def summary(self) -> str:
        counts = self.counts
        return (
            f"{len(self.outcomes)} tiles: {counts[WRITTEN]} written, {counts[SKIPPED]} skipped, "
            f"{counts[FAILED]} failed, {counts[CANCELLED]} cancelled"
        )


def should_persist(buffer: PixelBuffer, threshold: int) -> bool:
    """Tiles whose intensity range does not exceed ``threshold`` are not worth keeping."""

    return buffer.intensity_range() > threshold


def render_atlas_tile(
    tile: AtlasTile,
    config: AtlasConfig,
    sink: ImageSink,
    cancel: Optional[threading.Event] = None,
) -> TileOutcome:
    """Render one tile and hand it to ``sink`` if it is interesting enough."""

    if cancel is not None and cancel.is_set():
        return TileOutcome(tile, CANCELLED)

    label = tile.bounds_label
    logger.info("Starting calculations for %s", label)
    buffer = render_tile(
        config.resolution,
        tile.rect,
        config.limit,
        backend=config.backend,
        device=config.device,
    )

    if not should_persist(buffer, config.threshold):
        logger.info("Skipping %s", label)
        return TileOutcome(tile, SKIPPED)

    logger.info("Writing file for %s", label)
    try:
        path = sink.persist(buffer.freeze(), tile.name)
    except SinkError as exc:
        logger.error("Failed to persist %s: %s", label, exc)
        return TileOutcome(tile, FAILED, error=str(exc))
    return TileOutcome(tile, WRITTEN, path=path)


class TileScheduler:
    """Fan the atlas tiles out over a fixed pool of worker threads.

    Rendering happens inside TensorFlow or numpy kernels for the bulk of the
    work, so threads keep every core busy without copying buffers between
    processes.
    """

    def __init__(self, config: AtlasConfig, sink: Optional[ImageSink] = None):
        self.config = config
        self.sink = sink if sink is not None else FileImageSink(config.output_dir, config.image_format)
        self.cancel_event = threading.Event()

    def tiles(self) -> list[AtlasTile]:
        return partition(self.config.domain, self.config.grid_size)

    def cancel(self) -> None:
        self.cancel_event.set()

    def run(self, tiles: Optional[Sequence[AtlasTile]] = None) -> AtlasReport:
        tiles = list(tiles) if tiles is not None else self.tiles()
        if isinstance(self.sink, FileImageSink):
            self.sink.prepare()

        logger.info("Rendering %d tiles on %d workers", len(tiles), self.config.workers)
        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            futures = [
                executor.submit(render_atlas_tile, tile, self.config, self.sink, self.cancel_event)
                for tile in tiles
            ]
            try:
                wait(futures, return_when=ALL_COMPLETED)
            except KeyboardInterrupt:
                logger.warning("Interrupted, waiting for tiles in progress to finish")
                self.cancel()
                wait(futures, return_when=ALL_COMPLETED)

        report = AtlasReport(tuple(future.result() for future in futures))
        logger.info("all finished: %s", report.summary())
        return report


def render_atlas(config: AtlasConfig, sink: Optional[ImageSink] = None) -> AtlasReport:
    return TileScheduler(config, sink).run()
