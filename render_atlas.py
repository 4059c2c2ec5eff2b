import logging
import os
import sys
import warnings
from argparse import ArgumentParser
from pathlib import Path

_VERBOSE_FLAGS = {"--verbose", "-v"}
_cli_verbose = any(arg in _VERBOSE_FLAGS for arg in sys.argv[1:])
_env_log_level = os.environ.get("TF_CPP_MIN_LOG_LEVEL")
_suppress_messages = (not _cli_verbose) and _env_log_level != "0"

if _suppress_messages and _env_log_level is None:
    os.environ["TF_CPP_MIN_LOG_LEVEL"] = "3"

if _suppress_messages:
    warnings.filterwarnings(
        "ignore",
        message=r"Protobuf gencode version .* is exactly one major version older than the runtime version .*",
        category=UserWarning,
        module="google.protobuf",
    )

import tensorflow as tf

if _suppress_messages:
    tf.get_logger().setLevel("ERROR")

from mandelbrot_atlas import (
    AtlasConfig,
    ConfigurationError,
    Rect,
    Resolution,
    SinkError,
    TileScheduler,
)
from mandelbrot_atlas.config import BACKENDS, DEFAULT_DOMAIN, DEFAULT_RESOLUTION

logger = logging.getLogger("render_atlas")


def build_parser():
    parser = ArgumentParser(description="Render the Mandelbrot set as an atlas of independently stored tiles.")

    parser.add_argument('--width', type=int,
                        dest='width', help='horizontal resolution of every tile in pixels',
                        metavar='WIDTH', default=DEFAULT_RESOLUTION.width)

    parser.add_argument('--height', type=int,
                        dest='height', help='vertical resolution of every tile in pixels',
                        metavar='HEIGHT', default=DEFAULT_RESOLUTION.height)

    parser.add_argument('--max-iterations', type=int,
                        dest='max_iterations', help='escape iteration limit per point (1..65535)',
                        metavar='MAX_ITERATIONS', default=256)

    parser.add_argument('--x-min', type=float,
                        dest='x_min', help='lower bound of the real axis covered by the atlas',
                        metavar='X_MIN', default=DEFAULT_DOMAIN.x.min)

    parser.add_argument('--x-max', type=float,
                        dest='x_max', help='upper bound of the real axis covered by the atlas',
                        metavar='X_MAX', default=DEFAULT_DOMAIN.x.max)

    parser.add_argument('--y-min', type=float,
                        dest='y_min', help='lower bound of the imaginary axis covered by the atlas',
                        metavar='Y_MIN', default=DEFAULT_DOMAIN.y.min)

    parser.add_argument('--y-max', type=float,
                        dest='y_max', help='upper bound of the imaginary axis covered by the atlas',
                        metavar='Y_MAX', default=DEFAULT_DOMAIN.y.max)

    parser.add_argument('--grid', type=int,
                        dest='grid', help='number of tiles along each axis; the atlas holds GRID*GRID tiles',
                        metavar='GRID', default=128)

    parser.add_argument('--threshold', type=int,
                        dest='threshold', help='tiles whose intensity range does not exceed this value are not saved',
                        metavar='THRESHOLD', default=20)

    parser.add_argument('--output', type=str,
                        dest='output', help='directory receiving the tile images (created if missing)',
                        metavar='OUTPUT', default='atlas/')

    parser.add_argument('--format', type=str,
                        dest='format', help='lossless file format for tiles: png, tif, tiff, bmp or pgm. Default: "png".',
                        metavar='FORMAT', default='png')

    parser.add_argument('--workers', type=int,
                        dest='workers', help='number of tiles rendered in parallel. Default: number of CPUs.',
                        metavar='WORKERS', default=None)

    parser.add_argument('--backend', choices=BACKENDS, default='tensorflow',
                        help='"tensorflow" evaluates whole tiles as tensors; "python" walks every pixel in turn.')

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log the progress of every tile, including TensorFlow diagnostics.')

    return parser


def resolve_config(opt, parser: ArgumentParser) -> AtlasConfig:
    options = {}
    if opt.workers is not None:
        options["workers"] = opt.workers
    try:
        return AtlasConfig(
            resolution=Resolution(opt.width, opt.height),
            limit=opt.max_iterations,
            domain=Rect.from_bounds(opt.x_min, opt.x_max, opt.y_min, opt.y_max),
            grid_size=opt.grid,
            threshold=opt.threshold,
            output_dir=Path(opt.output).expanduser(),
            image_format=opt.format,
            backend=opt.backend,
            **options,
        )
    except ConfigurationError as exc:
        parser.error(str(exc))


def main(argv=None):
    parser = build_parser()
    opt = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO if opt.verbose else logging.WARNING, format="%(message)s")

    config = resolve_config(opt, parser)
    scheduler = TileScheduler(config)
    try:
        report = scheduler.run()
    except SinkError as exc:
        logger.error("%s", exc)
        return 1

    print(report.summary())
    for outcome in report.failed:
        print(f"failed: {outcome.tile.name}: {outcome.error}", file=sys.stderr)
    return 0 if report.ok else 1


if __name__ == '__main__':
    sys.exit(main())
