"""Persistence of rendered tiles as single-channel images."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

import PIL.Image

from .exceptions import ConfigurationError, SinkError
from .renderer import PixelBuffer

logger = logging.getLogger(__name__)


class ImageSink(Protocol):
    def persist(self, buffer: PixelBuffer, name: str) -> Path:
        ...


# Formats that store 8-bit grayscale samples without loss.
LOSSLESS_FORMATS = ("png", "tif", "tiff", "bmp", "pgm")


def _pil_format_name(ext: str) -> str:
    upper = ext.upper()
    if upper == "PGM":
        return "PPM"
    if upper == "TIF":
        return "TIFF"
    return upper


def normalize_format(image_format: str) -> str:
    """Lower-case extension for ``image_format``; raises unless it is lossless and writable."""

    image_format = (image_format or "png").lower().lstrip(".")
    if image_format not in LOSSLESS_FORMATS:
        raise ConfigurationError(
            f"'{image_format}' is not a lossless grayscale format; choose from {', '.join(LOSSLESS_FORMATS)}"
        )
    PIL.Image.init()
    if _pil_format_name(image_format) not in PIL.Image.SAVE:
        raise ConfigurationError(f"Pillow cannot write images in the '{image_format}' format")
    return image_format


class FileImageSink:
    """Write 8-bit grayscale images under ``output_dir`` with Pillow.

    Each image is first written to a temporary sibling and then renamed, so an
    interrupted write never leaves a truncated file behind.
    """

    def __init__(self, output_dir: Path, image_format: str = "png"):
        self.output_dir = Path(output_dir)
        self.image_format = normalize_format(image_format)

    def prepare(self) -> None:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SinkError(f"cannot create output directory {self.output_dir}: {exc}") from exc

    def path_for(self, name: str) -> Path:
        return self.output_dir / f"{name}.{self.image_format}"

    def persist(self, buffer: PixelBuffer, name: str) -> Path:
        self.prepare()
        path = self.path_for(name)
        partial = path.with_name(path.name + ".part")
        image = PIL.Image.fromarray(buffer.as_array())
        try:
            image.save(str(partial), format=_pil_format_name(self.image_format))
            os.replace(partial, path)
        except (OSError, ValueError) as exc:
            partial.unlink(missing_ok=True)
            raise SinkError(f"cannot write {path}: {exc}") from exc
        logger.debug("Wrote %s", path)
        return path
