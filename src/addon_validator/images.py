from __future__ import annotations
import logging
from pathlib import Path
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from .errors import ResizeImageError, SaveThumbnailError, UnsupportedImageError


log = logging.getLogger(__name__)

THUMBNAIL_SIZE: Tuple[int, int] = (600, 200)


def load_image(path: Path) -> Image.Image:
    try:
        image = Image.open(path)
        image.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        log.debug(f"load_image: {path} is not a decodable image ({e})")
        raise UnsupportedImageError()
    return image


def verify_image(path: Path) -> None:
    load_image(path).close()


def resize_to_cover(image: Image.Image, width: int, height: int) -> Image.Image:
    """Scale so the image covers the whole `width` x `height` box."""
    try:
        ratio = max(width / image.width, height / image.height)
        size = (max(1, round(image.width * ratio)), max(1, round(image.height * ratio)))
        return image.resize(size, Image.Resampling.LANCZOS)
    except (ZeroDivisionError, ValueError, OSError) as e:
        log.debug(f"resize_to_cover failed: {e}")
        raise ResizeImageError()


def crop_center(image: Image.Image, width: int, height: int) -> Image.Image:
    left = max(0, (image.width - width) // 2)
    top = max(0, (image.height - height) // 2)
    return image.crop((left, top, left + width, top + height))


def save_jpeg(image: Image.Image, destination: Path) -> Path:
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    try:
        image.save(destination, format="JPEG", quality=90)
    except (OSError, ValueError) as e:
        log.debug(f"save_jpeg failed for {destination}: {e}")
        raise SaveThumbnailError()
    return destination


def make_thumbnail(source: Path, destination: Path, size: Tuple[int, int] = THUMBNAIL_SIZE) -> Path:
    width, height = size
    image = load_image(source)
    resized = resize_to_cover(image, width, height)
    thumbnail = crop_center(resized, width, height)
    log.debug(f"make_thumbnail: {source} {image.size} -> {thumbnail.size}")
    return save_jpeg(thumbnail, destination)
