"""Remote image fetching, PNG transcoding and dimension read-back."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from typing import Optional, Tuple

import requests
from filetype import guess
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger("pagegrab")

MAX_IMAGE_BYTES = 50 * 1024 * 1024
MIN_IMAGE_BYTES = 64
FETCH_TIMEOUT = 30
DOWNLOAD_CHUNK_SIZE = 64 * 1024


class ImageFetchError(Exception):
    """A single remote image could not be turned into a PNG page."""


def detect_image_format(data: bytes) -> Optional[str]:
    """Detect image type using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def read_image_size(path: Path) -> Tuple[int, int]:
    """Return the real pixel size of an image file."""
    with Image.open(path) as image:
        return image.size


def pad_to_even_height(image: Image.Image) -> Image.Image:
    """Add one blank row at the bottom of odd-height images."""
    width, height = image.size
    if height % 2 == 0:
        return image
    padded = Image.new(image.mode, (width, height + 1), "white" if image.mode in ("RGB", "L") else 0)
    padded.paste(image, (0, 0))
    return padded


def even_height_png(path: Path) -> Tuple[int, int]:
    """Pad a stored PNG to an even height in place and return its final size."""
    with Image.open(path) as source:
        width, height = source.size
        if height % 2 == 0:
            return width, height
        padded = pad_to_even_height(source)
    padded.save(path, format="PNG")
    return padded.size


def transcode_to_png(data: bytes, destination: Path) -> Tuple[int, int]:
    """Decode any Pillow-readable image and store it as an even-height PNG.

    Returns the pixel size read back from the written file.
    """
    try:
        with Image.open(io.BytesIO(data)) as source:
            image = source
            if image.mode not in ("RGB", "RGBA", "L", "LA"):
                image = image.convert("RGBA" if "transparency" in image.info else "RGB")
            pad_to_even_height(image).save(destination, format="PNG")
    except (UnidentifiedImageError, OSError) as exc:
        raise ImageFetchError(f"cannot decode image: {exc}") from exc
    return read_image_size(destination)


def fetch_image_as_png(
    session: requests.Session,
    url: str,
    destination: Path,
) -> Tuple[int, int]:
    """Download ``url`` and store it as a PNG at ``destination``."""
    try:
        resp = session.get(url, timeout=FETCH_TIMEOUT)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise ImageFetchError(str(exc)) from exc

    data = resp.content
    if len(data) < MIN_IMAGE_BYTES:
        raise ImageFetchError("response too small")
    if len(data) > MAX_IMAGE_BYTES:
        raise ImageFetchError(f"image larger than {MAX_IMAGE_BYTES} bytes")
    if detect_image_format(data) is None:
        raise ImageFetchError(
            f"unsupported image type (Content-Type={resp.headers.get('Content-Type', '')})"
        )
    return transcode_to_png(data, destination)


def download_file(session: requests.Session, url: str, destination: Path) -> int:
    """Stream ``url`` to ``destination`` and return the number of bytes written.

    A partially written file is removed if the transfer fails.
    """
    written = 0
    try:
        with session.get(url, stream=True, timeout=FETCH_TIMEOUT) as resp:
            resp.raise_for_status()
            with destination.open("wb") as handle:
                for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        handle.write(chunk)
                        written += len(chunk)
    except (requests.RequestException, OSError):
        destination.unlink(missing_ok=True)
        raise
    logger.debug("Downloaded %s (%d bytes) to %s", url, written, destination)
    return written
