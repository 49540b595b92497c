"""Utility helpers for string normalization and path handling."""

from __future__ import annotations

import logging
import re
import shutil
from pathlib import Path

logger = logging.getLogger("pagegrab")

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")
UNSAFE_FILENAME_PATTERN = re.compile(r'[<>:"/\\|?*\x00-\x1F]+')
RESERVED_NAMES = {".", ".."}
MAX_FILENAME_LENGTH = 200


def slugify(value: str, fallback: str = "page") -> str:
    """Generate a filesystem-friendly slug using ASCII characters only."""
    normalized = value.encode("ascii", "ignore").decode("ascii")
    normalized = normalized.lower()
    normalized = SLUG_PATTERN.sub("-", normalized).strip("-")
    return normalized or fallback


def sanitize_filename(value: str, fallback: str = "download") -> str:
    """Strip characters that are illegal in file names on common filesystems.

    Unlike :func:`slugify` the result keeps case, spaces and non-ASCII letters
    so titles stay readable.
    """
    cleaned = UNSAFE_FILENAME_PATTERN.sub("", value).strip().rstrip(". ")
    if cleaned in RESERVED_NAMES:
        cleaned = ""
    return cleaned[:MAX_FILENAME_LENGTH] or fallback


def vector_page_name(index: int) -> str:
    return f"{index:03d}.pdf"


def raster_page_name(index: int) -> str:
    """Name of the PNG for the 0-based ``index``; files are numbered from 1."""
    return f"{index + 1:04d}.png"


def remove_directory(path: Path) -> None:
    """Remove a temporary directory, downgrading failures to warnings."""
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        logger.warning("Failed to cleanup directory %s: %s", path, exc)
