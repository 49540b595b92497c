"""Shared fixtures and doubles for the pagegrab test-suite."""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import List

import pypdfium2 as pdfium
import pytest
from PIL import Image

from pagegrab.config import DownloadConfig
from pagegrab.reporter import ProgressTrack, Reporter


class RecordedProgress(ProgressTrack):
    def __init__(self, label, total):
        super().__init__(label, total)
        self.values: List[int] = []
        self.stopped = False

    def _emit_update(self):
        self.values.append(self.current)

    def _emit_stop(self):
        self.stopped = True


class RecordingReporter(Reporter):
    """Reporter that keeps everything in memory."""

    def __init__(self):
        self.messages: List[str] = []
        self.errors: List[str] = []
        self.tracks: List[RecordedProgress] = []

    def log(self, message):
        self.messages.append(message)

    def error(self, message):
        self.errors.append(message)

    def begin_progress(self, label, total):
        track = RecordedProgress(label, total)
        self.tracks.append(track)
        return track


class FakeBrowser:
    """Stands in for BrowserManager; hands out one prepared page."""

    def __init__(self, page=None):
        self.page = page
        self.opened: List[str] = []
        self.options: List[dict] = []
        self.closed = 0

    @asynccontextmanager
    async def open_session(self, url=None, **kwargs):
        self.opened.append(url)
        self.options.append(kwargs)
        try:
            yield self.page
        finally:
            self.closed += 1

    async def close(self):
        pass


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def config(tmp_path):
    return DownloadConfig(
        output_root=tmp_path / "output",
        database_path=tmp_path / "history.db",
        settle_delay=0,
    )


def write_png(path: Path, size=(40, 30), color="white") -> Path:
    Image.new("RGB", size, color).save(path, format="PNG")
    return path


def write_pdf(path: Path, sizes) -> Path:
    document = pdfium.PdfDocument.new()
    for width, height in sizes:
        document.new_page(width, height)
    document.save(str(path))
    document.close()
    return path
