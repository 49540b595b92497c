"""Data models used throughout the capture pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List

from .errors import PartialCaptureWarning


class SourceFamily(str, Enum):
    DOCUMENT = "document"
    SLIDE_DECK = "slide-deck"
    PODCAST_EPISODE = "podcast-episode"
    PODCAST_SERIES = "podcast-series"
    UNRECOGNIZED = "unrecognized"


class CaptureMode(str, Enum):
    """How document pages are captured: printed to PDF or screenshotted."""

    DEFAULT = "default"
    IMAGE = "image"

    @classmethod
    def parse(cls, value: object) -> "CaptureMode":
        return cls.IMAGE if value in (cls.IMAGE, "image") else cls.DEFAULT


class JobState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class SourceReference:
    """A classified source URL."""

    url: str
    family: SourceFamily
    identifier: str = ""

    @property
    def recognized(self) -> bool:
        return self.family is not SourceFamily.UNRECOGNIZED


@dataclass
class RenderedPage:
    """One captured page or slide stored on disk."""

    index: int
    path: Path
    width: int
    height: int

    def read_bytes(self) -> bytes:
        return self.path.read_bytes()


@dataclass
class CaptureResult:
    """Ordered pages produced by a capture strategy plus a best-effort title."""

    pages: List[RenderedPage]
    title: str
    warnings: List[PartialCaptureWarning] = field(default_factory=list)


@dataclass(frozen=True)
class Artifact:
    """Final output of an extraction."""

    path: Path
    size: int
    source: SourceReference
    title: str = ""

    @classmethod
    def from_path(cls, path: Path, source: SourceReference, title: str = "") -> "Artifact":
        if path.is_dir():
            size = sum(item.stat().st_size for item in path.rglob("*") if item.is_file())
        else:
            size = path.stat().st_size
        return cls(path=path, size=size, source=source, title=title)


@dataclass
class CacheRecord:
    """Previously produced artifact for a source URL."""

    url: str
    file_path: str
    title: str
    created_at: int


@dataclass
class Job:
    """A single extraction request tracked by the orchestrator."""

    id: str
    url: str
    started_at: float
    state: JobState = JobState.RUNNING
    mode: CaptureMode = CaptureMode.DEFAULT
