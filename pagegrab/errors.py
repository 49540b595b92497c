"""Exception hierarchy shared by the capture pipeline and the job layer."""

from __future__ import annotations

from pathlib import Path
from typing import Union


class PagegrabError(Exception):
    """Base class for every error raised by pagegrab."""


class ConfigError(PagegrabError):
    """A configuration value could not be interpreted."""


class ValidationError(PagegrabError):
    """User input (usually the source URL) was rejected before any work started."""


class UnsupportedUrl(ValidationError):
    def __init__(self, url: str) -> None:
        super().__init__(f"Unsupported URL: {url}")
        self.url = url


class JobAlreadyActive(PagegrabError):
    def __init__(self, job_id: str) -> None:
        super().__init__("A download is already running.")
        self.job_id = job_id


class ResourceUnavailable(PagegrabError):
    """The browser could not be launched or the page could not be loaded."""


class ExtractionFailure(PagegrabError):
    """The rendered page did not contain the structure an adapter expects."""


class ContainerNotFound(ExtractionFailure):
    def __init__(self, selector: str) -> None:
        super().__init__(f"Scrollable container not found: {selector}")
        self.selector = selector


class ScrollStalled(ExtractionFailure):
    """The scroll container kept growing or stopped moving before reaching its end."""


class PartialCaptureWarning(PagegrabError):
    """A single page, slide or episode failed; the unit is skipped.

    Instances are recorded and reported rather than raised out of a capture
    loop.
    """

    def __init__(self, unit: str, reason: str) -> None:
        super().__init__(f"Failed to capture {unit}: {reason}")
        self.unit = unit
        self.reason = reason


class AssemblyFailure(PagegrabError):
    """The final document could not be produced."""


class MergeReadError(AssemblyFailure):
    def __init__(self, path: Union[str, Path], reason: str) -> None:
        super().__init__(f"Failed to merge PDF {path}: {reason}")
        self.path = Path(path)


class NoContent(AssemblyFailure):
    """Assembly was asked to build a document from zero pages."""


class StorageFailure(PagegrabError):
    """The result cache could not be read or written."""
