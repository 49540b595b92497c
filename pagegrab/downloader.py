"""URL dispatch: classify a URL and run the matching source adapter."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from playwright.async_api import Error as PlaywrightError

from .adapters import SourceAdapter
from .browser import BrowserManager
from .classify import classify
from .config import DownloadConfig
from .document import DocumentAdapter
from .errors import ExtractionFailure, UnsupportedUrl, ValidationError
from .models import Artifact, CaptureMode, SourceFamily, SourceReference
from .podcast import PodcastAdapter
from .reporter import ConsoleReporter, Reporter
from .slides import SlideDeckAdapter

logger = logging.getLogger("pagegrab")

AdapterTable = Dict[SourceFamily, SourceAdapter]


def build_adapters(config: DownloadConfig, browser: BrowserManager) -> AdapterTable:
    """Map every recognised family to the adapter that handles it."""
    table: AdapterTable = {}
    for adapter in (
        DocumentAdapter(config, browser),
        SlideDeckAdapter(config, browser),
        PodcastAdapter(config, browser),
    ):
        for family in adapter.families:
            table[family] = adapter
    return table


class Downloader:
    """Programmatic entry point shared by the CLI, the HTTP server and MCP."""

    def __init__(
        self,
        config: DownloadConfig,
        browser: BrowserManager,
        adapters: Optional[AdapterTable] = None,
    ) -> None:
        self.config = config
        self.browser = browser
        self.adapters = adapters if adapters is not None else build_adapters(config, browser)

    def resolve(self, url: str) -> Tuple[SourceReference, SourceAdapter]:
        """Classify ``url`` without touching the browser.

        Raises :class:`ValidationError` for an empty URL and
        :class:`UnsupportedUrl` when no adapter handles it.
        """
        if not url or not url.strip():
            raise ValidationError("URL cannot be empty")
        reference = classify(url)
        adapter = self.adapters.get(reference.family)
        if adapter is None:
            raise UnsupportedUrl(reference.url)
        return reference, adapter

    async def run(
        self,
        reference: SourceReference,
        adapter: SourceAdapter,
        mode: CaptureMode,
        reporter: Reporter,
    ) -> Artifact:
        self.config.output_root.mkdir(parents=True, exist_ok=True)
        logger.debug("Dispatching %s (%s) to %s", reference.url, reference.family.value, type(adapter).__name__)
        try:
            return await adapter.extract(reference, mode, reporter)
        except PlaywrightError as exc:
            raise ExtractionFailure(f"Browser error while extracting {reference.url}: {exc}") from exc

    async def execute(
        self,
        url: str,
        mode: CaptureMode = CaptureMode.DEFAULT,
        reporter: Optional[Reporter] = None,
    ) -> Artifact:
        """Download ``url`` and return the produced artifact."""
        reference, adapter = self.resolve(url)
        return await self.run(reference, adapter, mode, reporter or ConsoleReporter())
