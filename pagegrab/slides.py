"""SlideShare decks, rebuilt from the slide images the page links to."""

from __future__ import annotations

import asyncio
import logging
from typing import List

from .adapters import SourceAdapter
from .assemble import generate_pdf
from .browser import BrowserManager
from .capture import ImageFetcher, capture_remote_images
from .config import DownloadConfig
from .errors import ExtractionFailure
from .images import fetch_image_as_png
from .models import Artifact, CaptureMode, SourceFamily, SourceReference
from .reporter import Reporter

logger = logging.getLogger("pagegrab.slides")

TITLE = "h1.title"
SLIDE_IMAGES = "img[id^='slide-image-']"


class SlideDeckAdapter(SourceAdapter):
    families = (SourceFamily.SLIDE_DECK,)

    def __init__(
        self,
        config: DownloadConfig,
        browser: BrowserManager,
        fetch: ImageFetcher = fetch_image_as_png,
    ) -> None:
        super().__init__(config, browser)
        self.fetch = fetch

    async def extract(
        self,
        reference: SourceReference,
        mode: CaptureMode,
        reporter: Reporter,
    ) -> Artifact:
        async with self.browser.open_session(reference.url) as page:
            await self.settle(page)
            title = await self.read_text(page, TITLE) or reference.identifier
            sources: List[str] = await page.eval_on_selector_all(
                SLIDE_IMAGES,
                "imgs => imgs.map(img => img.currentSrc || img.src || img.dataset.src || '')",
            )
        sources = [src for src in sources if src]
        if not sources:
            raise ExtractionFailure("No slides found to download.")

        name = self.output_name(title, reference.identifier)
        output = self.config.output_root / f"{name}.pdf"
        with self.work_dir(reference.identifier) as work_dir:
            capture = await capture_remote_images(sources, work_dir, reporter, title=title, fetch=self.fetch)
            reporter.log("Generating PDF...")
            await asyncio.to_thread(generate_pdf, capture.pages, output, capture.title)
        if capture.warnings:
            reporter.log(f"Skipped {len(capture.warnings)} of {len(sources)} slides")
        reporter.log(f"Generated: {output}")
        return Artifact.from_path(output, reference, title)
