"""Scribd documents, captured either as printed vector pages or as screenshots."""

from __future__ import annotations

import asyncio
import logging
from urllib.parse import unquote

from playwright.async_api import Page

from .adapters import SourceAdapter
from .assemble import generate_pdf, merge_pdfs
from .capture import RASTER_SCALE_FACTOR, capture_element_screenshots, capture_vector_pages
from .classify import scribd_embed_url
from .models import Artifact, CaptureMode, SourceFamily, SourceReference
from .reporter import Reporter
from .scroll import load_all_pages

logger = logging.getLogger("pagegrab.document")

TITLE_LINK = "div.mobile_overlay a"
COOKIE_BANNERS = ("div.customOptInDialog", "div[aria-label='Cookie Consent Banner']")
SCROLLER = "div.document_scroller"
TOOLBAR = "div.toolbar_drop"
PAGE_CONTAINER = "div.outer_page_container"
PAGES = "div.outer_page_container div[id^='outer_page_']"

_UNBLOCK_SCROLLER_JS = """({scroller, toolbar}) => {
    const docScroller = document.querySelector(scroller);
    if (docScroller) {
        docScroller.style.bottom = "0px";
        docScroller.style.marginTop = "0px";
    }
    const toolbarDrop = document.querySelector(toolbar);
    if (toolbarDrop) toolbarDrop.style.display = "none";
}"""


class DocumentAdapter(SourceAdapter):
    families = (SourceFamily.DOCUMENT,)

    async def extract(
        self,
        reference: SourceReference,
        mode: CaptureMode,
        reporter: Reporter,
    ) -> Artifact:
        embed_url = scribd_embed_url(reference.identifier)
        if mode is CaptureMode.IMAGE:
            reporter.log("Mode: IMAGE")
            return await self._capture_images(reference, embed_url, reporter)
        reporter.log("Mode: DEFAULT")
        return await self._capture_vector(reference, embed_url, reporter)

    async def _read_title(self, page: Page, fallback: str) -> str:
        href = await self.read_text(page, TITLE_LINK, "el => el.href")
        if not href:
            return fallback
        return unquote(href.rstrip("/").split("/")[-1]).strip() or fallback

    async def _capture_vector(self, reference: SourceReference, embed_url: str, reporter: Reporter) -> Artifact:
        async with self.browser.open_session(embed_url) as page:
            await self.settle(page)
            title = await self._read_title(page, reference.identifier)
            name = self.output_name(title, reference.identifier)
            await self.remove_elements(page, *COOKIE_BANNERS)

            reporter.log("Loading all pages...")
            await load_all_pages(
                page,
                SCROLLER,
                reporter,
                render_time_ms=self.config.render_time_ms,
                max_steps=self.config.max_scroll_steps,
                max_stalled_steps=self.config.max_stalled_steps,
            )

            output = self.config.output_root / f"{name}.pdf"
            with self.work_dir(reference.identifier) as work_dir:
                capture = await capture_vector_pages(
                    page,
                    work_dir,
                    reporter,
                    page_selector=PAGES,
                    container_selector=PAGE_CONTAINER,
                    title=title,
                )
                reporter.log("Merging PDFs...")
                await asyncio.to_thread(merge_pdfs, [rendered.path for rendered in capture.pages], output)
        reporter.log(f"Generated: {output}")
        return Artifact.from_path(output, reference, title)

    async def _capture_images(self, reference: SourceReference, embed_url: str, reporter: Reporter) -> Artifact:
        async with self.browser.open_session(embed_url, device_scale_factor=RASTER_SCALE_FACTOR) as page:
            await self.settle(page)
            title = await self._read_title(page, reference.identifier)
            name = self.output_name(title, reference.identifier)
            await page.evaluate(_UNBLOCK_SCROLLER_JS, {"scroller": SCROLLER, "toolbar": TOOLBAR})

            output = self.config.output_root / f"{name}.pdf"
            with self.work_dir(reference.identifier) as work_dir:
                capture = await capture_element_screenshots(page, work_dir, reporter, page_selector=PAGES, title=title)
                reporter.log("Generating PDF from images...")
                await asyncio.to_thread(generate_pdf, capture.pages, output, capture.title)
        reporter.log(f"Generated: {output}")
        return Artifact.from_path(output, reference, title)
