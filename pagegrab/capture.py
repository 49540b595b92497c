"""Capture strategies that turn rendered pages into per-page files.

Two families share one output contract (a :class:`CaptureResult`):

* vector capture prints each page of the live DOM to its own PDF;
* raster capture screenshots page elements, or fetches slide images directly,
  and stores PNGs whose real size is read back from disk.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, List, Sequence, Tuple

import requests
from playwright.async_api import Error as PlaywrightError, Page

from .errors import ExtractionFailure, PartialCaptureWarning
from .images import ImageFetchError, even_height_png, fetch_image_as_png
from .models import CaptureResult, RenderedPage
from .normalize import CANONICAL_WIDTH, raster_viewport, vector_page_size
from .reporter import Reporter
from .utils import raster_page_name, vector_page_name

logger = logging.getLogger("pagegrab.capture")

RASTER_SCALE_FACTOR = 2

ImageFetcher = Callable[[requests.Session, str, Path], Tuple[int, int]]

_ISOLATE_PAGES_JS = """({ids, container}) => {
    for (const id of ids) {
        const el = document.getElementById(id);
        if (el) el.style.margin = "0";
    }
    const holder = document.querySelector(container);
    if (holder) document.body.innerHTML = holder.innerHTML;
    for (const id of ids) {
        const el = document.getElementById(id);
        if (el) el.style.display = "none";
    }
}"""

_SHOW_PAGE_JS = """(id) => {
    const el = document.getElementById(id);
    if (!el) return null;
    el.style.display = "block";
    return el.getAttribute("style");
}"""

_HIDE_PAGE_JS = """(id) => {
    const el = document.getElementById(id);
    if (el) el.style.display = "none";
}"""


async def capture_vector_pages(
    page: Page,
    work_dir: Path,
    reporter: Reporter,
    *,
    page_selector: str,
    container_selector: str,
    title: str,
) -> CaptureResult:
    """Print every page matched by ``page_selector`` to its own PDF.

    The DOM is rewritten so that only the page container remains and exactly
    one page is visible per print; the session is unusable afterwards.
    """
    page_ids: List[str] = await page.eval_on_selector_all(
        page_selector, "els => els.map(el => el.id).filter(Boolean)"
    )
    if not page_ids:
        raise ExtractionFailure(f"No pages found for {page_selector}")

    await page.evaluate(_ISOLATE_PAGES_JS, {"ids": page_ids, "container": container_selector})

    reporter.log("Generating per-page PDFs...")
    progress = reporter.begin_progress("Generate PDFs", len(page_ids))
    pages: List[RenderedPage] = []
    try:
        for index, page_id in enumerate(page_ids):
            style = await page.evaluate(_SHOW_PAGE_JS, page_id)
            size = vector_page_size(style)
            destination = work_dir / vector_page_name(index)
            width, height = size.css
            try:
                await page.pdf(
                    path=str(destination),
                    width=width,
                    height=height,
                    print_background=True,
                )
            except PlaywrightError as exc:
                raise ExtractionFailure(f"Failed to print page {index + 1}: {exc}") from exc
            await page.evaluate(_HIDE_PAGE_JS, page_id)
            pages.append(RenderedPage(index=index, path=destination, width=size.width, height=size.height))
            progress.advance(index + 1)
    except BaseException:
        progress.abort()
        raise
    progress.end()
    return CaptureResult(pages=pages, title=title)


async def capture_element_screenshots(
    page: Page,
    work_dir: Path,
    reporter: Reporter,
    *,
    page_selector: str,
    title: str,
    canonical_width: int = CANONICAL_WIDTH,
) -> CaptureResult:
    """Screenshot every page element at the canonical width.

    The session should have been opened with a device scale factor of
    :data:`RASTER_SCALE_FACTOR`. A page whose screenshot fails is skipped.
    """
    elements = await page.query_selector_all(page_selector)
    if not elements:
        raise ExtractionFailure(f"No pages found for {page_selector}")

    reporter.log("Capturing pages as images...")
    progress = reporter.begin_progress("Capture pages", len(elements))
    result = CaptureResult(pages=[], title=title)
    try:
        for index, element in enumerate(elements):
            destination = work_dir / raster_page_name(index)
            try:
                await element.evaluate("el => el.scrollIntoView()")
                viewport = raster_viewport(await element.get_attribute("style"), canonical_width)
                await page.set_viewport_size({"width": viewport.width, "height": viewport.height})
                await element.screenshot(path=str(destination))
                width, height = await asyncio.to_thread(even_height_png, destination)
            except (PlaywrightError, OSError) as exc:
                warning = PartialCaptureWarning(f"page {index + 1}", str(exc))
                reporter.warn(warning)
                result.warnings.append(warning)
            else:
                result.pages.append(RenderedPage(index=index, path=destination, width=width, height=height))
            progress.advance(index + 1)
    except BaseException:
        progress.abort()
        raise
    progress.end()
    return result


async def capture_remote_images(
    urls: Sequence[str],
    work_dir: Path,
    reporter: Reporter,
    *,
    title: str,
    fetch: ImageFetcher = fetch_image_as_png,
) -> CaptureResult:
    """Download each slide image and transcode it to PNG.

    A slide that cannot be fetched or decoded is reported and skipped.
    """
    reporter.log("Downloading slides...")
    progress = reporter.begin_progress("Download slides", len(urls))
    result = CaptureResult(pages=[], title=title)
    session = requests.Session()
    try:
        for index, url in enumerate(urls):
            destination = work_dir / raster_page_name(index)
            try:
                width, height = await asyncio.to_thread(fetch, session, url, destination)
            except (ImageFetchError, OSError) as exc:
                warning = PartialCaptureWarning(f"slide {index + 1}", str(exc))
                reporter.warn(warning)
                result.warnings.append(warning)
            else:
                result.pages.append(RenderedPage(index=index, path=destination, width=width, height=height))
            progress.advance(index + 1)
    except BaseException:
        progress.abort()
        raise
    finally:
        session.close()
    progress.end()
    return result
