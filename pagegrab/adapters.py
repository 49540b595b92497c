"""Shared behaviour for the per-site source adapters."""

from __future__ import annotations

import logging
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Tuple

from playwright.async_api import Error as PlaywrightError, Page

from .browser import BrowserManager
from .classify import classify
from .config import DownloadConfig
from .models import Artifact, CaptureMode, SourceFamily, SourceReference
from .reporter import Reporter
from .utils import remove_directory, sanitize_filename, slugify

logger = logging.getLogger("pagegrab.adapters")

_REMOVE_ELEMENTS_JS = """(selectors) => {
    for (const selector of selectors) {
        document.querySelectorAll(selector).forEach(node => node.remove());
    }
}"""


class SourceAdapter:
    """Extracts one content family into a final artifact.

    Subclasses list the families they handle and implement :meth:`extract`.
    Every render session an adapter opens is released before it returns.
    """

    families: Tuple[SourceFamily, ...] = ()

    def __init__(self, config: DownloadConfig, browser: BrowserManager) -> None:
        self.config = config
        self.browser = browser

    def classify(self, url: str) -> Optional[SourceReference]:
        """Return the reference for ``url`` when this adapter handles its family."""
        reference = classify(url)
        return reference if reference.family in self.families else None

    async def extract(
        self,
        reference: SourceReference,
        mode: CaptureMode,
        reporter: Reporter,
    ) -> Artifact:
        raise NotImplementedError

    async def settle(self, page: Page) -> None:
        """Give client-side hydration a moment after navigation."""
        if self.config.settle_delay > 0:
            await page.wait_for_timeout(self.config.settle_delay * 1000)

    async def remove_elements(self, page: Page, *selectors: str) -> None:
        await page.evaluate(_REMOVE_ELEMENTS_JS, list(selectors))

    async def read_text(self, page: Page, selector: str, script: str = "el => el.textContent") -> str:
        """Evaluate ``script`` on the first match of ``selector``; empty if missing."""
        try:
            value = await page.eval_on_selector(selector, script)
        except PlaywrightError as exc:
            logger.debug("Could not read %s: %s", selector, exc)
            return ""
        return (value or "").strip()

    def output_name(self, title: str, identifier: str) -> str:
        """Base file name for the artifact following the configured strategy."""
        preferred = title if self.config.filename_strategy == "title" else identifier
        return sanitize_filename(preferred, fallback=sanitize_filename(identifier))

    @contextmanager
    def work_dir(self, identifier: str) -> Iterator[Path]:
        """Temporary directory for per-page files, removed on every exit path."""
        self.config.output_root.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=f"{slugify(identifier, fallback='capture')}-", dir=self.config.output_root))
        try:
            yield path
        finally:
            remove_directory(path)
