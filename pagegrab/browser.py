"""Headless Chromium sessions shared by every adapter in the process."""

from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from playwright.async_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    async_playwright,
)

from .config import DownloadConfig
from .errors import ResourceUnavailable

logger = logging.getLogger("pagegrab.browser")

CI_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
]


class BrowserManager:
    """Owns the single Playwright browser and hands out render sessions.

    The browser is launched on first use and kept alive until :meth:`close`.
    Each session gets its own context so device scale factor and viewport can
    differ between adapters.
    """

    def __init__(self, config: DownloadConfig) -> None:
        self.config = config
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    async def _ensure_browser(self) -> Browser:
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            args = CI_LAUNCH_ARGS if os.getenv("CI") == "true" else []
            try:
                if self._playwright is None:
                    self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=True,
                    args=args,
                    timeout=30_000,
                )
            except PlaywrightError as exc:
                raise ResourceUnavailable(f"Failed to launch Chromium: {exc}") from exc
            logger.debug("Launched Chromium %s", self._browser.version)
            return self._browser

    async def navigate(self, page: Page, url: str) -> None:
        """Load ``url`` and wait for the network to settle; bounded by the navigation timeout."""
        logger.info("Loading %s", url)
        try:
            await page.goto(url, wait_until="networkidle")
        except PlaywrightTimeoutError as exc:
            raise ResourceUnavailable(f"Timeout while loading {url}") from exc
        except PlaywrightError as exc:
            raise ResourceUnavailable(f"Failed to open page {url}: {exc}") from exc

    @asynccontextmanager
    async def open_session(
        self,
        url: Optional[str] = None,
        *,
        device_scale_factor: float = 1,
        viewport: Optional[Dict[str, int]] = None,
    ) -> AsyncIterator[Page]:
        """Yield a fresh page, optionally already navigated to ``url``.

        The page and its context are closed on every exit path.
        """
        browser = await self._ensure_browser()
        try:
            context = await browser.new_context(
                user_agent=self.config.user_agent,
                device_scale_factor=device_scale_factor,
                viewport=viewport,
            )
            page = await context.new_page()
        except PlaywrightError as exc:
            raise ResourceUnavailable(f"Failed to open a browser page: {exc}") from exc
        page.set_default_navigation_timeout(self.config.navigation_timeout * 1000)
        try:
            if url:
                await self.navigate(page, url)
            yield page
        finally:
            try:
                await context.close()
            except PlaywrightError as exc:
                logger.warning("Failed to close browser session: %s", exc)

    async def close(self) -> None:
        """Shut the browser down; errors while closing are only logged."""
        async with self._lock:
            browser, self._browser = self._browser, None
            playwright, self._playwright = self._playwright, None
            if browser is not None:
                try:
                    await browser.close()
                except PlaywrightError as exc:
                    logger.warning("Failed to close Chromium: %s", exc)
            if playwright is not None:
                await playwright.stop()
