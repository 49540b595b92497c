"""Process-wide services, constructed once and torn down on exit."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .browser import BrowserManager
from .cache import ResultCache
from .config import DownloadConfig
from .downloader import Downloader
from .events import EventBroadcaster
from .jobs import JobOrchestrator

logger = logging.getLogger("pagegrab")


@dataclass
class Services:
    config: DownloadConfig
    browser: BrowserManager
    cache: ResultCache
    broadcaster: EventBroadcaster
    downloader: Downloader
    orchestrator: JobOrchestrator

    @classmethod
    def create(cls, config: DownloadConfig) -> "Services":
        browser = BrowserManager(config)
        cache = ResultCache(config.database_path)
        broadcaster = EventBroadcaster()
        downloader = Downloader(config, browser)
        orchestrator = JobOrchestrator(downloader, cache, broadcaster)
        return cls(
            config=config,
            browser=browser,
            cache=cache,
            broadcaster=broadcaster,
            downloader=downloader,
            orchestrator=orchestrator,
        )

    async def close(self) -> None:
        """Let a running job finish, then release the browser and the cache."""
        await self.orchestrator.wait_idle()
        await self.browser.close()
        self.cache.close()
        logger.debug("Services closed")
