"""Everand podcast episodes and whole series, downloaded as MP3 files."""

from __future__ import annotations

import asyncio
import logging
import re
from pathlib import Path
from typing import List, Tuple

import requests
from playwright.async_api import Error as PlaywrightError

from .adapters import SourceAdapter
from .classify import EVERAND_PODCAST_LISTEN, everand_listen_url, series_identifier
from .errors import ExtractionFailure, PartialCaptureWarning, ResourceUnavailable
from .images import download_file
from .models import Artifact, CaptureMode, SourceFamily, SourceReference
from .reporter import Reporter
from .utils import sanitize_filename

logger = logging.getLogger("pagegrab.podcast")

UNKNOWN_SERIES = "Unknown_Series"
UNKNOWN_TITLE = "Unknown Title"

_EPISODE_INFO_JS = """() => {
    const doc = window.Scribd && window.Scribd.current_doc;
    const audio = document.querySelector('audio#audioplayer');
    const series = document.querySelector('a[href^="https://www.everand.com/podcast-show/"]');
    return {
        title: doc && doc.short_title ? doc.short_title : null,
        audio: audio ? audio.src : null,
        series: series ? series.href : null,
    };
}"""

TOTAL_EPISODES = 'span[data-e2e="podcast-series-header-total-episodes"]'
PAGINATION_LINKS = 'div[data-e2e="pagination"] a[aria-label^="Page"]'
EPISODE_LINKS = 'div.breakpoint_hide.below a[data-e2e="podcast-episode-player-button"]'

_LAST_PAGE_JS = """(selector) => {
    const links = [...document.querySelectorAll(selector)];
    return links.length > 0 ? links[links.length - 1].textContent : "1";
}"""

_NUMBER = re.compile(r"\d+")


def _first_number(text: str, fallback: int) -> int:
    match = _NUMBER.search(text or "")
    return int(match.group()) if match else fallback


class PodcastAdapter(SourceAdapter):
    families = (SourceFamily.PODCAST_EPISODE, SourceFamily.PODCAST_SERIES)

    async def extract(
        self,
        reference: SourceReference,
        mode: CaptureMode,
        reporter: Reporter,
    ) -> Artifact:
        if reference.family is SourceFamily.PODCAST_SERIES:
            return await self._download_series(reference, reporter)

        reporter.log("Downloading episode audio...")
        path, title = await self._download_episode(everand_listen_url(reference.identifier))
        reporter.log(f"Saved: {path}")
        return Artifact.from_path(path, reference, title)

    async def _download_episode(self, listen_url: str) -> Tuple[Path, str]:
        """Resolve one episode page and stream its audio into the series folder."""
        match = EVERAND_PODCAST_LISTEN.match(listen_url)
        if not match:
            raise ExtractionFailure(f"Invalid listen URL: {listen_url}")
        episode_id = match.group(1)

        async with self.browser.open_session(listen_url) as page:
            await self.settle(page)
            try:
                info = await page.evaluate(_EPISODE_INFO_JS)
            except PlaywrightError as exc:
                raise ExtractionFailure(f"Failed to read episode {episode_id}: {exc}") from exc

        if not info.get("audio"):
            raise ExtractionFailure("Audio source not found on page.")
        if not info.get("series"):
            raise ExtractionFailure("Series URL not found.")

        title = info.get("title") or UNKNOWN_TITLE
        directory = self.config.output_root / (series_identifier(info["series"]) or UNKNOWN_SERIES)
        directory.mkdir(parents=True, exist_ok=True)
        destination = directory / f"{episode_id}_{sanitize_filename(title)}.mp3"

        session = requests.Session()
        try:
            await asyncio.to_thread(download_file, session, info["audio"], destination)
        except (requests.RequestException, OSError) as exc:
            raise ExtractionFailure(f"Failed to download audio for episode {episode_id}: {exc}") from exc
        finally:
            session.close()
        return destination, title

    def _listen_url(self, link: str) -> str:
        reference = self.classify(link)
        if reference is not None and reference.family is SourceFamily.PODCAST_EPISODE:
            return everand_listen_url(reference.identifier)
        return link

    async def _download_series(self, reference: SourceReference, reporter: Reporter) -> Artifact:
        directory = self.config.output_root / reference.identifier
        directory.mkdir(parents=True, exist_ok=True)
        listing_url = reference.url.split("?", 1)[0].split("#", 1)[0]

        reporter.log("Processing podcast series...")
        saved: List[Path] = []
        failed = 0
        async with self.browser.open_session(listing_url) as page:
            await self.settle(page)
            total_episodes = _first_number(await self.read_text(page, TOTAL_EPISODES), 0)
            total_pages = max(_first_number(await page.evaluate(_LAST_PAGE_JS, PAGINATION_LINKS), 1), 1)
            reporter.log(f"Series total episodes: {total_episodes}")

            progress = reporter.begin_progress("Download episodes", total_episodes)
            completed = 0
            try:
                for number in range(1, total_pages + 1):
                    if number > 1:
                        await self.browser.navigate(page, f"{listing_url}?page={number}&sort=desc")
                        await self.settle(page)
                    links: List[str] = await page.eval_on_selector_all(
                        EPISODE_LINKS, "links => links.map(x => x.href)"
                    )
                    for link in links:
                        try:
                            path, _ = await self._download_episode(self._listen_url(link))
                        except (ExtractionFailure, ResourceUnavailable, PlaywrightError) as exc:
                            failed += 1
                            reporter.warn(PartialCaptureWarning(f"episode {link}", str(exc)))
                        else:
                            saved.append(path)
                        completed += 1
                        progress.advance(completed)
            except BaseException:
                progress.abort()
                raise
            progress.end()

        if not saved and failed:
            raise ExtractionFailure("No episodes could be downloaded.")
        reporter.log(f"Saved {len(saved)} episodes to {directory}")
        return Artifact.from_path(directory, reference, reference.identifier)
