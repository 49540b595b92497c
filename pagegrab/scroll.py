"""Drive a lazily-loaded scroll container until every page is materialized."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from playwright.async_api import Page

from .errors import ContainerNotFound, ScrollStalled
from .reporter import Reporter

logger = logging.getLogger("pagegrab.scroll")

_GEOMETRY_JS = "el => ({top: el.scrollTop, client: el.clientHeight, height: el.scrollHeight})"


@dataclass
class ScrollGeometry:
    top: float
    client: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.client

    @property
    def at_end(self) -> bool:
        return self.bottom >= self.height


async def _read_geometry(container) -> ScrollGeometry:
    raw = await container.evaluate(_GEOMETRY_JS)
    return ScrollGeometry(top=raw["top"], client=raw["client"], height=raw["height"])


async def load_all_pages(
    page: Page,
    selector: str,
    reporter: Reporter,
    *,
    render_time_ms: int = 100,
    max_steps: int = 5000,
    max_stalled_steps: int = 50,
) -> int:
    """Press PageDown inside ``selector`` until its content is fully scrolled.

    Returns the final ``scrollHeight``. Raises :class:`ContainerNotFound` when
    the container is missing and :class:`ScrollStalled` when the end is not
    reached within ``max_steps`` advances or nothing moves for
    ``max_stalled_steps`` advances in a row.
    """
    container = await page.query_selector(selector)
    if container is None:
        raise ContainerNotFound(selector)

    # Focus the container so keyboard scrolling applies to it.
    await container.click()
    geometry = await _read_geometry(container)
    progress = reporter.begin_progress("Load pages", int(geometry.height))

    steps = 0
    stalled = 0
    try:
        while not geometry.at_end:
            if steps >= max_steps:
                raise ScrollStalled(
                    f"Gave up after {steps} scroll steps at {int(geometry.bottom)}/{int(geometry.height)}px"
                )
            if stalled >= max_stalled_steps:
                raise ScrollStalled(
                    f"Scrolling stopped making progress at {int(geometry.bottom)}/{int(geometry.height)}px"
                )
            await page.keyboard.press("PageDown")
            await page.wait_for_timeout(render_time_ms)
            steps += 1

            previous = geometry
            geometry = await _read_geometry(container)
            if geometry.top <= previous.top and geometry.height == previous.height:
                stalled += 1
            else:
                stalled = 0
            progress.advance(round(geometry.bottom))
    except BaseException:
        progress.abort()
        raise
    progress.end()
    logger.debug("Scrolled %s to the end in %d steps", selector, steps)
    return int(geometry.height)
