"""Tests for the scroll-to-load loop."""
from unittest.mock import AsyncMock, MagicMock

import pytest

from pagegrab.errors import ContainerNotFound, ScrollStalled
from pagegrab.scroll import load_all_pages


def _page_with(geometries):
    container = MagicMock()
    container.click = AsyncMock()
    container.evaluate = AsyncMock(side_effect=geometries)
    page = MagicMock()
    page.query_selector = AsyncMock(return_value=container)
    page.keyboard.press = AsyncMock()
    page.wait_for_timeout = AsyncMock()
    return page, container


def _growing(step=100, client=100):
    """Geometry that moves down and grows forever."""
    top = 0
    while True:
        yield {"top": top, "client": client, "height": top + client + 1000}
        top += step


@pytest.mark.asyncio
async def test_scrolls_until_end_with_monotonic_progress(reporter):
    page, container = _page_with(
        [
            {"top": 0, "client": 100, "height": 300},
            {"top": 100, "client": 100, "height": 300},
            {"top": 200, "client": 100, "height": 300},
        ]
    )

    height = await load_all_pages(page, "#scroller", reporter, render_time_ms=5)

    assert height == 300
    container.click.assert_awaited_once()
    assert page.keyboard.press.await_count == 2
    page.wait_for_timeout.assert_awaited_with(5)
    track = reporter.tracks[0]
    assert track.label == "Load pages"
    assert track.values == sorted(track.values)
    assert track.values[-1] == 300
    assert track.stopped


@pytest.mark.asyncio
async def test_already_at_end_does_not_scroll(reporter):
    page, _ = _page_with([{"top": 0, "client": 500, "height": 400}])

    await load_all_pages(page, "#scroller", reporter)

    page.keyboard.press.assert_not_awaited()
    assert reporter.tracks[0].stopped


@pytest.mark.asyncio
async def test_endless_growth_hits_step_cap(reporter):
    page, _ = _page_with(_growing())

    with pytest.raises(ScrollStalled):
        await load_all_pages(page, "#scroller", reporter, max_steps=10)

    assert page.keyboard.press.await_count == 10
    assert reporter.tracks[0].stopped


@pytest.mark.asyncio
async def test_container_that_stops_moving_is_reported(reporter):
    stuck = {"top": 0, "client": 100, "height": 300}
    page, _ = _page_with([stuck] * 10)

    with pytest.raises(ScrollStalled):
        await load_all_pages(page, "#scroller", reporter, max_stalled_steps=3)

    assert page.keyboard.press.await_count == 3
    track = reporter.tracks[0]
    assert track.stopped
    assert track.current < track.total


@pytest.mark.asyncio
async def test_lazy_growth_resets_stall_counter(reporter):
    page, _ = _page_with(
        [
            {"top": 0, "client": 100, "height": 200},
            {"top": 0, "client": 100, "height": 400},
            {"top": 300, "client": 100, "height": 400},
        ]
    )

    assert await load_all_pages(page, "#scroller", reporter, max_stalled_steps=1) == 400


@pytest.mark.asyncio
async def test_missing_container(reporter):
    page = MagicMock()
    page.query_selector = AsyncMock(return_value=None)

    with pytest.raises(ContainerNotFound) as excinfo:
        await load_all_pages(page, "#scroller", reporter)

    assert excinfo.value.selector == "#scroller"
    assert reporter.tracks == []
