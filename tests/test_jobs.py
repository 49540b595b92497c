"""Tests for the single-flight job orchestrator."""
import asyncio

import pytest

from pagegrab.cache import ResultCache
from pagegrab.downloader import Downloader
from pagegrab.errors import ExtractionFailure, JobAlreadyActive, StorageFailure, UnsupportedUrl, ValidationError
from pagegrab.events import EventBroadcaster, EventType
from pagegrab.jobs import BroadcastReporter, JobOrchestrator, new_job_id
from pagegrab.models import Artifact, CaptureMode, JobState, SourceFamily

from .conftest import FakeBrowser

URL = "https://www.scribd.com/document/123/sample"


class FakeAdapter:
    """Writes a small artifact, optionally waiting on a gate first."""

    families = (SourceFamily.DOCUMENT,)

    def __init__(self, config, gate=None, fail=None):
        self.config = config
        self.gate = gate
        self.fail = fail
        self.calls = []

    async def extract(self, reference, mode, reporter):
        self.calls.append((reference.url, mode))
        reporter.log("working")
        track = reporter.begin_progress("Load pages", 2)
        track.advance(1)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            track.abort()
            raise self.fail
        track.end()
        output = self.config.output_root / f"{reference.identifier}.pdf"
        output.write_bytes(b"%PDF-1.4 fake")
        return Artifact.from_path(output, reference, "Sample")


class BrokenCache:
    def get(self, url):
        raise StorageFailure("database is locked")

    def save(self, url, file_path, title=""):
        raise StorageFailure("database is locked")


@pytest.fixture
def broadcaster():
    return EventBroadcaster()


@pytest.fixture
def cache(config):
    cache = ResultCache(config.database_path)
    yield cache
    cache.close()


def _orchestrator(config, adapter, cache, broadcaster):
    downloader = Downloader(config, FakeBrowser(), adapters={SourceFamily.DOCUMENT: adapter})
    return JobOrchestrator(downloader, cache, broadcaster)


def _statuses(events):
    return [event.data for event in events if event.event is EventType.STATUS]


def test_job_ids_are_unique():
    assert new_job_id() != new_job_id()


@pytest.mark.asyncio
async def test_successful_job_completes_once_and_is_cached(config, cache, broadcaster):
    adapter = FakeAdapter(config)
    orchestrator = _orchestrator(config, adapter, cache, broadcaster)
    subscription = broadcaster.subscribe()

    job = orchestrator.start(URL)
    assert job.state is JobState.RUNNING
    assert orchestrator.active_job is job
    await orchestrator.wait_idle()

    statuses = _statuses(subscription.drain())
    assert [status["state"] for status in statuses] == ["running", "completed"]
    assert statuses[0]["output"] == str(config.output_root)
    completed = statuses[-1]
    assert completed["jobId"] == job.id
    assert completed["cached"] is False
    assert completed["title"] == "Sample"
    assert completed["file"].endswith("123.pdf")
    assert orchestrator.is_idle
    assert cache.get(URL).file_path == completed["file"]
    assert adapter.calls == [(URL, CaptureMode.DEFAULT)]


@pytest.mark.asyncio
async def test_failed_job_reports_error_and_returns_to_idle(config, cache, broadcaster):
    adapter = FakeAdapter(config, fail=ExtractionFailure("No slides found to download."))
    orchestrator = _orchestrator(config, adapter, cache, broadcaster)
    subscription = broadcaster.subscribe()

    orchestrator.start(URL)
    await orchestrator.wait_idle()

    events = subscription.drain()
    statuses = _statuses(events)
    assert [status["state"] for status in statuses] == ["running", "failed"]
    assert statuses[-1]["error"] == "No slides found to download."
    errors = [event.data["message"] for event in events if event.event is EventType.LOG_ERROR]
    assert errors == ["No slides found to download."]
    assert orchestrator.is_idle
    assert cache.get(URL) is None


@pytest.mark.asyncio
async def test_unexpected_exception_still_fails_the_job(config, cache, broadcaster):
    adapter = FakeAdapter(config, fail=RuntimeError())
    orchestrator = _orchestrator(config, adapter, cache, broadcaster)
    subscription = broadcaster.subscribe()

    orchestrator.start(URL)
    await orchestrator.wait_idle()

    statuses = _statuses(subscription.drain())
    assert statuses[-1]["state"] == "failed"
    assert statuses[-1]["error"] == "RuntimeError"
    assert orchestrator.is_idle


@pytest.mark.asyncio
async def test_second_start_while_running_is_rejected(config, cache, broadcaster):
    gate = asyncio.Event()
    adapter = FakeAdapter(config, gate=gate)
    orchestrator = _orchestrator(config, adapter, cache, broadcaster)

    first = orchestrator.start(URL)
    await asyncio.sleep(0)
    with pytest.raises(JobAlreadyActive) as excinfo:
        orchestrator.start("https://www.scribd.com/document/456/other")
    assert excinfo.value.job_id == first.id
    assert str(excinfo.value) == "A download is already running."

    gate.set()
    await orchestrator.wait_idle()
    assert len(adapter.calls) == 1
    assert orchestrator.is_idle


@pytest.mark.asyncio
async def test_busy_check_comes_before_validation(config, cache, broadcaster):
    gate = asyncio.Event()
    orchestrator = _orchestrator(config, FakeAdapter(config, gate=gate), cache, broadcaster)

    orchestrator.start(URL)
    with pytest.raises(JobAlreadyActive):
        orchestrator.start("")

    gate.set()
    await orchestrator.wait_idle()


@pytest.mark.asyncio
async def test_cache_hit_completes_without_running_adapter(config, cache, broadcaster, tmp_path):
    existing = tmp_path / "previous.pdf"
    existing.write_bytes(b"%PDF-1.4 old")
    cache.save(URL, existing, "Previous")
    adapter = FakeAdapter(config)
    orchestrator = _orchestrator(config, adapter, cache, broadcaster)
    subscription = broadcaster.subscribe()

    job = orchestrator.start(URL)

    assert job.state is JobState.COMPLETED
    assert orchestrator.is_idle
    await orchestrator.wait_idle()
    assert adapter.calls == []
    statuses = _statuses(subscription.drain())
    assert statuses == [
        {
            "state": "completed",
            "jobId": job.id,
            "url": URL,
            "file": str(existing),
            "title": "Previous",
            "cached": True,
        }
    ]


@pytest.mark.asyncio
async def test_cache_entry_for_deleted_file_is_ignored(config, cache, broadcaster, tmp_path):
    cache.save(URL, tmp_path / "gone.pdf", "Gone")
    adapter = FakeAdapter(config)
    orchestrator = _orchestrator(config, adapter, cache, broadcaster)

    orchestrator.start(URL)
    await orchestrator.wait_idle()

    assert len(adapter.calls) == 1
    assert cache.get(URL).file_path.endswith("123.pdf")


@pytest.mark.asyncio
async def test_storage_failures_do_not_fail_the_job(config, broadcaster):
    adapter = FakeAdapter(config)
    orchestrator = _orchestrator(config, adapter, BrokenCache(), broadcaster)
    subscription = broadcaster.subscribe()

    orchestrator.start(URL)
    await orchestrator.wait_idle()

    statuses = _statuses(subscription.drain())
    assert statuses[-1]["state"] == "completed"
    assert len(adapter.calls) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url, error",
    [
        ("", ValidationError),
        ("   ", ValidationError),
        ("https://example.com/document/1", UnsupportedUrl),
    ],
)
async def test_rejected_urls_publish_nothing(config, cache, broadcaster, url, error):
    adapter = FakeAdapter(config)
    orchestrator = _orchestrator(config, adapter, cache, broadcaster)
    subscription = broadcaster.subscribe()

    with pytest.raises(error):
        orchestrator.start(url)

    assert subscription.drain() == []
    assert orchestrator.is_idle
    assert adapter.calls == []


@pytest.mark.asyncio
async def test_job_events_carry_the_job_id(config, cache, broadcaster):
    orchestrator = _orchestrator(config, FakeAdapter(config), cache, broadcaster)
    subscription = broadcaster.subscribe()

    job = orchestrator.start(URL, CaptureMode.IMAGE)
    await orchestrator.wait_idle()

    events = subscription.drain()
    assert events
    assert all(event.data["jobId"] == job.id for event in events)
    kinds = [event.event for event in events]
    assert EventType.PROGRESS_START in kinds
    assert EventType.PROGRESS_STOP in kinds
    updates = [event.data["value"] for event in events if event.event is EventType.PROGRESS_UPDATE]
    assert updates == [1, 2]


@pytest.mark.asyncio
async def test_snapshot_reflects_running_job(config, cache, broadcaster):
    gate = asyncio.Event()
    orchestrator = _orchestrator(config, FakeAdapter(config, gate=gate), cache, broadcaster)
    assert orchestrator.snapshot()["state"] == "idle"

    job = orchestrator.start(URL)
    snapshot = orchestrator.snapshot()
    assert snapshot["state"] == "running"
    assert snapshot["jobId"] == job.id

    gate.set()
    await orchestrator.wait_idle()
    assert orchestrator.snapshot()["jobId"] is None


def test_broadcast_reporter_progress_ids_are_unique():
    broadcaster = EventBroadcaster()
    subscription = broadcaster.subscribe()
    reporter = BroadcastReporter("job-1", broadcaster)

    first = reporter.begin_progress("Load pages", 10)
    second = reporter.begin_progress("Generate PDFs", 3)

    assert first.id != second.id
    starts = [event.data for event in subscription.drain() if event.event is EventType.PROGRESS_START]
    assert [start["label"] for start in starts] == ["Load pages", "Generate PDFs"]
