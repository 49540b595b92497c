"""Single-flight job orchestration for the HTTP surface.

At most one job runs per process because every job drives the one shared
browser. A request arriving while a job runs is rejected, never queued.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from .adapters import SourceAdapter
from .cache import ResultCache
from .downloader import Downloader
from .errors import JobAlreadyActive, PagegrabError, StorageFailure
from .events import EventBroadcaster, EventType
from .models import Artifact, CacheRecord, CaptureMode, Job, JobState, SourceReference
from .reporter import ProgressTrack, Reporter

logger = logging.getLogger("pagegrab.jobs")

_job_counter = itertools.count(1)


def new_job_id() -> str:
    return f"job-{int(time.time() * 1000)}-{next(_job_counter)}"


class _BroadcastProgress(ProgressTrack):
    def __init__(self, reporter: "BroadcastReporter", label: str, total: int, track_id: str) -> None:
        super().__init__(label, total, track_id=track_id)
        self._reporter = reporter
        reporter.publish(EventType.PROGRESS_START, id=self.id, label=label, total=self.total)

    def _emit_update(self) -> None:
        self._reporter.publish(
            EventType.PROGRESS_UPDATE,
            id=self.id,
            value=self.current,
            total=self.total,
            label=self.label,
        )

    def _emit_stop(self) -> None:
        self._reporter.publish(EventType.PROGRESS_STOP, id=self.id)


class BroadcastReporter(Reporter):
    """Reporter that turns adapter output into events tagged with the job id."""

    def __init__(self, job_id: str, broadcaster: EventBroadcaster) -> None:
        self.job_id = job_id
        self.broadcaster = broadcaster
        self._tracks = itertools.count(1)

    def publish(self, event_type: EventType, **payload: Any) -> None:
        self.broadcaster.publish(event_type, {"jobId": self.job_id, **payload})

    def log(self, message: str) -> None:
        logger.info("[%s] %s", self.job_id, message)
        self.publish(EventType.LOG, message=message)

    def error(self, message: str) -> None:
        self.publish(EventType.LOG_ERROR, message=message)

    def begin_progress(self, label: str, total: int) -> ProgressTrack:
        track_id = f"progress-{self.job_id}-{next(self._tracks)}"
        return _BroadcastProgress(self, label, total, track_id)


class JobOrchestrator:
    """Accepts one extraction at a time and reports on it through the broadcaster."""

    def __init__(
        self,
        downloader: Downloader,
        cache: ResultCache,
        broadcaster: EventBroadcaster,
    ) -> None:
        self.downloader = downloader
        self.cache = cache
        self.broadcaster = broadcaster
        self._active: Optional[Job] = None
        self._task: Optional["asyncio.Task[None]"] = None

    @property
    def output_dir(self) -> Path:
        return self.downloader.config.output_root

    @property
    def active_job(self) -> Optional[Job]:
        return self._active

    @property
    def is_idle(self) -> bool:
        return self._active is None

    def snapshot(self) -> Dict[str, Any]:
        """Status payload describing the orchestrator right now."""
        job = self._active
        return {
            "state": job.state.value if job else "idle",
            "jobId": job.id if job else None,
            "url": job.url if job else None,
            "output": str(self.output_dir),
        }

    def start(self, url: str, mode: CaptureMode = CaptureMode.DEFAULT) -> Job:
        """Accept a job and return immediately.

        Must be called from the running event loop. Nothing here awaits, so
        the busy check and claiming the running slot cannot interleave with
        another request.
        """
        if self._active is not None:
            raise JobAlreadyActive(self._active.id)

        reference, adapter = self.downloader.resolve(url)
        job = Job(id=new_job_id(), url=reference.url, started_at=time.time(), mode=mode)

        record = self._cached_record(reference.url)
        if record is not None:
            job.state = JobState.COMPLETED
            self.broadcaster.publish(
                EventType.LOG,
                {"jobId": job.id, "message": f"Already downloaded: {record.file_path}"},
            )
            self._publish_status(job, file=record.file_path, title=record.title, cached=True)
            return job

        self._active = job
        self._publish_status(job, output=str(self.output_dir))
        self._task = asyncio.get_running_loop().create_task(self._run(job, reference, adapter))
        return job

    def _cached_record(self, url: str) -> Optional[CacheRecord]:
        try:
            record = self.cache.get(url)
        except StorageFailure as exc:
            logger.warning("%s", exc)
            return None
        if record is None:
            return None
        if not Path(record.file_path).exists():
            logger.info("Cached result for %s is gone from disk (%s); downloading again", url, record.file_path)
            return None
        return record

    async def _remember(self, url: str, artifact: Artifact) -> None:
        try:
            await asyncio.to_thread(self.cache.save, url, str(artifact.path), artifact.title)
        except StorageFailure as exc:
            logger.warning("%s", exc)

    async def _run(self, job: Job, reference: SourceReference, adapter: SourceAdapter) -> None:
        reporter = BroadcastReporter(job.id, self.broadcaster)
        reporter.log(f"Started: {job.url}")
        try:
            artifact = await self.downloader.run(reference, adapter, job.mode, reporter)
        except Exception as exc:  # pylint: disable=broad-except
            if isinstance(exc, PagegrabError):
                logger.error("Job %s failed: %s", job.id, exc)
            else:
                logger.exception("Unexpected error in job %s", job.id)
            message = str(exc) or type(exc).__name__
            job.state = JobState.FAILED
            reporter.error(message)
            self._publish_status(job, error=message)
        else:
            await self._remember(job.url, artifact)
            job.state = JobState.COMPLETED
            self._publish_status(job, file=str(artifact.path), title=artifact.title, cached=False)
        finally:
            self._active = None

    def _publish_status(self, job: Job, **extra: Any) -> None:
        payload: Dict[str, Any] = {"state": job.state.value, "jobId": job.id, "url": job.url}
        payload.update(extra)
        self.broadcaster.publish(EventType.STATUS, payload)

    async def wait_idle(self) -> None:
        """Wait for the current job, if any, to reach a terminal state."""
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})
