"""Progress and log reporting used by adapters.

Adapters talk to a :class:`Reporter` only. The console implementation here
logs through :mod:`logging` and draws ``tqdm`` bars; the HTTP surface uses
:class:`pagegrab.jobs.BroadcastReporter` instead.
"""

from __future__ import annotations

import itertools
import logging
from typing import Optional

from tqdm import tqdm

from .errors import PartialCaptureWarning

logger = logging.getLogger("pagegrab")

_progress_ids = itertools.count(1)


class ProgressTrack:
    """A long-running sub-phase with a monotonically non-decreasing value."""

    def __init__(self, label: str, total: int, track_id: Optional[str] = None) -> None:
        self.id = track_id or f"progress-{next(_progress_ids)}"
        self.label = label
        self.total = max(int(total), 0)
        self.current = 0
        self.ended = False

    def advance(self, value: int) -> None:
        """Move the track to ``value`` (clamped to ``[current, total]``)."""
        if self.ended:
            return
        value = min(max(int(value), self.current), self.total)
        if value == self.current:
            return
        self.current = value
        self._emit_update()

    def end(self) -> None:
        """Pin the track to its total and stop it. Safe to call twice."""
        if self.ended:
            return
        self.current = self.total
        self._emit_update()
        self.ended = True
        self._emit_stop()

    def abort(self) -> None:
        """Stop the track without pinning it to its total (the phase failed)."""
        if self.ended:
            return
        self.ended = True
        self._emit_stop()

    def _emit_update(self) -> None:
        pass

    def _emit_stop(self) -> None:
        pass


class Reporter:
    """Narrow interface between adapters and whoever is watching them."""

    def log(self, message: str) -> None:
        raise NotImplementedError

    def error(self, message: str) -> None:
        raise NotImplementedError

    def begin_progress(self, label: str, total: int) -> ProgressTrack:
        raise NotImplementedError

    def warn(self, warning: PartialCaptureWarning) -> None:
        """Report a skipped unit; the capture carries on."""
        logger.warning("%s", warning)
        self.error(str(warning))


class _ConsoleProgress(ProgressTrack):
    def __init__(self, label: str, total: int) -> None:
        super().__init__(label, total)
        self._bar = tqdm(total=self.total, desc=label, unit="", leave=True)

    def _emit_update(self) -> None:
        self._bar.n = self.current
        self._bar.refresh()

    def _emit_stop(self) -> None:
        self._bar.close()


class ConsoleReporter(Reporter):
    """Reporter for the command line."""

    def log(self, message: str) -> None:
        logger.info("%s", message)

    def error(self, message: str) -> None:
        logger.error("%s", message)

    def warn(self, warning: PartialCaptureWarning) -> None:
        logger.warning("%s", warning)

    def begin_progress(self, label: str, total: int) -> ProgressTrack:
        return _ConsoleProgress(label, total)


class LogReporter(Reporter):
    """Reporter that only logs; used where no terminal is attached (MCP)."""

    def log(self, message: str) -> None:
        logger.info("%s", message)

    def error(self, message: str) -> None:
        logger.error("%s", message)

    def begin_progress(self, label: str, total: int) -> ProgressTrack:
        logger.debug("Started %s (%d)", label, total)
        return ProgressTrack(label, total)

