"""
Time-scheduled and manual snapshot capture.
"""
import logging
from functools import partial
from typing import Callable, List, Optional, Sequence

from ..config import CAPTURE_OFFSETS_SECONDS
from .capabilities import Clock, TimerHandle
from .models import ArtifactBuffer, CaptureEntry, CapturedArtifact

logger = logging.getLogger("capture")


class CaptureScheduler:
    """
    Arms one timer per offset from session start; each fires at most once.

    Scheduled and manual captures are both producers into the same
    ``ArtifactBuffer``; the buffer enforces the cap.
    """

    def __init__(self,
                 clock: Clock,
                 artifacts: ArtifactBuffer,
                 capture_frame: Callable[[], Optional[bytes]],
                 is_live: Callable[[], bool],
                 offsets: Sequence[float] = CAPTURE_OFFSETS_SECONDS,
                 on_captured: Optional[Callable[[CapturedArtifact], None]] = None):
        self.clock = clock
        self.artifacts = artifacts
        self.capture_frame = capture_frame
        self.is_live = is_live
        self.offsets = tuple(offsets)
        self.on_captured = on_captured

        self.schedule: List[CaptureEntry] = []
        self.base_time: Optional[float] = None
        self._timers: List[TimerHandle] = []
        self._cancelled = False

    @property
    def started(self) -> bool:
        return self.base_time is not None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self, base_time: Optional[float] = None) -> None:
        """Arm the capture timers relative to ``base_time`` (defaults to now)."""
        if self.started:
            logger.warning("Capture schedule already armed")
            return
        if self._cancelled:
            logger.debug("Capture schedule cancelled, not arming")
            return

        now = self.clock.now()
        self.base_time = now if base_time is None else base_time
        self.schedule = [CaptureEntry(offset_seconds=offset) for offset in self.offsets]

        for index, entry in enumerate(self.schedule):
            delay = max(0.0, self.base_time + entry.offset_seconds - now)
            self._timers.append(self.clock.call_later(delay, partial(self.on_fire, index)))

        logger.info(f"Armed {len(self.schedule)} capture timer(s) at offsets {list(self.offsets)}s")

    def on_fire(self, index: int) -> None:
        entry = self.schedule[index]
        if entry.fired:
            return
        entry.fired = True

        if self._cancelled:
            logger.debug(f"Capture timer {index} fired after cancellation, ignoring")
            return
        if not self.is_live():
            logger.debug(f"Capture timer {index} fired without a live stream, ignoring")
            return

        self.capture(source="scheduled")

    def capture(self, source: str = "manual") -> Optional[CapturedArtifact]:
        """Grab the current frame into the artifact buffer, if there is room."""
        if self._cancelled or self.artifacts.sealed:
            return None
        if self.artifacts.is_full:
            logger.info(f"Capture cap reached ({self.artifacts.cap}), skipping {source} capture")
            return None

        frame = self.capture_frame()
        if not frame:
            logger.warning(f"No frame available for {source} capture")
            return None

        elapsed = self.clock.now() - self.base_time if self.base_time is not None else 0.0
        artifact = self.artifacts.append(frame, captured_at=elapsed, source=source)
        if artifact is None:
            return None

        logger.info(
            f"Captured photo {artifact.sequence}/{self.artifacts.cap} ({source}) at {elapsed:.1f}s"
        )
        if self.on_captured:
            self.on_captured(artifact)
        return artifact

    def cancel_all(self) -> None:
        """Clear every pending timer. Later firings are ignored."""
        self._cancelled = True
        for timer in self._timers:
            timer.cancel()
        pending = sum(1 for entry in self.schedule if not entry.fired)
        self._timers.clear()
        if pending:
            logger.info(f"Cancelled {pending} pending capture timer(s)")
