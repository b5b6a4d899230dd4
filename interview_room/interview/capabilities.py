"""
Capability interfaces the session core depends on.

Platform adapters (camera/microphone, speech engines, storage, auth, the
interview AI backend) live in ``interview_room.infrastructure``; the core only
talks to these abstractions so it can be driven by fakes in tests.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from ..config import (
    VIDEO_WIDTH, VIDEO_HEIGHT, VIDEO_FACING_MODE, AUDIO_SAMPLE_RATE,
    AUDIO_ECHO_CANCELLATION, AUDIO_NOISE_SUPPRESSION
)


# =============================================================================
# Media
# =============================================================================

@dataclass(frozen=True)
class VideoConstraints:
    width: int = VIDEO_WIDTH
    height: int = VIDEO_HEIGHT
    facing_mode: str = VIDEO_FACING_MODE


@dataclass(frozen=True)
class AudioConstraints:
    echo_cancellation: bool = AUDIO_ECHO_CANCELLATION
    noise_suppression: bool = AUDIO_NOISE_SUPPRESSION
    sample_rate: int = AUDIO_SAMPLE_RATE


@dataclass(frozen=True)
class MediaConstraints:
    """What to ask the hardware for when acquiring the stream."""
    video: VideoConstraints = field(default_factory=VideoConstraints)
    audio: AudioConstraints = field(default_factory=AudioConstraints)


class MediaTrack(ABC):
    """A single audio or video track of a live stream."""

    kind: str = ""

    @property
    @abstractmethod
    def enabled(self) -> bool:
        ...

    @enabled.setter
    @abstractmethod
    def enabled(self, value: bool) -> None:
        ...

    @property
    @abstractmethod
    def ready_state(self) -> str:
        """Either "live" or "ended"."""

    @abstractmethod
    def stop(self) -> None:
        """Stop the track. Stopping an ended track does nothing."""


class MediaStream(ABC):
    """A live camera + microphone stream."""

    @abstractmethod
    def get_tracks(self) -> List[MediaTrack]:
        ...

    def get_video_tracks(self) -> List[MediaTrack]:
        return [t for t in self.get_tracks() if t.kind == "video"]

    def get_audio_tracks(self) -> List[MediaTrack]:
        return [t for t in self.get_tracks() if t.kind == "audio"]

    @abstractmethod
    def capture_frame(self) -> Optional[bytes]:
        """
        Encode the current video frame as JPEG.

        The frame is stored in the camera's raw orientation; it is NOT the
        mirrored image shown in the preview.
        """


class PreviewSink(ABC):
    """Live preview surface. Displays the stream mirrored (selfie view)."""

    mirrored: bool = True

    @abstractmethod
    def attach(self, stream: MediaStream) -> None:
        ...

    def detach(self) -> None:
        pass


class MediaAcquirer(ABC):
    """Requests camera and microphone access from the platform."""

    @abstractmethod
    async def acquire(self, constraints: MediaConstraints) -> MediaStream:
        """
        Raises:
            PermissionDenied: the user or OS refused access
            DeviceUnavailable: no usable camera/microphone
        """


# =============================================================================
# Speech
# =============================================================================

class SpeechSynthesizer(ABC):
    """Speaks text aloud."""

    @abstractmethod
    async def synthesize(self,
                         text: str,
                         rate: float = 1.0,
                         pitch: float = 1.0,
                         on_start: Optional[Callable[[], None]] = None) -> None:
        """Return once playback has finished. Raises on synthesis/playback error."""

    def cancel(self) -> None:
        """Stop any utterance in progress."""


@dataclass(frozen=True)
class RecognitionResult:
    transcript: str
    is_final: bool = False


@dataclass(frozen=True)
class RecognitionEvent:
    """
    One partial update from the recognizer.

    ``results`` is the recognizer's result list; entries before
    ``result_index`` were already delivered in earlier events.
    """
    result_index: int
    results: Sequence[RecognitionResult]


class RecognitionHandle(ABC):
    @abstractmethod
    def stop(self) -> None:
        ...


class SpeechTranscriber(ABC):
    """Continuous speech-to-text with interim results."""

    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    def start(self,
              language: str,
              on_start: Callable[[], None],
              on_result: Callable[[RecognitionEvent], None],
              on_error: Callable[[str], None],
              on_end: Callable[[], None]) -> RecognitionHandle:
        ...


# =============================================================================
# Timers
# =============================================================================

class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        ...


class Clock(ABC):
    """Source of time and one-shot timers (seconds)."""

    @abstractmethod
    def now(self) -> float:
        ...

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...


# =============================================================================
# Auth, storage, AI
# =============================================================================

@dataclass(frozen=True)
class Identity:
    id: str
    email: Optional[str] = None


class AuthProvider(ABC):
    @abstractmethod
    async def current_identity(self) -> Optional[Identity]:
        ...


class DurableStorage(ABC):
    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Raises on failure."""

    @abstractmethod
    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        ...


class InterviewAIClient(ABC):
    """Request/response text-generation backend (``{"action": ...}`` -> ``{"result": ...}``)."""

    @abstractmethod
    def invoke(self, body: Dict[str, Any]) -> Dict[str, Any]:
        ...
