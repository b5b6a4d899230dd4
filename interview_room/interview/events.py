"""
Event-driven notifications for the interview session.
"""
import logging
from abc import ABC
from typing import Dict, Any, List, Callable, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of session events."""
    QUESTIONS_LOADED = "questions_loaded"
    MEDIA_ACQUIRED = "media_acquired"
    MEDIA_BLOCKED = "media_blocked"
    QUESTION_SPOKEN = "question_spoken"
    ANSWER_COMMITTED = "answer_committed"
    QUESTION_ADVANCED = "question_advanced"
    ARTIFACT_CAPTURED = "artifact_captured"
    UPLOAD_FAILED = "upload_failed"
    SESSION_FINISHING = "session_finishing"
    SESSION_COMPLETED = "session_completed"
    NOTICE = "notice"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class SessionEvent(ABC):
    """Base class for all session events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class QuestionsLoadedEvent(SessionEvent):
    """Event fired when the question set is ready."""
    def __init__(self, session_id: str, timestamp: float, category: str,
                 question_count: int, used_fallback: bool):
        super().__init__(
            event_type=EventType.QUESTIONS_LOADED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "category": category,
                "question_count": question_count,
                "used_fallback": used_fallback
            }
        )


@dataclass
class MediaAcquiredEvent(SessionEvent):
    """Event fired when camera and microphone go live."""
    def __init__(self, session_id: str, timestamp: float, video_tracks: int, audio_tracks: int):
        super().__init__(
            event_type=EventType.MEDIA_ACQUIRED,
            session_id=session_id,
            timestamp=timestamp,
            data={"video_tracks": video_tracks, "audio_tracks": audio_tracks}
        )


@dataclass
class MediaBlockedEvent(SessionEvent):
    """Event fired when media acquisition is refused or impossible."""
    def __init__(self, session_id: str, timestamp: float, reason: str, message: str):
        super().__init__(
            event_type=EventType.MEDIA_BLOCKED,
            session_id=session_id,
            timestamp=timestamp,
            data={"reason": reason, "message": message}
        )


@dataclass
class QuestionSpokenEvent(SessionEvent):
    """Event fired when a question finished playing (or failed to)."""
    def __init__(self, session_id: str, timestamp: float, question_index: int):
        super().__init__(
            event_type=EventType.QUESTION_SPOKEN,
            session_id=session_id,
            timestamp=timestamp,
            data={"question_index": question_index}
        )


@dataclass
class AnswerCommittedEvent(SessionEvent):
    """Event fired when a listening turn's transcript is written to the responses."""
    def __init__(self, session_id: str, timestamp: float, question_index: int, answer: str):
        super().__init__(
            event_type=EventType.ANSWER_COMMITTED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "question_index": question_index,
                "answer_length": len(answer)
            }
        )


@dataclass
class QuestionAdvancedEvent(SessionEvent):
    """Event fired when the session moves to the next question."""
    def __init__(self, session_id: str, timestamp: float, question_index: int, question_count: int):
        super().__init__(
            event_type=EventType.QUESTION_ADVANCED,
            session_id=session_id,
            timestamp=timestamp,
            data={"question_index": question_index, "question_count": question_count}
        )


@dataclass
class ArtifactCapturedEvent(SessionEvent):
    """Event fired when a snapshot is added to the artifact buffer."""
    def __init__(self, session_id: str, timestamp: float, sequence: int, source: str, cap: int):
        super().__init__(
            event_type=EventType.ARTIFACT_CAPTURED,
            session_id=session_id,
            timestamp=timestamp,
            data={"sequence": sequence, "source": source, "cap": cap}
        )


@dataclass
class UploadFailedEvent(SessionEvent):
    """Event fired when a single artifact could not be stored."""
    def __init__(self, session_id: str, timestamp: float, path: str, error_message: str):
        super().__init__(
            event_type=EventType.UPLOAD_FAILED,
            session_id=session_id,
            timestamp=timestamp,
            data={"path": path, "error_message": error_message}
        )


@dataclass
class SessionFinishingEvent(SessionEvent):
    """Event fired when the last question is left and reconciliation starts."""
    def __init__(self, session_id: str, timestamp: float, artifact_count: int):
        super().__init__(
            event_type=EventType.SESSION_FINISHING,
            session_id=session_id,
            timestamp=timestamp,
            data={"artifact_count": artifact_count}
        )


@dataclass
class SessionCompletedEvent(SessionEvent):
    """Event fired when the session reaches its terminal state."""
    def __init__(self, session_id: str, timestamp: float, answered: int,
                 question_count: int, durable_artifact_url: Optional[str]):
        super().__init__(
            event_type=EventType.SESSION_COMPLETED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "answered": answered,
                "question_count": question_count,
                "has_artifact_url": durable_artifact_url is not None
            }
        )


@dataclass
class NoticeEvent(SessionEvent):
    """A user-visible notice (info, success, warning, error)."""
    def __init__(self, session_id: str, timestamp: float, level: str, message: str):
        super().__init__(
            event_type=EventType.NOTICE,
            session_id=session_id,
            timestamp=timestamp,
            data={"level": level, "message": message}
        )

    @property
    def level(self) -> str:
        return self.data["level"]

    @property
    def message(self) -> str:
        return self.data["message"]


@dataclass
class ErrorOccurredEvent(SessionEvent):
    """Event fired when an error occurs."""
    def __init__(self, session_id: str, timestamp: float, error_type: str,
                 error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "error_type": error_type,
                "error_message": error_message,
                "component": component
            }
        )


EventHandler = Callable[[SessionEvent], None]


class SessionEventBus:
    """Event bus for session components."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe from specific event type."""
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: SessionEvent) -> None:
        """
        Emit an event to all subscribers.

        A failing handler is logged and does not stop delivery to the others.
        """
        logger.debug(f"Emitting event: {event.event_type} for session {event.session_id}")

        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")

        for handler in list(self._global_handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")


class EventLogger:
    """Logs all events for debugging and analysis."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.logger.setLevel(log_level)

    def handle_event(self, event: SessionEvent) -> None:
        self.logger.info(f"Event: {event.event_type} | Session: {event.session_id} | Data: {event.data}")


class SessionMetrics:
    """Collects counters from session events."""

    _COUNTERS = {
        EventType.QUESTIONS_LOADED: "sessions_started",
        EventType.SESSION_COMPLETED: "sessions_completed",
        EventType.MEDIA_BLOCKED: "media_blocked",
        EventType.ANSWER_COMMITTED: "answers_committed",
        EventType.ARTIFACT_CAPTURED: "artifacts_captured",
        EventType.UPLOAD_FAILED: "uploads_failed",
        EventType.ERROR_OCCURRED: "errors_occurred",
    }

    def __init__(self):
        self.reset()

    def handle_event(self, event: SessionEvent) -> None:
        name = self._COUNTERS.get(event.event_type)
        if name:
            self._counts[name] += 1

    def get_metrics(self) -> Dict[str, int]:
        """Get current metrics snapshot."""
        return dict(self._counts)

    def reset(self) -> None:
        self._counts = {name: 0 for name in self._COUNTERS.values()}
