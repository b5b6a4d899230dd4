"""Interview session components.

This module contains the session core: media lifecycle, speech turn-taking,
scheduled capture, the session state machine and end-of-session
reconciliation, plus the AI-backed question and scoring services.
"""

# Session controller and application flow
from .session import SessionStateMachine, SessionPhase
from .flow import InterviewFlow, FlowStep

# Components
from .media import MediaController
from .speech import SpeechTurnCoordinator, TurnState, TurnPhase
from .capture import CaptureScheduler
from .reconciliation import ReconciliationPipeline, build_storage_path, sanitize_name

# Data models
from .models import (
    Session, QAPair, MediaState, CaptureEntry, CapturedArtifact, ArtifactBuffer,
    ReconciliationResult, InterviewPayload
)

# Structured schemas
from .schemas import AnalysisResult, Credentials, parse_question_list, parse_analysis

# Service classes
from .services import QuestionService, ScoringService
from .ai_engine import InterviewAIEngine

# Event system
from .events import (
    SessionEventBus, EventLogger, SessionMetrics, EventType, SessionEvent,
    QuestionsLoadedEvent, MediaAcquiredEvent, MediaBlockedEvent, QuestionSpokenEvent,
    AnswerCommittedEvent, QuestionAdvancedEvent, ArtifactCapturedEvent, UploadFailedEvent,
    SessionFinishingEvent, SessionCompletedEvent, NoticeEvent, ErrorOccurredEvent
)

# Errors
from .errors import (
    InterviewRoomError, MediaError, PermissionDenied, DeviceUnavailable,
    UnsupportedCapability, UpstreamGenerationFailure, UpstreamScoringFailure,
    RateLimited, PaymentRequired, UploadFailure, AuthRequired, SessionStateError
)

__all__ = [
    # Controller
    "SessionStateMachine", "SessionPhase", "InterviewFlow", "FlowStep",

    # Components
    "MediaController", "SpeechTurnCoordinator", "TurnState", "TurnPhase",
    "CaptureScheduler", "ReconciliationPipeline", "build_storage_path", "sanitize_name",

    # Data models
    "Session", "QAPair", "MediaState", "CaptureEntry", "CapturedArtifact", "ArtifactBuffer",
    "ReconciliationResult", "InterviewPayload",

    # Schemas
    "AnalysisResult", "Credentials", "parse_question_list", "parse_analysis",

    # Services
    "QuestionService", "ScoringService", "InterviewAIEngine",

    # Events
    "SessionEventBus", "EventLogger", "SessionMetrics", "EventType", "SessionEvent",
    "QuestionsLoadedEvent", "MediaAcquiredEvent", "MediaBlockedEvent", "QuestionSpokenEvent",
    "AnswerCommittedEvent", "QuestionAdvancedEvent", "ArtifactCapturedEvent", "UploadFailedEvent",
    "SessionFinishingEvent", "SessionCompletedEvent", "NoticeEvent", "ErrorOccurredEvent",

    # Errors
    "InterviewRoomError", "MediaError", "PermissionDenied", "DeviceUnavailable",
    "UnsupportedCapability", "UpstreamGenerationFailure", "UpstreamScoringFailure",
    "RateLimited", "PaymentRequired", "UploadFailure", "AuthRequired", "SessionStateError",
]
