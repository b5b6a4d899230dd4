"""
Top-level controller for one interview attempt.
"""
import asyncio
import logging
import time
from enum import Enum
from typing import Optional, Sequence

from ..config import CAPTURE_OFFSETS_SECONDS, SIGNED_URL_TTL_SECONDS
from .capabilities import AuthProvider, Clock, DurableStorage, PreviewSink
from .capture import CaptureScheduler
from .errors import MediaError, PermissionDenied, SessionStateError, UnsupportedCapability, UpstreamGenerationFailure
from .events import (
    SessionEventBus, EventLogger, SessionMetrics,
    QuestionsLoadedEvent, MediaAcquiredEvent, MediaBlockedEvent, QuestionSpokenEvent,
    AnswerCommittedEvent, QuestionAdvancedEvent, ArtifactCapturedEvent,
    SessionFinishingEvent, SessionCompletedEvent, NoticeEvent, ErrorOccurredEvent
)
from .media import MediaController
from .models import CapturedArtifact, InterviewPayload, QAPair, ReconciliationResult, Session
from .reconciliation import ReconciliationPipeline
from .services import QuestionService
from .speech import SpeechTurnCoordinator, TurnState

logger = logging.getLogger("session")


class SessionPhase(str, Enum):
    LOADING = "loading"
    AWAITING_MEDIA = "awaiting_media"
    IN_PROGRESS = "in_progress"
    FINISHING = "finishing"
    COMPLETE = "complete"


class SessionStateMachine:
    """
    Drives a session from question loading to the completed payload.

    Loading -> AwaitingMedia -> InProgress -> Finishing -> Complete.
    Every error path leaves the machine in a state it can move on from.
    """

    def __init__(self,
                 session: Session,
                 question_service: QuestionService,
                 media: MediaController,
                 speech: SpeechTurnCoordinator,
                 clock: Clock,
                 auth: AuthProvider,
                 storage: DurableStorage,
                 event_bus: Optional[SessionEventBus] = None,
                 capture_offsets: Sequence[float] = CAPTURE_OFFSETS_SECONDS,
                 signed_url_ttl: int = SIGNED_URL_TTL_SECONDS):
        self.session = session
        self.question_service = question_service
        self.media = media
        self.speech = speech
        self.clock = clock

        # Initialize event system
        if event_bus is None:
            event_bus = SessionEventBus()
            event_bus.subscribe_all(EventLogger().handle_event)
        self.event_bus = event_bus
        self.metrics = SessionMetrics()
        self.event_bus.subscribe_all(self.metrics.handle_event)

        self.session.media_state = self.media.state
        self.speech.bind(session)

        self.scheduler = CaptureScheduler(
            clock=clock,
            artifacts=session.captured_artifacts,
            capture_frame=self.media.capture_frame,
            is_live=lambda: self.media.is_live,
            offsets=capture_offsets,
            on_captured=self._on_captured,
        )
        self.pipeline = ReconciliationPipeline(
            media=self.media,
            scheduler=self.scheduler,
            auth=auth,
            storage=storage,
            signed_url_ttl=signed_url_ttl,
            event_bus=self.event_bus,
        )

        self._phase = SessionPhase.LOADING
        self._result: Optional[ReconciliationResult] = None
        self._closed = False
        self._enabling: Optional[asyncio.Future] = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def turn_state(self) -> TurnState:
        return self.speech.state

    @property
    def result(self) -> Optional[ReconciliationResult]:
        return self._result

    @property
    def is_complete(self) -> bool:
        return self._phase == SessionPhase.COMPLETE

    def payload(self) -> Optional[InterviewPayload]:
        """The final result for the scoring step, once the session is complete."""
        if self._phase != SessionPhase.COMPLETE:
            return None
        result = self._result or ReconciliationResult()
        return InterviewPayload(
            candidate_name=self.session.candidate_name,
            category=self.session.category,
            questions=list(self.session.questions),
            responses=[QAPair(r.question, r.answer) for r in self.session.responses],
            durable_artifact_url=result.durable_artifact_url,
            artifact_urls=list(result.artifact_urls),
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_questions(self) -> bool:
        """
        Fetch the question set. On failure stays in Loading so it can be retried.

        Returns:
            True once the questions are loaded
        """
        self._require(SessionPhase.LOADING, "load questions")

        try:
            questions, used_fallback = await self.question_service.generate(self.session.category)
        except UpstreamGenerationFailure as e:
            logger.error("Error loading questions: %s", e)
            self._error(e, "question_service")
            self._notify("error", e.user_message)
            return False

        if self._closed or self._phase != SessionPhase.LOADING:
            logger.debug("Session shut down or left Loading while questions were in flight")
            return False

        self.session.load_questions(questions)
        self._phase = SessionPhase.AWAITING_MEDIA
        self._emit(QuestionsLoadedEvent(
            self.session.session_id, time.time(), self.session.category,
            len(questions), used_fallback
        ))
        if used_fallback:
            self._notify("error", UpstreamGenerationFailure.user_message)
        logger.info(f"Session {self.session.session_id}: {len(questions)} question(s) loaded")
        return True

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    async def enable_media(self, preview: Optional[PreviewSink] = None) -> bool:
        """
        Acquire camera and microphone (call directly from the user's action).

        On success the session starts and the capture timers are armed. On
        failure the session stays in AwaitingMedia and a notice is raised.
        A second call while a request is in flight waits for that request.
        """
        if self._phase == SessionPhase.IN_PROGRESS and self.media.is_live:
            return True
        if self._enabling is not None:
            logger.debug("Media request already in flight, waiting for it")
            return await asyncio.shield(self._enabling)
        self._require(SessionPhase.AWAITING_MEDIA, "enable media")

        enabling = asyncio.get_running_loop().create_future()
        self._enabling = enabling
        started = False
        try:
            started = await self._start_media(preview)
        finally:
            self._enabling = None
            enabling.set_result(started)
        return started

    async def _start_media(self, preview: Optional[PreviewSink]) -> bool:
        try:
            stream = await self.media.acquire(preview)
        except MediaError as e:
            reason = "permission_denied" if isinstance(e, PermissionDenied) else "device_unavailable"
            self._emit(MediaBlockedEvent(self.session.session_id, time.time(), reason, e.user_message))
            self._notify("error", e.user_message)
            return False

        if self._closed:
            logger.warning("Session closed while media was being acquired, releasing")
            self.media.release()
            return False

        self.session.started_at = self.clock.now()
        self._phase = SessionPhase.IN_PROGRESS
        self.scheduler.start(base_time=self.session.started_at)
        self._emit(MediaAcquiredEvent(
            self.session.session_id, time.time(),
            len(stream.get_video_tracks()), len(stream.get_audio_tracks())
        ))
        return True

    def toggle_video(self) -> bool:
        return self.media.toggle_video()

    def toggle_mic(self) -> bool:
        return self.media.toggle_mic()

    # ------------------------------------------------------------------
    # Turn taking
    # ------------------------------------------------------------------

    async def speak_question(self) -> None:
        """Read the current question aloud."""
        self._require(SessionPhase.IN_PROGRESS, "speak")
        index = self.session.current_index
        await self.speech.speak(self.session.current_question)
        if self._phase == SessionPhase.IN_PROGRESS and index == self.session.current_index:
            self._emit(QuestionSpokenEvent(self.session.session_id, time.time(), index))

    def start_listening(self) -> bool:
        """
        Start transcribing the answer to the current question.

        Raises:
            SessionStateError: the question has not been spoken yet, or is
                being spoken right now
        """
        self._require(SessionPhase.IN_PROGRESS, "listen")
        if not self.speech.has_spoken:
            raise SessionStateError("The question must be spoken before listening")
        if self.turn_state.is_speaking:
            raise SessionStateError("Cannot listen while the question is being spoken")

        try:
            self.speech.start_listening()
        except UnsupportedCapability as e:
            self._error(e, "speech")
            self._notify("error", e.user_message)
            return False
        except Exception as e:
            logger.error("Could not start speech recognition: %s", e)
            self._error(e, "speech")
            self._notify("error", "Could not start speech recognition. Please try again.")
            return False
        return True

    def stop_listening(self) -> str:
        """Stop transcribing and commit the answer for the current question."""
        self._require(SessionPhase.IN_PROGRESS, "stop listening")
        return self._commit_answer()

    def _commit_answer(self) -> str:
        answer = self.speech.stop_listening()
        self._emit(AnswerCommittedEvent(
            self.session.session_id, time.time(), self.session.current_index, answer
        ))
        return answer

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def capture_photo(self) -> Optional[CapturedArtifact]:
        """Manual snapshot. Shares the cap with the scheduled captures."""
        if self._phase != SessionPhase.IN_PROGRESS:
            logger.debug(f"Manual capture ignored in phase {self._phase.value}")
            return None
        if self.session.captured_artifacts.is_full:
            self._notify("info", f"Photo limit reached ({self.session.captured_artifacts.cap})")
            return None
        return self.scheduler.capture(source="manual")

    def _on_captured(self, artifact: CapturedArtifact) -> None:
        self._emit(ArtifactCapturedEvent(
            self.session.session_id, time.time(), artifact.sequence,
            artifact.source, self.session.captured_artifacts.cap
        ))

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    async def advance(self) -> None:
        """
        Commit the current answer and move on; past the last question, finish.

        Does nothing once the session is finishing or complete.
        """
        if self._phase in (SessionPhase.FINISHING, SessionPhase.COMPLETE):
            logger.debug("advance() ignored: session already finishing")
            return
        self._require(SessionPhase.IN_PROGRESS, "advance")

        self._commit_answer()
        self.speech.reset()

        if self.session.is_last_question:
            await self._finish()
            return

        self.session.current_index += 1
        self._emit(QuestionAdvancedEvent(
            self.session.session_id, time.time(),
            self.session.current_index, len(self.session.questions)
        ))
        logger.info(f"Question {self.session.current_index + 1}/{len(self.session.questions)}")

    async def _finish(self) -> None:
        self._phase = SessionPhase.FINISHING
        self._emit(SessionFinishingEvent(
            self.session.session_id, time.time(), len(self.session.captured_artifacts)
        ))

        try:
            self._result = await self.pipeline.run(self.session)
        except Exception as e:
            logger.error("Reconciliation failed: %s", e)
            self._error(e, "reconciliation")
            self._teardown_resources()
            self._result = ReconciliationResult()

        self._phase = SessionPhase.COMPLETE
        answered = sum(1 for r in self.session.responses if r.answer.strip())
        self._emit(SessionCompletedEvent(
            self.session.session_id, time.time(), answered,
            len(self.session.questions), self._result.durable_artifact_url
        ))
        logger.info(f"Session {self.session.session_id} complete: {answered}/{len(self.session.questions)} answered")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def shutdown(self) -> None:
        """Abandon the session: nothing is committed or uploaded. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self.speech.shutdown()
        self._teardown_resources()
        logger.info(f"Session {self.session.session_id} shut down in phase {self._phase.value}")

    def _teardown_resources(self) -> None:
        self.scheduler.cancel_all()
        self.media.release()
        self.session.captured_artifacts.seal()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require(self, phase: SessionPhase, action: str) -> None:
        if self._closed:
            raise SessionStateError(f"Cannot {action}: session was shut down")
        if self._phase != phase:
            raise SessionStateError(f"Cannot {action} in phase {self._phase.value}")

    def _emit(self, event) -> None:
        self.event_bus.emit(event)

    def _notify(self, level: str, message: str) -> None:
        self._emit(NoticeEvent(self.session.session_id, time.time(), level, message))

    def _error(self, error: Exception, component: str) -> None:
        self._emit(ErrorOccurredEvent(
            self.session.session_id, time.time(), type(error).__name__, str(error), component
        ))
