"""
Application flow: welcome -> category -> interview -> results.
"""
import logging
import time
from enum import Enum
from typing import Callable, Dict, Optional

from ..config import CATEGORIES, MAX_CAPTURES
from .errors import SessionStateError, UpstreamScoringFailure
from .events import NoticeEvent
from .models import ArtifactBuffer, InterviewPayload, Session
from .schemas import AnalysisResult
from .services import ScoringService
from .session import SessionStateMachine

logger = logging.getLogger("flow")

SessionFactory = Callable[[Session], SessionStateMachine]


class FlowStep(str, Enum):
    WELCOME = "welcome"
    CATEGORY = "category"
    INTERVIEW = "interview"
    RESULTS = "results"


class InterviewFlow:
    """Page-level step machine around a single interview session."""

    def __init__(self,
                 session_factory: SessionFactory,
                 scoring_service: Optional[ScoringService] = None,
                 categories: Optional[Dict[str, str]] = None,
                 max_captures: int = MAX_CAPTURES):
        self.session_factory = session_factory
        self.scoring_service = scoring_service
        self.categories = dict(categories or CATEGORIES)
        self.max_captures = max_captures
        self._reset()

    def _reset(self) -> None:
        self.step = FlowStep.WELCOME
        self.candidate_name = ""
        self.category: Optional[str] = None
        self.machine: Optional[SessionStateMachine] = None
        self.payload: Optional[InterviewPayload] = None
        self.analysis: Optional[AnalysisResult] = None

    @property
    def category_name(self) -> Optional[str]:
        if self.category is None:
            return None
        return self.categories[self.category]

    def submit_name(self, name: str) -> None:
        self._require(FlowStep.WELCOME)
        name = (name or "").strip()
        if not name:
            raise ValueError("Please enter your name")
        self.candidate_name = name
        self.step = FlowStep.CATEGORY

    def back(self) -> None:
        if self.step == FlowStep.CATEGORY:
            self.category = None
            self.step = FlowStep.WELCOME

    def select_category(self, category_id: str) -> None:
        self._require(FlowStep.CATEGORY)
        if category_id not in self.categories:
            raise ValueError(f"Unknown category: {category_id}")
        self.category = category_id

    def start_interview(self) -> SessionStateMachine:
        self._require(FlowStep.CATEGORY)
        if self.category is None:
            raise SessionStateError("Select a category before starting the interview")

        session = Session(
            candidate_name=self.candidate_name,
            category=self.category,
            captured_artifacts=ArtifactBuffer(self.max_captures),
        )
        self.machine = self.session_factory(session)
        self.step = FlowStep.INTERVIEW
        logger.info(f"Starting {self.category} interview for session {session.session_id}")
        return self.machine

    def complete(self, payload: Optional[InterviewPayload] = None) -> InterviewPayload:
        """Move to results with the finished session's payload."""
        self._require(FlowStep.INTERVIEW)
        if payload is None:
            payload = self.machine.payload() if self.machine else None
        if payload is None:
            raise SessionStateError("The interview has not finished yet")
        self.payload = payload
        self.step = FlowStep.RESULTS
        return payload

    async def score(self) -> AnalysisResult:
        """Analyze the finished interview. Falls back to the neutral result on failure."""
        self._require(FlowStep.RESULTS)
        if self.analysis is not None:
            return self.analysis
        if self.scoring_service is None:
            raise SessionStateError("No scoring service configured")

        self.analysis = await self.scoring_service.analyze(
            self.payload.category, self.payload.candidate_name, self.payload.responses
        )
        if self.scoring_service.last_error is not None and self.machine is not None:
            self.machine.event_bus.emit(NoticeEvent(
                self.machine.session.session_id, time.time(), "error", UpstreamScoringFailure.user_message
            ))
        return self.analysis

    def restart(self) -> None:
        """Tear down any live session and go back to the welcome step."""
        if self.machine is not None:
            self.machine.shutdown()
        logger.info("Interview flow restarted")
        self._reset()

    def _require(self, step: FlowStep) -> None:
        if self.step != step:
            raise SessionStateError(f"Not allowed in step {self.step.value}")
