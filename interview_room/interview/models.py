"""
Data models for the interview session.
"""
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional, Dict, List, Iterator, Any, Tuple

from ..config import MAX_CAPTURES

logger = logging.getLogger("models")


@dataclass
class QAPair:
    """One question and the candidate's committed answer."""
    question: str
    answer: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"question": self.question, "answer": self.answer}


@dataclass
class MediaState:
    """Enabled flags of the live tracks (not whether the hardware is live)."""
    video_enabled: bool = False
    mic_enabled: bool = False


@dataclass
class CaptureEntry:
    """A scheduled snapshot at a fixed offset from session start."""
    offset_seconds: float
    fired: bool = False


@dataclass
class CapturedArtifact:
    """A snapshot photo waiting to be persisted."""
    data: bytes
    sequence: int
    captured_at: float
    source: str = "scheduled"
    content_type: str = "image/jpeg"


class ArtifactBuffer:
    """
    Bounded, append-only buffer of captured artifacts.

    ``append`` is the single point where the cap is enforced: scheduled and
    manual captures both go through it. Once sealed (session finishing) it
    accepts nothing more.
    """

    def __init__(self, cap: int = MAX_CAPTURES):
        self.cap = cap
        self._items: List[CapturedArtifact] = []
        self._sealed = False

    def append(self, data: bytes, captured_at: float, source: str = "scheduled",
               content_type: str = "image/jpeg") -> Optional[CapturedArtifact]:
        if self._sealed:
            logger.debug("Artifact buffer sealed, dropping %s capture", source)
            return None
        if len(self._items) >= self.cap:
            logger.debug("Artifact cap (%d) reached, dropping %s capture", self.cap, source)
            return None

        artifact = CapturedArtifact(
            data=data,
            sequence=len(self._items) + 1,
            captured_at=captured_at,
            source=source,
            content_type=content_type,
        )
        self._items.append(artifact)
        return artifact

    def seal(self) -> None:
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def is_full(self) -> bool:
        return len(self._items) >= self.cap

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[CapturedArtifact]:
        return iter(list(self._items))

    def __bool__(self) -> bool:
        return bool(self._items)


@dataclass
class Session:
    """Root aggregate for one interview attempt."""
    candidate_name: str
    category: str
    session_id: str = field(default_factory=lambda: f"session_{uuid.uuid4().hex[:12]}")
    questions: Tuple[str, ...] = ()
    current_index: int = 0
    responses: List[QAPair] = field(default_factory=list)
    captured_artifacts: ArtifactBuffer = field(default_factory=ArtifactBuffer)
    media_state: MediaState = field(default_factory=MediaState)
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None

    @property
    def questions_loaded(self) -> bool:
        return bool(self.questions)

    def load_questions(self, questions: List[str]) -> None:
        """Set the question list once and create one empty answer slot per question."""
        if self.questions:
            raise ValueError("Questions are already loaded for this session")
        if not questions:
            raise ValueError("Cannot start a session without questions")
        self.questions = tuple(questions)
        self.responses = [QAPair(question=q) for q in self.questions]

    @property
    def current_question(self) -> Optional[str]:
        if not self.questions:
            return None
        return self.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.current_index >= len(self.questions) - 1

    @property
    def progress(self) -> float:
        """Percent of questions reached, counting the current one."""
        if not self.questions:
            return 0.0
        return (self.current_index + 1) / len(self.questions) * 100


@dataclass
class ReconciliationResult:
    """Outcome of persisting the captured artifacts."""
    durable_artifact_url: Optional[str] = None
    artifact_urls: List[str] = field(default_factory=list)
    stored_paths: List[str] = field(default_factory=list)
    failed_paths: List[str] = field(default_factory=list)
    auth_required: bool = False


@dataclass
class InterviewPayload:
    """What the completed session hands over to the scoring/results step."""
    candidate_name: str
    category: str
    questions: List[str]
    responses: List[QAPair]
    durable_artifact_url: Optional[str] = None
    artifact_urls: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate_name": self.candidate_name,
            "category": self.category,
            "questions": list(self.questions),
            "responses": [r.to_dict() for r in self.responses],
            "durable_artifact_url": self.durable_artifact_url,
            "artifact_urls": list(self.artifact_urls),
        }
