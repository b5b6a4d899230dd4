"""
Testing infrastructure with fake adapters for the interview session.
"""
import asyncio
import heapq
import itertools
from typing import Dict, Any, List, Optional, Callable, Iterable, Tuple

from .capabilities import (
    MediaTrack, MediaStream, MediaAcquirer, MediaConstraints, PreviewSink,
    SpeechSynthesizer, SpeechTranscriber, RecognitionEvent, RecognitionResult, RecognitionHandle,
    Clock, TimerHandle, AuthProvider, Identity, DurableStorage, InterviewAIClient
)
from .events import SessionEventBus, SessionEvent, NoticeEvent
from .media import MediaController
from .models import Session
from .services import QuestionService
from .session import SessionStateMachine
from .speech import SpeechTurnCoordinator


# =============================================================================
# Media
# =============================================================================

class FakeTrack(MediaTrack):
    def __init__(self, kind: str):
        self.kind = kind
        self._enabled = True
        self._ready_state = "live"
        self.stop_calls = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value

    @property
    def ready_state(self) -> str:
        return self._ready_state

    def stop(self) -> None:
        self.stop_calls += 1
        self._ready_state = "ended"


class FakeMediaStream(MediaStream):
    """One video and one audio track; frames are numbered JPEG-ish byte strings."""

    def __init__(self):
        self.video = FakeTrack("video")
        self.audio = FakeTrack("audio")
        self.frames_captured = 0

    def get_tracks(self) -> List[MediaTrack]:
        return [self.video, self.audio]

    def capture_frame(self) -> Optional[bytes]:
        if self.video.ready_state != "live":
            return None
        self.frames_captured += 1
        return b"\xff\xd8frame-%d" % self.frames_captured


class FakeMediaAcquirer(MediaAcquirer):
    """With ``slow=True`` the request yields to the loop once before answering."""

    def __init__(self, error: Optional[Exception] = None, slow: bool = False):
        self.error = error
        self.slow = slow
        self.calls: List[MediaConstraints] = []
        self.streams: List[FakeMediaStream] = []

    async def acquire(self, constraints: MediaConstraints) -> MediaStream:
        self.calls.append(constraints)
        if self.slow:
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        stream = FakeMediaStream()
        self.streams.append(stream)
        return stream


class FakePreview(PreviewSink):
    def __init__(self):
        self.attached: List[MediaStream] = []
        self.detached = 0

    def attach(self, stream: MediaStream) -> None:
        self.attached.append(stream)

    def detach(self) -> None:
        self.detached += 1


# =============================================================================
# Speech
# =============================================================================

class FakeSpeechSynthesizer(SpeechSynthesizer):
    """
    Records what was spoken. With ``hold=True`` playback only ends when
    ``finish()`` is called, so tests can act while speech is in progress.
    """

    def __init__(self, fail: bool = False, hold: bool = False):
        self.fail = fail
        self.hold = hold
        self.spoken: List[str] = []
        self.cancel_calls = 0
        self._done: Optional[asyncio.Event] = None

    async def synthesize(self, text: str, rate: float = 1.0, pitch: float = 1.0,
                         on_start: Optional[Callable[[], None]] = None) -> None:
        self.spoken.append(text)
        if on_start:
            on_start()
        if self.hold:
            self._done = asyncio.Event()
            await self._done.wait()
        else:
            await asyncio.sleep(0)
        if self.fail:
            raise RuntimeError("synthesis failed")

    def finish(self) -> None:
        if self._done is not None:
            self._done.set()

    def cancel(self) -> None:
        self.cancel_calls += 1
        self.finish()


class FakeRecognitionHandle(RecognitionHandle):
    def __init__(self):
        self.stop_calls = 0

    def stop(self) -> None:
        self.stop_calls += 1


class FakeSpeechTranscriber(SpeechTranscriber):
    """
    Recognizer driven by the test.

    Keeps a browser-style result list: ``interim`` replaces the trailing
    unfinalized result, ``final`` finalizes it, and each event's
    ``result_index`` points at the first entry that changed.
    """

    def __init__(self, available: bool = True, auto_start: bool = True):
        self._available = available
        self.auto_start = auto_start
        self.sessions: List[Dict[str, Any]] = []

    @property
    def available(self) -> bool:
        return self._available

    def start(self, language, on_start, on_result, on_error, on_end) -> RecognitionHandle:
        handle = FakeRecognitionHandle()
        self.sessions.append({
            "language": language,
            "on_start": on_start,
            "on_result": on_result,
            "on_error": on_error,
            "on_end": on_end,
            "handle": handle,
            "results": [],
        })
        if self.auto_start:
            on_start()
        return handle

    @property
    def current(self) -> Dict[str, Any]:
        return self.sessions[-1]

    def _emit(self, session: Dict[str, Any], text: str, is_final: bool) -> None:
        results: List[RecognitionResult] = session["results"]
        if results and not results[-1].is_final:
            index = len(results) - 1
            results[index] = RecognitionResult(text, is_final)
        else:
            index = len(results)
            results.append(RecognitionResult(text, is_final))
        session["on_result"](RecognitionEvent(result_index=index, results=tuple(results)))

    def interim(self, text: str, session: Optional[Dict[str, Any]] = None) -> None:
        self._emit(session or self.current, text, False)

    def final(self, text: str, session: Optional[Dict[str, Any]] = None) -> None:
        self._emit(session or self.current, text, True)

    def emit_start(self, session: Optional[Dict[str, Any]] = None) -> None:
        (session or self.current)["on_start"]()

    def emit_error(self, error: str = "network", session: Optional[Dict[str, Any]] = None) -> None:
        (session or self.current)["on_error"](error)

    def emit_end(self, session: Optional[Dict[str, Any]] = None) -> None:
        (session or self.current)["on_end"]()


# =============================================================================
# Time
# =============================================================================

class ManualTimer(TimerHandle):
    def __init__(self, clock: "ManualClock", when: float, callback: Callable[[], None]):
        self.clock = clock
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock(Clock):
    """Logical clock: time only moves when the test calls ``advance``."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._counter = itertools.count()
        self._queue: List[Tuple[float, int, ManualTimer]] = []

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = ManualTimer(self, self._now + max(0.0, delay), callback)
        heapq.heappush(self._queue, (timer.when, next(self._counter), timer))
        return timer

    @property
    def pending(self) -> List[ManualTimer]:
        return [t for _, _, t in sorted(self._queue) if not t.cancelled]

    def due(self) -> List[ManualTimer]:
        """Timers whose time has come but which have not run yet."""
        return [t for t in self.pending if t.when <= self._now]

    def advance(self, seconds: float) -> int:
        """Move time forward, running every timer that becomes due. Returns how many ran."""
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, timer = heapq.heappop(self._queue)
            self._now = max(self._now, when)
            if timer.cancelled:
                continue
            timer.callback()
            fired += 1
        self._now = target
        return fired


# =============================================================================
# Auth, storage, AI
# =============================================================================

class FakeAuth(AuthProvider):
    def __init__(self, identity: Optional[Identity] = None):
        self.identity = identity

    async def current_identity(self) -> Optional[Identity]:
        return self.identity


class FakeStorage(DurableStorage):
    """In-memory bucket. Uploads whose sequence is in ``fail_sequences`` raise."""

    def __init__(self, fail_sequences: Iterable[int] = (), fail_all: bool = False,
                 fail_signing: bool = False):
        self.fail_sequences = set(fail_sequences)
        self.fail_all = fail_all
        self.fail_signing = fail_signing
        self.objects: Dict[str, Tuple[bytes, str]] = {}
        self.upload_calls: List[str] = []
        self.signed: List[Tuple[str, int]] = []

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        self.upload_calls.append(path)
        await asyncio.sleep(0)
        sequence = int(path.rsplit("-", 1)[-1].split(".", 1)[0])
        if self.fail_all or sequence in self.fail_sequences:
            raise RuntimeError(f"storage rejected {path}")
        if path in self.objects:
            raise RuntimeError(f"object already exists: {path}")
        self.objects[path] = (data, content_type)

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        self.signed.append((path, ttl_seconds))
        if self.fail_signing:
            raise RuntimeError("signing failed")
        return f"https://storage.test/signed/{path}?expires_in={ttl_seconds}"


class MockAIClient(InterviewAIClient):
    """Returns canned responses per action; records every request."""

    def __init__(self,
                 questions: Optional[List[str]] = None,
                 analysis: Optional[Dict[str, Any]] = None,
                 error: Optional[Exception] = None):
        self.questions = questions
        self.analysis = analysis
        self.error = error
        self.requests: List[Dict[str, Any]] = []

    def invoke(self, body: Dict[str, Any]) -> Dict[str, Any]:
        self.requests.append(body)
        if self.error is not None:
            raise self.error
        if body.get("action") == "generate_questions":
            return {"result": self.questions}
        if body.get("action") == "analyze_responses":
            return {"result": self.analysis}
        raise ValueError(f"Invalid action: {body.get('action')}")


class MockLLMClient:
    """Mock LLM client for testing."""

    def __init__(self, mock_responses: List[str]):
        self.mock_responses = mock_responses
        self.current_response_idx = 0
        self.request_history = []

    def generate_content(self, prompt_text: str, system_instruction: Optional[str] = None, **kwargs) -> str:
        self.request_history.append({
            "prompt": prompt_text,
            "system_instruction": system_instruction,
            "kwargs": kwargs
        })
        if self.current_response_idx < len(self.mock_responses):
            response = self.mock_responses[self.current_response_idx]
            self.current_response_idx += 1
            return response
        return "not json"


class RecordingHandler:
    """Collects every event emitted on a bus."""

    def __init__(self, bus: SessionEventBus):
        self.events: List[SessionEvent] = []
        bus.subscribe_all(self.events.append)

    def of_type(self, event_type) -> List[SessionEvent]:
        return [e for e in self.events if e.event_type == event_type]

    @property
    def notices(self) -> List[NoticeEvent]:
        return [e for e in self.events if isinstance(e, NoticeEvent)]


SAMPLE_QUESTIONS = [
    "What is the GIL?",
    "Explain list comprehensions.",
    "How do decorators work?",
    "What is asyncio used for?",
    "How would you profile a slow service?",
]

SAMPLE_ANALYSIS = {
    "score": 82,
    "analysis": "Solid fundamentals with clear explanations.",
    "strengths": ["Clear communication"],
    "improvements": ["More depth on concurrency"],
    "recommendation": "hire",
}


async def start_mock_session(setup: Dict[str, Any]) -> SessionStateMachine:
    """Load questions and enable media so the session is in progress."""
    machine = setup["machine"]
    assert await machine.load_questions()
    assert await machine.enable_media(setup["preview"])
    return machine


async def answer_current_question(setup: Dict[str, Any], answer: str) -> None:
    """Speak the current question, then transcribe ``answer`` as a final result."""
    machine = setup["machine"]
    await machine.speak_question()
    assert machine.start_listening()
    setup["transcriber"].final(answer)


def create_mock_session_setup(questions: Optional[List[str]] = None,
                              identity: Optional[Identity] = Identity(id="user-123", email="ada@example.com"),
                              media_error: Optional[Exception] = None,
                              storage: Optional[FakeStorage] = None,
                              ai_client: Optional[InterviewAIClient] = None,
                              candidate_name: str = "Ada Lovelace",
                              category: str = "python",
                              session: Optional[Session] = None) -> Dict[str, Any]:
    """Create a complete fake session setup for testing."""
    ai_client = ai_client or MockAIClient(
        questions=list(SAMPLE_QUESTIONS if questions is None else questions),
        analysis=dict(SAMPLE_ANALYSIS),
    )
    acquirer = FakeMediaAcquirer(error=media_error)
    synthesizer = FakeSpeechSynthesizer()
    transcriber = FakeSpeechTranscriber()
    clock = ManualClock()
    auth = FakeAuth(identity)
    storage = storage or FakeStorage()
    bus = SessionEventBus()
    recorder = RecordingHandler(bus)

    session = session or Session(candidate_name=candidate_name, category=category)
    media = MediaController(acquirer)
    speech = SpeechTurnCoordinator(synthesizer, transcriber)
    machine = SessionStateMachine(
        session=session,
        question_service=QuestionService(ai_client),
        media=media,
        speech=speech,
        clock=clock,
        auth=auth,
        storage=storage,
        event_bus=bus,
    )

    return {
        "session": session,
        "machine": machine,
        "media": media,
        "speech": speech,
        "acquirer": acquirer,
        "synthesizer": synthesizer,
        "transcriber": transcriber,
        "clock": clock,
        "auth": auth,
        "storage": storage,
        "ai_client": ai_client,
        "bus": bus,
        "recorder": recorder,
        "preview": FakePreview(),
    }
