"""
Turn-taking between speaking a question and listening for the answer.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Callable

from ..config import SPEECH_RATE, SPEECH_PITCH, LANGUAGE_CODE
from .capabilities import (
    SpeechSynthesizer, SpeechTranscriber, RecognitionEvent, RecognitionHandle
)
from .errors import UnsupportedCapability
from .models import Session

logger = logging.getLogger("speech")


class TurnPhase(str, Enum):
    IDLE = "idle"
    SPEAKING = "speaking"
    AWAITING_START = "awaiting_start"
    LISTENING = "listening"


@dataclass(frozen=True)
class TurnState:
    """Current turn phase plus whether the question has been spoken at least once."""
    phase: TurnPhase = TurnPhase.IDLE
    has_spoken: bool = False

    @property
    def is_speaking(self) -> bool:
        return self.phase == TurnPhase.SPEAKING

    @property
    def is_listening(self) -> bool:
        return self.phase in (TurnPhase.AWAITING_START, TurnPhase.LISTENING)


class SpeechTurnCoordinator:
    """
    Drives one question's turn: speak it, then transcribe the answer.

    ``stop_listening`` is the only place an answer is written into the
    session's responses.
    """

    def __init__(self,
                 synthesizer: SpeechSynthesizer,
                 transcriber: SpeechTranscriber,
                 language: str = LANGUAGE_CODE,
                 rate: float = SPEECH_RATE,
                 pitch: float = SPEECH_PITCH,
                 on_commit: Optional[Callable[[int, str], None]] = None):
        self.synthesizer = synthesizer
        self.transcriber = transcriber
        self.language = language
        self.rate = rate
        self.pitch = pitch
        self.on_commit = on_commit

        self._session: Optional[Session] = None
        self._state = TurnState()
        self._handle: Optional[RecognitionHandle] = None
        self._finalized = ""
        self._interim = ""
        self._current_answer = ""
        # Bumped on every reset so late callbacks from a previous question are ignored
        self._generation = 0
        # Bumped whenever a recognition session ends; stale recognizer callbacks are dropped
        self._listen_token = 0

    def bind(self, session: Session) -> None:
        self._session = session

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def has_spoken(self) -> bool:
        return self._state.has_spoken

    @property
    def current_answer(self) -> str:
        return self._current_answer

    def _set_phase(self, phase: TurnPhase, has_spoken: Optional[bool] = None) -> None:
        if has_spoken is None:
            has_spoken = self._state.has_spoken
        previous = self._state
        self._state = TurnState(phase=phase, has_spoken=has_spoken)
        if previous != self._state:
            logger.debug(f"Turn {previous.phase.value} -> {phase.value} (has_spoken={has_spoken})")

    # ------------------------------------------------------------------
    # Speaking
    # ------------------------------------------------------------------

    async def speak(self, text: str) -> None:
        """
        Speak ``text`` and return when playback ends.

        Synthesis errors are logged and swallowed: the turn still counts as
        spoken so the candidate can answer even without audio output.
        """
        if self._state.is_speaking:
            logger.debug("Already speaking, ignoring speak request")
            return
        if self._state.is_listening:
            logger.warning("Cannot speak while listening")
            return

        generation = self._generation

        def _on_start():
            if generation == self._generation:
                self._set_phase(TurnPhase.SPEAKING)

        self._set_phase(TurnPhase.SPEAKING)
        try:
            await self.synthesizer.synthesize(text, rate=self.rate, pitch=self.pitch, on_start=_on_start)
        except asyncio.CancelledError:
            if generation == self._generation:
                self._set_phase(TurnPhase.IDLE)
            raise
        except Exception as e:
            logger.error("Speech synthesis failed: %s", e)

        if generation != self._generation:
            logger.debug("Question changed while speaking, dropping completion")
            return
        phase = self._state.phase if self._state.is_listening else TurnPhase.IDLE
        self._set_phase(phase, has_spoken=True)

    # ------------------------------------------------------------------
    # Listening
    # ------------------------------------------------------------------

    def start_listening(self) -> None:
        """
        Begin continuous transcription with interim results.

        Raises:
            UnsupportedCapability: the platform has no speech recognition
        """
        if not self.transcriber.available:
            logger.error("Speech recognition is not available")
            raise UnsupportedCapability()
        if self._state.is_listening:
            logger.debug("Already listening")
            return
        if self._state.is_speaking:
            logger.warning("Cannot listen while speaking")
            return

        self._drop_recognition()
        self._finalized = ""
        self._interim = ""
        token = self._listen_token

        def is_current() -> bool:
            return token == self._listen_token

        def on_start():
            if is_current():
                self._set_phase(TurnPhase.LISTENING)

        def on_result(event: RecognitionEvent):
            if is_current():
                self._apply_result(event)

        def on_error(error: str):
            logger.error("Speech recognition error: %s", error)
            if is_current():
                self._set_phase(TurnPhase.IDLE)

        def on_end():
            if is_current():
                self._set_phase(TurnPhase.IDLE)

        self._set_phase(TurnPhase.AWAITING_START)
        try:
            handle = self.transcriber.start(self.language, on_start, on_result, on_error, on_end)
        except Exception:
            self._listen_token += 1
            self._set_phase(TurnPhase.IDLE)
            raise
        if not is_current():
            # Stopped from a callback while start() was running
            handle.stop()
            return
        self._handle = handle
        logger.info("Listening for answer")

    def _apply_result(self, event: RecognitionEvent) -> None:
        interim = ""
        for result in event.results[event.result_index:]:
            if result.is_final:
                self._finalized += result.transcript + " "
            else:
                interim += result.transcript
        self._interim = interim
        self._current_answer = self._finalized + self._interim

    def stop_listening(self) -> str:
        """
        Stop recognition (if running) and commit the current answer.

        Calling it again without a new ``start_listening`` writes the same
        value again.
        """
        self._drop_recognition()

        if self._state.is_listening:
            self._set_phase(TurnPhase.IDLE)

        answer = self._current_answer
        self._commit(answer)
        return answer

    def _commit(self, answer: str) -> None:
        session = self._session
        if session is None or not session.responses:
            return
        index = session.current_index
        slot = session.responses[index]
        slot.answer = answer
        logger.info(f"Answer committed for question {index + 1}: {len(answer)} chars")
        if self.on_commit:
            self.on_commit(index, answer)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Prepare for the next question: drop the transcript and the spoken flag."""
        self._generation += 1
        self._drop_recognition()
        if self._state.is_speaking:
            self._cancel_output()
        self._finalized = ""
        self._interim = ""
        self._current_answer = ""
        self._set_phase(TurnPhase.IDLE, has_spoken=False)

    def shutdown(self) -> None:
        """Stop speech output and recognition without committing anything."""
        self._generation += 1
        self._drop_recognition()
        self._cancel_output()
        self._set_phase(TurnPhase.IDLE)

    def _cancel_output(self) -> None:
        try:
            self.synthesizer.cancel()
        except Exception as e:
            logger.warning(f"Error cancelling speech output: {e}")

    def _drop_recognition(self) -> None:
        self._listen_token += 1
        if self._handle is not None:
            handle, self._handle = self._handle, None
            try:
                handle.stop()
            except Exception as e:
                logger.warning(f"Error stopping recognition: {e}")
