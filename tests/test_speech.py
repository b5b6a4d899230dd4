import asyncio

import pytest

from interview_room.interview.errors import UnsupportedCapability
from interview_room.interview.models import Session
from interview_room.interview.speech import SpeechTurnCoordinator, TurnPhase, TurnState
from interview_room.interview.testing import FakeSpeechSynthesizer, FakeSpeechTranscriber


def _coordinator(synthesizer=None, transcriber=None, commits=None):
    session = Session(candidate_name="Ada", category="python")
    session.load_questions(["Q1?", "Q2?"])
    coordinator = SpeechTurnCoordinator(
        synthesizer or FakeSpeechSynthesizer(),
        transcriber or FakeSpeechTranscriber(),
        on_commit=(lambda i, a: commits.append((i, a))) if commits is not None else None,
    )
    coordinator.bind(session)
    return coordinator, session


@pytest.mark.asyncio
async def test_speak_marks_speaking_then_spoken():
    synthesizer = FakeSpeechSynthesizer(hold=True)
    coordinator, _ = _coordinator(synthesizer)

    task = asyncio.create_task(coordinator.speak("Q1?"))
    await asyncio.sleep(0)
    assert coordinator.state.phase == TurnPhase.SPEAKING
    assert coordinator.has_spoken is False

    synthesizer.finish()
    await task

    assert coordinator.state.phase == TurnPhase.IDLE
    assert coordinator.has_spoken is True
    assert synthesizer.spoken == ["Q1?"]
    assert coordinator.rate == 0.9


@pytest.mark.asyncio
async def test_synthesis_error_is_swallowed_and_counts_as_spoken():
    coordinator, _ = _coordinator(FakeSpeechSynthesizer(fail=True))

    await coordinator.speak("Q1?")

    assert coordinator.state.phase == TurnPhase.IDLE
    assert coordinator.has_spoken is True


@pytest.mark.asyncio
async def test_reset_during_speech_drops_late_completion():
    synthesizer = FakeSpeechSynthesizer(hold=True)
    coordinator, _ = _coordinator(synthesizer)

    task = asyncio.create_task(coordinator.speak("Q1?"))
    await asyncio.sleep(0)
    coordinator.reset()
    synthesizer.finish()
    await task

    assert coordinator.has_spoken is False
    assert coordinator.state.phase == TurnPhase.IDLE


@pytest.mark.asyncio
async def test_shutdown_cancels_speech_output():
    synthesizer = FakeSpeechSynthesizer(hold=True)
    coordinator, _ = _coordinator(synthesizer)

    task = asyncio.create_task(coordinator.speak("Q1?"))
    await asyncio.sleep(0)
    coordinator.shutdown()
    await task

    assert synthesizer.cancel_calls == 1
    assert coordinator.has_spoken is False


def test_answer_is_finalized_plus_interim_tail():
    transcriber = FakeSpeechTranscriber()
    coordinator, _ = _coordinator(transcriber=transcriber)

    coordinator.start_listening()
    assert coordinator.state.phase == TurnPhase.LISTENING

    transcriber.final("hello world")
    assert coordinator.current_answer == "hello world "

    transcriber.interim("how are")
    assert coordinator.current_answer == "hello world how are"

    transcriber.interim("how are you")
    assert coordinator.current_answer == "hello world how are you"

    transcriber.final("how are you")
    assert coordinator.current_answer == "hello world how are you "


def test_stop_listening_commits_and_is_idempotent():
    transcriber = FakeSpeechTranscriber()
    commits = []
    coordinator, session = _coordinator(transcriber=transcriber, commits=commits)

    coordinator.start_listening()
    transcriber.final("answer one")
    handle = transcriber.current["handle"]

    first = coordinator.stop_listening()
    second = coordinator.stop_listening()

    assert first == second == "answer one "
    assert session.responses[0].answer == "answer one "
    assert session.responses[1].answer == ""
    assert handle.stop_calls == 1
    assert coordinator.state.phase == TurnPhase.IDLE
    assert commits == [(0, "answer one "), (0, "answer one ")]


def test_results_after_stop_are_ignored():
    transcriber = FakeSpeechTranscriber()
    coordinator, session = _coordinator(transcriber=transcriber)

    coordinator.start_listening()
    transcriber.final("kept")
    stale = transcriber.current
    coordinator.stop_listening()

    transcriber.final("late words", session=stale)
    transcriber.emit_start(session=stale)

    assert coordinator.current_answer == "kept "
    assert coordinator.state.phase == TurnPhase.IDLE
    assert coordinator.stop_listening() == "kept "
    assert session.responses[0].answer == "kept "


def test_awaiting_start_until_recognizer_reports_start():
    transcriber = FakeSpeechTranscriber(auto_start=False)
    coordinator, _ = _coordinator(transcriber=transcriber)

    coordinator.start_listening()
    assert coordinator.state.phase == TurnPhase.AWAITING_START
    assert coordinator.state.is_listening

    transcriber.emit_start()
    assert coordinator.state.phase == TurnPhase.LISTENING


def test_recognizer_error_and_end_return_to_idle():
    transcriber = FakeSpeechTranscriber()
    coordinator, _ = _coordinator(transcriber=transcriber)

    coordinator.start_listening()
    transcriber.emit_error("no-speech")
    assert coordinator.state.phase == TurnPhase.IDLE

    coordinator.start_listening()
    transcriber.emit_end()
    assert coordinator.state.phase == TurnPhase.IDLE


def test_unavailable_recognition_raises():
    coordinator, _ = _coordinator(transcriber=FakeSpeechTranscriber(available=False))

    with pytest.raises(UnsupportedCapability) as exc_info:
        coordinator.start_listening()

    assert exc_info.value.user_message == "Speech recognition is not supported in your browser."
    assert coordinator.state.phase == TurnPhase.IDLE


@pytest.mark.asyncio
async def test_reset_clears_answer_and_spoken_flag():
    transcriber = FakeSpeechTranscriber()
    coordinator, _ = _coordinator(transcriber=transcriber)

    await coordinator.speak("Q1?")
    coordinator.start_listening()
    transcriber.interim("partial")
    coordinator.reset()

    assert coordinator.current_answer == ""
    assert coordinator.has_spoken is False
    assert coordinator.state.phase == TurnPhase.IDLE
    assert transcriber.current["handle"].stop_calls == 1


@pytest.mark.asyncio
async def test_speak_ignored_while_listening():
    synthesizer = FakeSpeechSynthesizer()
    coordinator, _ = _coordinator(synthesizer)

    coordinator.start_listening()
    await coordinator.speak("Q1?")

    assert synthesizer.spoken == []
    assert coordinator.state.phase == TurnPhase.LISTENING


@pytest.mark.asyncio
async def test_listen_request_ignored_while_speaking():
    synthesizer = FakeSpeechSynthesizer(hold=True)
    transcriber = FakeSpeechTranscriber()
    coordinator, _ = _coordinator(synthesizer, transcriber)

    task = asyncio.create_task(coordinator.speak("Q1?"))
    await asyncio.sleep(0)
    coordinator.start_listening()

    assert transcriber.sessions == []
    assert coordinator.state.phase == TurnPhase.SPEAKING

    synthesizer.finish()
    await task
    assert coordinator.state == TurnState(TurnPhase.IDLE, has_spoken=True)


@pytest.mark.asyncio
async def test_reset_during_speech_cancels_playback():
    synthesizer = FakeSpeechSynthesizer(hold=True)
    coordinator, _ = _coordinator(synthesizer)

    task = asyncio.create_task(coordinator.speak("Q1?"))
    await asyncio.sleep(0)
    coordinator.reset()
    await task

    assert synthesizer.cancel_calls == 1
    assert coordinator.state == TurnState(TurnPhase.IDLE, has_spoken=False)

    coordinator.reset()
    assert synthesizer.cancel_calls == 1
