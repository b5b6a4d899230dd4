import asyncio

import pytest

from interview_room.interview.errors import PermissionDenied, RateLimited, SessionStateError
from interview_room.interview.events import EventType
from interview_room.interview.models import Session
from interview_room.interview.services import QuestionService
from interview_room.interview.session import SessionPhase
from interview_room.interview.speech import TurnPhase, TurnState
from interview_room.interview.testing import (
    MockAIClient, FakeSpeechTranscriber, create_mock_session_setup,
    start_mock_session, answer_current_question, SAMPLE_QUESTIONS
)


@pytest.mark.asyncio
async def test_load_questions_creates_one_slot_per_question(setup):
    machine = setup["machine"]

    assert machine.phase == SessionPhase.LOADING
    assert await machine.load_questions()

    session = setup["session"]
    assert machine.phase == SessionPhase.AWAITING_MEDIA
    assert list(session.questions) == SAMPLE_QUESTIONS
    assert len(session.responses) == len(session.questions)
    assert all(r.answer == "" for r in session.responses)
    assert setup["ai_client"].requests == [{"action": "generate_questions", "category": "python"}]

    loaded = setup["recorder"].of_type(EventType.QUESTIONS_LOADED)
    assert loaded[0].data["used_fallback"] is False


@pytest.mark.asyncio
async def test_question_list_is_truncated_to_five():
    setup = create_mock_session_setup(questions=[f"Q{i}?" for i in range(8)])

    await setup["machine"].load_questions()

    assert list(setup["session"].questions) == ["Q0?", "Q1?", "Q2?", "Q3?", "Q4?"]


@pytest.mark.asyncio
async def test_generation_failure_falls_back_to_templates():
    setup = create_mock_session_setup(ai_client=MockAIClient(error=RuntimeError("boom")))

    assert await setup["machine"].load_questions()

    session = setup["session"]
    assert session.questions[0] == "What are the core concepts of python?"
    assert len(session.responses) == 5
    assert [n.message for n in setup["recorder"].notices] == ["Failed to load questions. Please try again."]


@pytest.mark.asyncio
async def test_strict_generation_failure_stays_loading_and_retries():
    client = MockAIClient(questions=["Only one?"], error=RateLimited("429"))
    setup = create_mock_session_setup(ai_client=client)
    machine = setup["machine"]
    machine.question_service = QuestionService(client, fallback_on_error=False)

    assert await machine.load_questions() is False
    assert machine.phase == SessionPhase.LOADING
    assert setup["recorder"].notices[-1].message == "Rate limit exceeded. Please try again later."

    client.error = None
    assert await machine.load_questions() is True
    assert list(setup["session"].questions) == ["Only one?"]
    assert len(setup["session"].responses) == 1


@pytest.mark.asyncio
async def test_denied_media_keeps_session_awaiting_media():
    setup = create_mock_session_setup(media_error=PermissionDenied("NotAllowedError"))
    machine = setup["machine"]
    await machine.load_questions()

    assert await machine.enable_media(setup["preview"]) is False

    assert machine.phase == SessionPhase.AWAITING_MEDIA
    assert setup["clock"].pending == []
    blocked = setup["recorder"].of_type(EventType.MEDIA_BLOCKED)
    assert blocked[0].data["reason"] == "permission_denied"
    assert setup["recorder"].notices[-1].message == \
        "Camera and microphone access denied. Please check browser permissions."

    setup["acquirer"].error = None
    assert await machine.enable_media(setup["preview"]) is True
    assert machine.phase == SessionPhase.IN_PROGRESS


@pytest.mark.asyncio
async def test_enable_media_starts_session_and_arms_captures(setup):
    setup["clock"].advance(12)
    machine = await start_mock_session(setup)

    assert machine.phase == SessionPhase.IN_PROGRESS
    assert setup["session"].started_at == 12
    assert [t.when for t in setup["clock"].pending] == [42, 102, 162]
    assert setup["session"].media_state is setup["media"].state
    assert setup["preview"].attached


@pytest.mark.asyncio
async def test_enable_media_before_questions_is_rejected(setup):
    with pytest.raises(SessionStateError):
        await setup["machine"].enable_media()


@pytest.mark.asyncio
async def test_overlapping_enable_media_shares_one_stream(setup):
    setup["acquirer"].slow = True
    machine = setup["machine"]
    await machine.load_questions()

    results = await asyncio.gather(machine.enable_media(), machine.enable_media())

    assert results == [True, True]
    assert machine.phase == SessionPhase.IN_PROGRESS
    assert setup["media"].is_live
    assert len(setup["acquirer"].streams) == 1
    assert setup["media"].stream is setup["acquirer"].streams[0]
    assert len(setup["recorder"].of_type(EventType.MEDIA_ACQUIRED)) == 1
    assert len(setup["clock"].pending) == 3


@pytest.mark.asyncio
async def test_shutdown_while_loading_keeps_session_closed():
    setup = create_mock_session_setup()
    machine = setup["machine"]

    loading = asyncio.create_task(machine.load_questions())
    await asyncio.sleep(0)
    machine.shutdown()

    assert await loading is False
    assert machine.phase == SessionPhase.LOADING
    assert setup["session"].questions == ()
    assert setup["recorder"].of_type(EventType.QUESTIONS_LOADED) == []


@pytest.mark.asyncio
async def test_listening_requires_spoken_question(setup):
    machine = await start_mock_session(setup)

    with pytest.raises(SessionStateError):
        machine.start_listening()

    await machine.speak_question()
    assert machine.start_listening() is True
    assert machine.turn_state.phase == TurnPhase.LISTENING
    spoken = setup["recorder"].of_type(EventType.QUESTION_SPOKEN)
    assert spoken[0].data["question_index"] == 0


@pytest.mark.asyncio
async def test_listening_is_rejected_while_question_replays(setup):
    machine = await start_mock_session(setup)
    synthesizer = setup["synthesizer"]
    await machine.speak_question()

    synthesizer.hold = True
    replay = asyncio.create_task(machine.speak_question())
    await asyncio.sleep(0)
    assert machine.turn_state.phase == TurnPhase.SPEAKING

    with pytest.raises(SessionStateError):
        machine.start_listening()
    assert setup["transcriber"].sessions == []

    synthesizer.finish()
    await replay
    assert machine.turn_state == TurnState(TurnPhase.IDLE, has_spoken=True)
    assert machine.start_listening() is True
    assert machine.turn_state.phase == TurnPhase.LISTENING


@pytest.mark.asyncio
async def test_advance_while_speaking_stops_playback(setup):
    machine = await start_mock_session(setup)
    synthesizer = setup["synthesizer"]
    synthesizer.hold = True

    speaking = asyncio.create_task(machine.speak_question())
    await asyncio.sleep(0)
    await machine.advance()
    await speaking

    assert synthesizer.cancel_calls == 1
    assert setup["session"].current_index == 1
    assert machine.turn_state == TurnState(TurnPhase.IDLE, has_spoken=False)
    assert setup["recorder"].of_type(EventType.QUESTION_SPOKEN) == []


@pytest.mark.asyncio
async def test_missing_speech_recognition_raises_notice_not_error():
    setup = create_mock_session_setup()
    setup["speech"].transcriber = FakeSpeechTranscriber(available=False)
    machine = await start_mock_session(setup)
    await machine.speak_question()

    assert machine.start_listening() is False

    assert machine.phase == SessionPhase.IN_PROGRESS
    assert setup["recorder"].notices[-1].message == "Speech recognition is not supported in your browser."


@pytest.mark.asyncio
async def test_advance_commits_answer_and_resets_turn(setup):
    machine = await start_mock_session(setup)
    await answer_current_question(setup, "the interpreter lock")

    await machine.advance()

    session = setup["session"]
    assert session.responses[0].answer == "the interpreter lock "
    assert session.current_index == 1
    assert machine.turn_state.has_spoken is False
    assert machine.turn_state.phase == TurnPhase.IDLE
    assert setup["speech"].current_answer == ""
    assert setup["transcriber"].sessions[0]["handle"].stop_calls == 1


@pytest.mark.asyncio
async def test_stop_listening_twice_keeps_same_answer(setup):
    machine = await start_mock_session(setup)
    await answer_current_question(setup, "first answer")

    first = machine.stop_listening()
    second = machine.stop_listening()

    assert first == second
    assert setup["session"].responses[0].answer == "first answer "


@pytest.mark.asyncio
async def test_advancing_past_last_question_completes_once(setup):
    machine = await start_mock_session(setup)

    for _ in range(5):
        await machine.advance()

    assert machine.phase == SessionPhase.COMPLETE
    assert setup["session"].current_index == 4

    await machine.advance()
    await machine.advance()

    recorder = setup["recorder"]
    assert len(recorder.of_type(EventType.SESSION_FINISHING)) == 1
    assert len(recorder.of_type(EventType.SESSION_COMPLETED)) == 1
    assert len(recorder.of_type(EventType.QUESTION_ADVANCED)) == 4


@pytest.mark.asyncio
async def test_concurrent_advance_on_last_question_finishes_once(setup):
    machine = await start_mock_session(setup)
    for _ in range(4):
        await machine.advance()

    await asyncio.gather(machine.advance(), machine.advance())

    assert machine.is_complete
    assert len(setup["recorder"].of_type(EventType.SESSION_COMPLETED)) == 1


@pytest.mark.asyncio
async def test_finishing_cancels_timers_and_releases_media(setup):
    machine = await start_mock_session(setup)
    stream = setup["acquirer"].streams[0]

    for _ in range(5):
        await machine.advance()
    setup["clock"].advance(500)

    assert setup["clock"].pending == []
    assert len(setup["session"].captured_artifacts) == 0
    assert stream.video.ready_state == "ended"
    assert machine.toggle_video() is True
    assert machine.capture_photo() is None


@pytest.mark.asyncio
async def test_reconciliation_failure_still_completes(setup, monkeypatch):
    machine = await start_mock_session(setup)

    async def _explode(session):
        raise RuntimeError("pipeline crashed")

    monkeypatch.setattr(machine.pipeline, "run", _explode)
    for _ in range(5):
        await machine.advance()

    assert machine.is_complete
    assert machine.payload().durable_artifact_url is None
    assert not setup["media"].is_live
    assert setup["recorder"].of_type(EventType.ERROR_OCCURRED)[0].data["component"] == "reconciliation"


@pytest.mark.asyncio
async def test_manual_capture_shares_cap(setup):
    machine = await start_mock_session(setup)

    assert machine.capture_photo() is not None
    setup["clock"].advance(90)
    assert len(setup["session"].captured_artifacts) == 3

    assert machine.capture_photo() is None
    assert setup["recorder"].notices[-1].message == "Photo limit reached (3)"
    assert len(setup["recorder"].of_type(EventType.ARTIFACT_CAPTURED)) == 3


@pytest.mark.asyncio
async def test_shutdown_tears_everything_down(setup):
    machine = await start_mock_session(setup)
    await machine.speak_question()
    machine.start_listening()
    setup["transcriber"].final("not committed")

    machine.shutdown()
    machine.shutdown()

    assert setup["clock"].pending == []
    assert not setup["media"].is_live
    assert setup["synthesizer"].cancel_calls == 1
    assert setup["session"].responses[0].answer == ""
    with pytest.raises(SessionStateError):
        await machine.advance()

    setup["clock"].advance(500)
    assert len(setup["session"].captured_artifacts) == 0


@pytest.mark.asyncio
async def test_payload_only_available_when_complete(setup):
    machine = await start_mock_session(setup)
    assert machine.payload() is None

    for _ in range(5):
        await machine.advance()

    payload = machine.payload()
    assert payload.candidate_name == "Ada Lovelace"
    assert payload.questions == SAMPLE_QUESTIONS
    assert [r.question for r in payload.responses] == SAMPLE_QUESTIONS


@pytest.mark.asyncio
async def test_session_metrics_count_events(setup):
    machine = await start_mock_session(setup)
    machine.capture_photo()
    for _ in range(5):
        await machine.advance()

    metrics = machine.metrics.get_metrics()
    assert metrics["sessions_started"] == 1
    assert metrics["sessions_completed"] == 1
    assert metrics["artifacts_captured"] == 1
    assert metrics["answers_committed"] == 5


def test_session_questions_are_set_once():
    session = Session(candidate_name="Ada", category="python")
    session.load_questions(["Q1?"])

    with pytest.raises(ValueError):
        session.load_questions(["Q2?"])
    with pytest.raises(ValueError):
        Session(candidate_name="Ada", category="python").load_questions([])
