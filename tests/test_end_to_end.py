import pytest

from interview_room.interview.events import EventType
from interview_room.interview.session import SessionPhase
from interview_room.interview.testing import (
    create_mock_session_setup, start_mock_session, answer_current_question
)


async def run_interview(setup):
    machine = await start_mock_session(setup)
    clock = setup["clock"]

    for i in range(1, 6):
        await answer_current_question(setup, f"answer {i}")
        if i == 1:
            clock.advance(30)
        if i == 3:
            assert machine.capture_photo() is not None
        machine.stop_listening()
        await machine.advance()

    return machine


@pytest.mark.asyncio
async def test_complete_interview_with_photos():
    setup = create_mock_session_setup()
    machine = await run_interview(setup)

    assert machine.phase == SessionPhase.COMPLETE
    payload = machine.payload()
    assert [r.answer.strip() for r in payload.responses] == [f"answer {i}" for i in range(1, 6)]
    assert payload.durable_artifact_url is not None
    assert len(payload.artifact_urls) == 2

    sources = [a.source for a in setup["session"].captured_artifacts]
    assert sources == ["scheduled", "manual"]
    assert len(setup["storage"].objects) == 2

    assert setup["synthesizer"].spoken == list(setup["session"].questions)
    assert not setup["media"].is_live
    assert setup["clock"].pending == []

    completed = setup["recorder"].of_type(EventType.SESSION_COMPLETED)
    assert completed[0].data == {"answered": 5, "question_count": 5, "has_artifact_url": True}


@pytest.mark.asyncio
async def test_complete_interview_signed_out():
    setup = create_mock_session_setup(identity=None)
    machine = await run_interview(setup)

    payload = machine.payload()
    assert payload.durable_artifact_url is None
    assert [r.answer.strip() for r in payload.responses] == [f"answer {i}" for i in range(1, 6)]
    assert setup["storage"].upload_calls == []
    assert "Authentication required to upload recordings" in \
        [n.message for n in setup["recorder"].notices]


@pytest.mark.asyncio
async def test_payload_serializes_for_results(setup):
    machine = await run_interview(setup)

    data = machine.payload().to_dict()

    assert data["candidate_name"] == "Ada Lovelace"
    assert data["category"] == "python"
    assert data["responses"][4] == {"question": setup["session"].questions[4], "answer": "answer 5 "}
