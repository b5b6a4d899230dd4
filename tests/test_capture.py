import random

import pytest

from interview_room.interview.capture import CaptureScheduler
from interview_room.interview.media import MediaController
from interview_room.interview.models import ArtifactBuffer
from interview_room.interview.testing import FakeMediaAcquirer, ManualClock


async def _live_scheduler(cap=3, offsets=(30.0, 90.0, 150.0)):
    media = MediaController(FakeMediaAcquirer())
    await media.acquire()
    clock = ManualClock(start=1000.0)
    artifacts = ArtifactBuffer(cap=cap)
    captured = []
    scheduler = CaptureScheduler(
        clock=clock,
        artifacts=artifacts,
        capture_frame=media.capture_frame,
        is_live=lambda: media.is_live,
        offsets=offsets,
        on_captured=captured.append,
    )
    return scheduler, clock, artifacts, media, captured


@pytest.mark.asyncio
async def test_scheduled_captures_fire_at_offsets():
    scheduler, clock, artifacts, _, captured = await _live_scheduler()
    scheduler.start()

    assert [t.when for t in clock.pending] == [1030.0, 1090.0, 1150.0]

    clock.advance(29)
    assert len(artifacts) == 0

    clock.advance(1)
    assert len(artifacts) == 1
    assert captured[0].captured_at == pytest.approx(30.0)
    assert captured[0].source == "scheduled"

    clock.advance(120)
    assert [a.sequence for a in artifacts] == [1, 2, 3]
    assert all(entry.fired for entry in scheduler.schedule)


@pytest.mark.asyncio
async def test_timers_armed_relative_to_base_time():
    scheduler, clock, _, _, _ = await _live_scheduler()
    scheduler.start(base_time=990.0)

    assert [t.when for t in clock.pending] == [1020.0, 1080.0, 1140.0]


@pytest.mark.asyncio
async def test_each_entry_fires_at_most_once():
    scheduler, clock, artifacts, _, _ = await _live_scheduler()
    scheduler.start()

    scheduler.on_fire(0)
    scheduler.on_fire(0)
    clock.advance(30)

    assert len(artifacts) == 1


@pytest.mark.asyncio
async def test_manual_and_scheduled_share_the_cap():
    scheduler, clock, artifacts, _, _ = await _live_scheduler()
    scheduler.start()

    assert scheduler.capture() is not None
    assert scheduler.capture() is not None
    clock.advance(200)

    assert len(artifacts) == 3
    assert [a.source for a in artifacts] == ["manual", "manual", "scheduled"]
    assert scheduler.capture() is None


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(25))
async def test_random_interleaving_never_exceeds_cap(seed):
    rng = random.Random(seed)
    scheduler, clock, artifacts, _, _ = await _live_scheduler()
    scheduler.start()

    manual = rng.randint(0, 8)
    operations = [("fire", i) for i in range(3)] + [("manual", None)] * manual
    rng.shuffle(operations)

    for kind, index in operations:
        if kind == "fire":
            scheduler.on_fire(index)
        else:
            scheduler.capture()
        assert len(artifacts) <= 3

    clock.advance(300)
    assert len(artifacts) == 3
    assert [a.sequence for a in artifacts] == list(range(1, len(artifacts) + 1))


@pytest.mark.asyncio
async def test_cancel_all_stops_pending_timers():
    scheduler, clock, artifacts, _, _ = await _live_scheduler()
    scheduler.start()
    clock.advance(30)

    scheduler.cancel_all()
    clock.advance(300)

    assert len(artifacts) == 1
    assert clock.pending == []
    assert scheduler.capture() is None


@pytest.mark.asyncio
async def test_timer_racing_teardown_appends_nothing():
    scheduler, clock, artifacts, media, _ = await _live_scheduler()
    scheduler.start()

    # Timer is due, but teardown runs before its callback gets a turn
    due = clock.pending[0]
    scheduler.cancel_all()
    media.release()
    artifacts.seal()
    due.callback()

    assert len(artifacts) == 0


@pytest.mark.asyncio
async def test_fire_without_live_stream_is_ignored():
    scheduler, clock, artifacts, media, _ = await _live_scheduler()
    scheduler.start()
    media.release()

    clock.advance(300)

    assert len(artifacts) == 0


def test_sealed_buffer_rejects_appends():
    artifacts = ArtifactBuffer(cap=3)
    assert artifacts.append(b"a", 1.0) is not None

    artifacts.seal()

    assert artifacts.append(b"b", 2.0) is None
    assert len(artifacts) == 1
    assert artifacts.sealed


def test_buffer_cap_is_enforced_at_append():
    artifacts = ArtifactBuffer(cap=2)
    results = [artifacts.append(b"x", float(i), source="manual") for i in range(5)]

    assert [r is not None for r in results] == [True, True, False, False, False]
    assert artifacts.is_full
