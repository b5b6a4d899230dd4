import asyncio

import pytest

from interview_room.interview.errors import DeviceUnavailable, PermissionDenied
from interview_room.interview.media import MediaController
from interview_room.interview.testing import FakeMediaAcquirer, FakePreview


@pytest.mark.asyncio
async def test_acquire_enables_tracks_and_attaches_preview():
    acquirer = FakeMediaAcquirer()
    media = MediaController(acquirer)
    preview = FakePreview()

    stream = await media.acquire(preview)

    assert media.is_live
    assert preview.attached == [stream]
    assert media.state.video_enabled is True
    assert media.state.mic_enabled is True
    assert all(t.enabled for t in stream.get_tracks())
    assert acquirer.calls[0].video.width == 1280
    assert acquirer.calls[0].audio.echo_cancellation is True


@pytest.mark.asyncio
async def test_acquire_reuses_live_stream():
    acquirer = FakeMediaAcquirer()
    media = MediaController(acquirer)

    first = await media.acquire()
    second = await media.acquire()

    assert first is second
    assert len(acquirer.calls) == 1


@pytest.mark.asyncio
async def test_overlapping_acquire_keeps_first_stream_and_stops_duplicate():
    acquirer = FakeMediaAcquirer(slow=True)
    media = MediaController(acquirer)

    first, second = await asyncio.gather(media.acquire(), media.acquire())

    kept, duplicate = acquirer.streams
    assert first is second is kept
    assert media.stream is kept
    assert [t.ready_state for t in duplicate.get_tracks()] == ["ended", "ended"]

    media.release()
    assert [t.ready_state for t in kept.get_tracks()] == ["ended", "ended"]


@pytest.mark.asyncio
async def test_permission_denied_leaves_controller_untouched():
    media = MediaController(FakeMediaAcquirer(error=PermissionDenied("denied")))
    preview = FakePreview()

    with pytest.raises(PermissionDenied):
        await media.acquire(preview)

    assert not media.is_live
    assert media.stream is None
    assert preview.attached == []
    assert media.state.video_enabled is False


@pytest.mark.asyncio
async def test_unexpected_acquisition_error_is_device_unavailable():
    media = MediaController(FakeMediaAcquirer(error=OSError("no camera")))

    with pytest.raises(DeviceUnavailable) as exc_info:
        await media.acquire()

    assert exc_info.value.user_message == "Please allow camera and microphone access to continue."


@pytest.mark.asyncio
async def test_toggles_flip_enabled_flags_only():
    media = MediaController(FakeMediaAcquirer())
    stream = await media.acquire()

    assert media.toggle_video() is False
    assert stream.video.enabled is False
    assert stream.audio.enabled is True
    assert stream.video.ready_state == "live"

    assert media.toggle_mic() is False
    assert stream.audio.enabled is False

    assert media.toggle_video() is True
    assert stream.video.enabled is True


@pytest.mark.asyncio
async def test_release_is_idempotent_and_disables_toggling():
    media = MediaController(FakeMediaAcquirer())
    stream = await media.acquire()

    media.release()
    media.release()

    assert not media.is_live
    assert stream.video.stop_calls == 1
    assert stream.audio.stop_calls == 1
    assert media.toggle_video() is True
    assert media.toggle_mic() is True
    assert stream.video.enabled is True
    assert media.capture_frame() is None


def test_toggle_before_acquire_is_noop():
    media = MediaController(FakeMediaAcquirer())
    assert media.toggle_video() is False
    assert media.toggle_mic() is False
    media.release()
