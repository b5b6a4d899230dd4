"""
Camera/microphone lifecycle for the interview session.
"""
import logging
from typing import Optional

from .capabilities import MediaAcquirer, MediaConstraints, MediaStream, PreviewSink
from .errors import MediaError, DeviceUnavailable
from .models import MediaState

logger = logging.getLogger("media")


class MediaController:
    """
    Owns the hardware stream: acquisition, enable/disable toggling and teardown.

    No other component touches the tracks directly.
    """

    def __init__(self, acquirer: MediaAcquirer, constraints: Optional[MediaConstraints] = None):
        self.acquirer = acquirer
        self.constraints = constraints or MediaConstraints()
        self._stream: Optional[MediaStream] = None
        self._released = False
        self.state = MediaState()

    @property
    def stream(self) -> Optional[MediaStream]:
        return self._stream

    @property
    def is_live(self) -> bool:
        """True while we hold a stream that has not been released."""
        if self._stream is None or self._released:
            return False
        return any(t.ready_state == "live" for t in self._stream.get_tracks())

    async def acquire(self, preview: Optional[PreviewSink] = None) -> MediaStream:
        """
        Request camera and microphone and wire the stream into the preview.

        Must be the first thing awaited by the user-gesture handler that
        triggers it: the request goes out immediately and, on success, the
        preview is attached before anything else runs.

        Raises:
            PermissionDenied: access refused
            DeviceUnavailable: no usable device (any other acquisition failure)
        """
        if self.is_live:
            logger.debug("Media already live, reusing stream")
            return self._stream

        try:
            stream = await self.acquirer.acquire(self.constraints)
        except MediaError as e:
            logger.error("Error accessing media devices: %s", e)
            raise
        except Exception as e:
            logger.error("Error accessing media devices: %s", e)
            raise DeviceUnavailable(str(e)) from e

        if self.is_live:
            # Another request finished first; keep its stream and stop this one
            logger.warning("Media already acquired by an earlier request, stopping duplicate stream")
            _stop_tracks(stream)
            return self._stream

        self._stream = stream
        self._released = False

        if preview is not None:
            preview.attach(stream)

        self.state.video_enabled = True
        self.state.mic_enabled = True
        for track in stream.get_tracks():
            track.enabled = True

        logger.info(
            "Media acquired: %d video track(s), %d audio track(s)",
            len(stream.get_video_tracks()), len(stream.get_audio_tracks())
        )
        return stream

    def toggle_video(self) -> bool:
        """Flip the video tracks' enabled flag. No-op once the stream is gone."""
        if not self.is_live:
            logger.debug("toggle_video ignored: stream not live")
            return self.state.video_enabled

        enabled = not self.state.video_enabled
        for track in self._stream.get_video_tracks():
            track.enabled = enabled
        self.state.video_enabled = enabled
        logger.info(f"Video {'enabled' if enabled else 'disabled'}")
        return enabled

    def toggle_mic(self) -> bool:
        """Flip the audio tracks' enabled flag. No-op once the stream is gone."""
        if not self.is_live:
            logger.debug("toggle_mic ignored: stream not live")
            return self.state.mic_enabled

        enabled = not self.state.mic_enabled
        for track in self._stream.get_audio_tracks():
            track.enabled = enabled
        self.state.mic_enabled = enabled
        logger.info(f"Microphone {'enabled' if enabled else 'disabled'}")
        return enabled

    def capture_frame(self) -> Optional[bytes]:
        """Current raw (unmirrored) frame as JPEG, or None if the stream is not live."""
        if not self.is_live:
            return None
        try:
            return self._stream.capture_frame()
        except Exception as e:
            logger.warning("Frame capture failed: %s", e)
            return None

    def release(self) -> None:
        """Stop every track. Safe to call any number of times."""
        if self._stream is None or self._released:
            return

        _stop_tracks(self._stream)
        self._released = True
        logger.info("Media stream released")


def _stop_tracks(stream: MediaStream) -> None:
    for track in stream.get_tracks():
        try:
            track.stop()
        except Exception as e:
            logger.warning(f"Error stopping {track.kind} track: {e}")
