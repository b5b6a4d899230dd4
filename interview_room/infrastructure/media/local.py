"""
Camera and microphone access on the local machine.

OpenCV and sounddevice are imported lazily so the session core (and its
tests) never need camera or audio libraries installed.
"""
import asyncio
import logging
import threading
import time
from typing import Callable, List, Optional

import numpy as np

from ...config import CAMERA_DEVICE, JPEG_QUALITY, FALLBACK_FRAME_SIZE
from ...interview.capabilities import (
    MediaAcquirer, MediaConstraints, MediaStream, MediaTrack, PreviewSink
)
from ...interview.errors import DeviceUnavailable, PermissionDenied
from ...utils import with_suppressed_audio_warnings
from .processing import to_stt_pcm16, silence_pcm16

logger = logging.getLogger("media_local")

AudioListener = Callable[[bytes], None]

READ_RETRY_SECONDS = 0.01


class LocalVideoTrack(MediaTrack):
    """
    Camera track. A reader thread keeps the latest frame so the preview and
    timed captures never block on ``VideoCapture.read()``.
    """
    kind = "video"

    def __init__(self, capture):
        self._capture = capture
        self._enabled = True
        self._live = True
        self._latest: Optional[np.ndarray] = None
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value

    @property
    def ready_state(self) -> str:
        return "live" if self._live else "ended"

    def start(self) -> None:
        self._thread = threading.Thread(target=self._pump, name="camera-reader", daemon=True)
        self._thread.start()

    def _pump(self) -> None:
        while self._live:
            if not self.poll():
                time.sleep(READ_RETRY_SECONDS)

    def poll(self) -> bool:
        """Read one frame from the device into the latest-frame slot."""
        ok, frame = self._capture.read()
        if not ok or frame is None:
            return False
        with self._lock:
            self._latest = frame
        return True

    def read(self) -> Optional[np.ndarray]:
        """Latest raw BGR frame; black while the track is disabled."""
        if not self._live:
            return None
        with self._lock:
            frame = self._latest
        if frame is None:
            return None
        if not self._enabled:
            return np.zeros_like(frame)
        return frame

    def stop(self) -> None:
        if not self._live:
            return
        self._live = False
        if self._thread is not None:
            self._thread.join(timeout=1.0)
        self._capture.release()
        with self._lock:
            self._latest = None
        logger.debug("Camera released")


class LocalAudioTrack(MediaTrack):
    """
    Microphone input. Listeners receive mono 16 kHz PCM16 chunks from the
    audio thread; a disabled track delivers silence.
    """
    kind = "audio"

    def __init__(self, sample_rate: int):
        self.sample_rate = sample_rate
        self._enabled = True
        self._live = True
        self._stream = None
        self._listeners: List[AudioListener] = []

    def attach_stream(self, stream) -> None:
        self._stream = stream

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        self._enabled = value

    @property
    def ready_state(self) -> str:
        return "live" if self._live else "ended"

    def add_listener(self, listener: AudioListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: AudioListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def on_block(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug(f"Audio status: {status}")
        if not self._listeners:
            return
        chunk = to_stt_pcm16(indata, self.sample_rate)
        if not self._enabled:
            chunk = silence_pcm16(len(chunk) // 2)
        for listener in list(self._listeners):
            listener(chunk)

    def stop(self) -> None:
        if not self._live:
            return
        self._live = False
        self._listeners.clear()
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.warning(f"Error closing microphone stream: {e}")
        logger.debug("Microphone released")


class LocalMediaStream(MediaStream):
    def __init__(self, video: LocalVideoTrack, audio: LocalAudioTrack, jpeg_quality: int = JPEG_QUALITY):
        self.video = video
        self.audio = audio
        self.jpeg_quality = jpeg_quality

    def get_tracks(self) -> List[MediaTrack]:
        return [self.video, self.audio]

    def read_frame(self) -> Optional[np.ndarray]:
        return self.video.read()

    def capture_frame(self) -> Optional[bytes]:
        import cv2

        frame = self.read_frame()
        if frame is None:
            width, height = FALLBACK_FRAME_SIZE
            frame = np.zeros((height, width, 3), dtype=np.uint8)
        ok, buffer = cv2.imencode(".jpg", frame, [cv2.IMWRITE_JPEG_QUALITY, self.jpeg_quality])
        if not ok:
            logger.warning("JPEG encoding failed")
            return None
        return buffer.tobytes()


class LocalMediaAcquirer(MediaAcquirer):
    """Opens the default camera with OpenCV and the default microphone with sounddevice."""

    def __init__(self, camera_index: int = CAMERA_DEVICE, input_device: Optional[int] = None):
        self.camera_index = camera_index
        self.input_device = input_device

    async def acquire(self, constraints: MediaConstraints) -> MediaStream:
        return await asyncio.to_thread(self._open, constraints)

    @with_suppressed_audio_warnings
    def _open(self, constraints: MediaConstraints) -> LocalMediaStream:
        import cv2
        import sounddevice as sd

        capture = cv2.VideoCapture(self.camera_index)
        if not capture.isOpened():
            raise DeviceUnavailable(f"Cannot open camera {self.camera_index}")
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.video.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.video.height)

        ok, _ = capture.read()
        if not ok:
            capture.release()
            # Opened but delivering nothing: the OS is blocking the camera
            raise PermissionDenied(f"Camera {self.camera_index} returned no frames")

        video = LocalVideoTrack(capture)
        audio = LocalAudioTrack(constraints.audio.sample_rate)
        try:
            stream = sd.InputStream(
                samplerate=constraints.audio.sample_rate,
                device=self.input_device,
                channels=1,
                dtype="float32",
                callback=audio.on_block,
            )
            stream.start()
        except PermissionError as e:
            video.stop()
            raise PermissionDenied(str(e)) from e
        except sd.PortAudioError as e:
            video.stop()
            raise DeviceUnavailable(f"Cannot open microphone: {e}") from e
        audio.attach_stream(stream)

        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT))
        video.start()
        logger.info(f"Camera {self.camera_index} open at {width}x{height}, microphone at {constraints.audio.sample_rate} Hz")
        return LocalMediaStream(video, audio)


class MirroredPreview(PreviewSink):
    """Selfie-view preview window. Frames are flipped for display only."""

    mirrored = True

    def __init__(self, window_name: str = "Interview Room"):
        self.window_name = window_name
        self._stream: Optional[LocalMediaStream] = None

    def attach(self, stream: MediaStream) -> None:
        self._stream = stream

    def render(self) -> bool:
        """Draw one frame. Returns False once there is nothing to show."""
        import cv2

        if self._stream is None or self._stream.video.ready_state != "live":
            return False
        frame = self._stream.read_frame()
        if frame is None:
            # Reader thread has not delivered a frame yet
            return True
        cv2.imshow(self.window_name, cv2.flip(frame, 1))
        cv2.waitKey(1)
        return True

    def detach(self) -> None:
        import cv2

        self._stream = None
        try:
            cv2.destroyWindow(self.window_name)
        except cv2.error:
            pass
