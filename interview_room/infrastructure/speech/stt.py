"""
Streaming speech-to-text using Google Cloud Speech.
"""
import asyncio
import logging
import queue
import threading
from typing import Callable, List, Optional

from ...config import STT_SAMPLE_RATE
from ...interview.capabilities import (
    SpeechTranscriber, RecognitionHandle, RecognitionEvent, RecognitionResult
)

logger = logging.getLogger("speech_stt")

_STOP = None


class StreamingRecognition(RecognitionHandle):
    """One recognition session: a worker thread feeding microphone chunks to Google."""

    def __init__(self, audio_track, loop: asyncio.AbstractEventLoop,
                 language: str, sample_rate: int,
                 on_start, on_result, on_error, on_end):
        self.audio_track = audio_track
        self.loop = loop
        self.language = language
        self.sample_rate = sample_rate
        self.on_start = on_start
        self.on_result = on_result
        self.on_error = on_error
        self.on_end = on_end

        self._chunks: "queue.Queue[Optional[bytes]]" = queue.Queue()
        self._stopped = threading.Event()
        self._finals: List[str] = []
        self._thread = threading.Thread(target=self._run, name="stt-stream", daemon=True)

    def start(self) -> None:
        self.audio_track.add_listener(self._chunks.put)
        self._thread.start()

    def stop(self) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        self.audio_track.remove_listener(self._chunks.put)
        self._chunks.put(_STOP)

    def _post(self, callback, *args) -> None:
        try:
            self.loop.call_soon_threadsafe(callback, *args)
        except RuntimeError:
            # Loop already closed
            pass

    def _requests(self):
        from google.cloud import speech

        while not self._stopped.is_set():
            chunk = self._chunks.get()
            if chunk is _STOP:
                return
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    def _to_event(self, response) -> Optional[RecognitionEvent]:
        first_new = len(self._finals)
        interim = ""
        for result in response.results:
            if not result.alternatives:
                continue
            transcript = result.alternatives[0].transcript
            if result.is_final:
                self._finals.append(transcript.strip())
            else:
                interim += transcript
        results = [RecognitionResult(t, True) for t in self._finals]
        if interim:
            results.append(RecognitionResult(interim, False))
        if len(results) == first_new:
            return None
        return RecognitionEvent(result_index=first_new, results=tuple(results))

    def _run(self) -> None:
        from google.cloud import speech

        client = speech.SpeechClient()
        streaming_config = speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=self.sample_rate,
                language_code=self.language,
                enable_automatic_punctuation=True,
            ),
            interim_results=True,
        )

        self._post(self.on_start)
        try:
            for response in client.streaming_recognize(config=streaming_config, requests=self._requests()):
                event = self._to_event(response)
                if event is not None:
                    self._post(self.on_result, event)
        except Exception as e:
            if not self._stopped.is_set():
                logger.error("Streaming recognition failed: %s", e)
                self._post(self.on_error, str(e))
        finally:
            self._post(self.on_end)


class GoogleStreamingTranscriber(SpeechTranscriber):
    """
    Continuous recognition with interim results over the live microphone track.

    ``audio_track`` returns the current stream's audio track (or None before
    media is acquired). Callbacks are delivered on the event loop thread.
    """

    def __init__(self, audio_track: Callable[[], Optional[object]], sample_rate: int = STT_SAMPLE_RATE):
        self.audio_track = audio_track
        self.sample_rate = sample_rate

    @property
    def available(self) -> bool:
        try:
            from google.cloud import speech  # noqa: F401
        except ImportError:
            return False
        return True

    def start(self, language, on_start, on_result, on_error, on_end) -> RecognitionHandle:
        track = self.audio_track()
        if track is None or track.ready_state != "live":
            raise RuntimeError("No live microphone to transcribe")
        recognition = StreamingRecognition(
            track, asyncio.get_running_loop(), language, self.sample_rate,
            on_start, on_result, on_error, on_end
        )
        recognition.start()
        logger.info(f"Streaming recognition started ({language})")
        return recognition
