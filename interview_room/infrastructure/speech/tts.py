"""
Text-to-speech using Google Cloud TTS.
"""
import asyncio
import logging
import math
import os
import subprocess
import tempfile
from typing import Callable, Optional

from ...config import TTS_VOICE, LANGUAGE_CODE
from ...interview.capabilities import SpeechSynthesizer
from ...utils import with_suppressed_audio_warnings

logger = logging.getLogger("speech_tts")

_PLAYERS = (["afplay"], ["aplay", "-q"])


def pitch_to_semitones(pitch: float) -> float:
    """Map a playback pitch multiplier (1.0 = natural) to Google's semitone offset."""
    if pitch <= 0:
        return 0.0
    return max(-20.0, min(20.0, 12 * math.log2(pitch)))


class GoogleSpeechSynthesizer(SpeechSynthesizer):
    """Synthesizes with Google Cloud TTS and plays the WAV with afplay/aplay."""

    def __init__(self, voice: str = TTS_VOICE, language: str = LANGUAGE_CODE):
        self.voice = voice
        self.language = language
        self._client = None
        self._process: Optional[subprocess.Popen] = None
        self._cancelled = False

    def _get_client(self):
        if self._client is None:
            from google.cloud import texttospeech
            self._client = texttospeech.TextToSpeechClient()
        return self._client

    async def synthesize(self, text: str, rate: float = 1.0, pitch: float = 1.0,
                         on_start: Optional[Callable[[], None]] = None) -> None:
        if not text.strip():
            return
        self._cancelled = False
        audio = await asyncio.to_thread(self._synthesize, text, rate, pitch)
        if self._cancelled:
            return
        if on_start:
            on_start()
        await asyncio.to_thread(self._play, audio)

    def _synthesize(self, text: str, rate: float, pitch: float) -> bytes:
        from google.cloud import texttospeech

        response = self._get_client().synthesize_speech(
            input=texttospeech.SynthesisInput(text=text),
            voice=texttospeech.VoiceSelectionParams(language_code=self.language, name=self.voice),
            audio_config=texttospeech.AudioConfig(
                audio_encoding=texttospeech.AudioEncoding.LINEAR16,
                sample_rate_hertz=16000,
                speaking_rate=rate,
                pitch=pitch_to_semitones(pitch),
            ),
        )
        return response.audio_content

    @with_suppressed_audio_warnings
    def _play(self, audio: bytes) -> None:
        with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as tmp_file:
            wav_path = tmp_file.name
            tmp_file.write(audio)

        try:
            for player in _PLAYERS:
                try:
                    self._process = subprocess.Popen(
                        player + [wav_path], stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL
                    )
                except FileNotFoundError:
                    continue
                code = self._process.wait()
                # Negative exit codes mean we terminated it via cancel()
                if code > 0:
                    raise RuntimeError(f"{player[0]} exited with code {code}")
                return
            raise RuntimeError("No audio player found (tried afplay, aplay)")
        finally:
            self._process = None
            try:
                os.unlink(wav_path)
            except OSError:
                pass

    def cancel(self) -> None:
        self._cancelled = True
        process = self._process
        if process is not None and process.poll() is None:
            process.terminate()
            logger.debug("Speech playback cancelled")


class ConsoleSpeechSynthesizer(SpeechSynthesizer):
    """Text mode: prints the utterance instead of speaking it."""

    def __init__(self, prefix: str = "🤖"):
        self.prefix = prefix

    async def synthesize(self, text: str, rate: float = 1.0, pitch: float = 1.0,
                         on_start: Optional[Callable[[], None]] = None) -> None:
        if on_start:
            on_start()
        print(f"{self.prefix} {text}")
