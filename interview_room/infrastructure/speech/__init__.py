"""Speech adapters: Google Cloud TTS / STT and a console fallback."""

from .tts import GoogleSpeechSynthesizer, ConsoleSpeechSynthesizer
from .stt import GoogleStreamingTranscriber

__all__ = ["GoogleSpeechSynthesizer", "ConsoleSpeechSynthesizer", "GoogleStreamingTranscriber"]
