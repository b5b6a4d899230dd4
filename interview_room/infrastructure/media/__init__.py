"""Local camera and microphone adapters (OpenCV + sounddevice)."""

from .local import LocalMediaAcquirer, LocalMediaStream, MirroredPreview
from .processing import to_stt_pcm16

__all__ = ["LocalMediaAcquirer", "LocalMediaStream", "MirroredPreview", "to_stt_pcm16"]
