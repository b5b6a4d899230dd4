"""
Audio format conversions for speech recognition.
"""
from math import gcd

import numpy as np
from scipy.signal import resample_poly

from ...config import STT_SAMPLE_RATE


def stereo_to_mono(x: np.ndarray) -> np.ndarray:
    """Convert multi-channel audio to mono by averaging channels."""
    if x.ndim == 1:
        return x
    return np.mean(x, axis=1)


def resample(mono: np.ndarray, sr_in: int, sr_out: int = STT_SAMPLE_RATE) -> np.ndarray:
    """Polyphase resample from ``sr_in`` to ``sr_out``."""
    if sr_in == sr_out:
        return mono.astype(np.float32)
    g = gcd(sr_in, sr_out)
    return resample_poly(mono, up=sr_out // g, down=sr_in // g).astype(np.float32)


def float_to_pcm16(x: np.ndarray) -> np.ndarray:
    return (np.clip(x, -1.0, 1.0) * 32767).astype(np.int16)


def to_stt_pcm16(block: np.ndarray, sr_in: int, sr_out: int = STT_SAMPLE_RATE) -> bytes:
    """Float32 capture block -> mono 16 kHz LINEAR16 bytes."""
    return float_to_pcm16(resample(stereo_to_mono(block), sr_in, sr_out)).tobytes()


def silence_pcm16(n_samples: int) -> bytes:
    return np.zeros(n_samples, dtype=np.int16).tobytes()
