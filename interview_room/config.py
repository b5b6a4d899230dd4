"""
Interview Room Configuration
============================

This file contains ALL configuration for the interview room.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple, Dict


# =============================================================================
# USER SETTINGS - Edit these to customize the interview room
# =============================================================================

# REQUIRED for the hosted backend: Supabase project
SUPABASE_URL = None  # e.g. "https://<project>.supabase.co"
SUPABASE_KEY = None  # anon/public key

# Which question/scoring backend to use: "function" (hosted interview-ai
# function) or "vertex" (run the prompts locally against Vertex AI)
AI_BACKEND = "function"
GOOGLE_CLOUD_PROJECT = None
GOOGLE_APPLICATION_CREDENTIALS = None

# Interview settings
QUESTION_COUNT = 5
CAPTURE_OFFSETS_SECONDS = (30.0, 90.0, 150.0)
MAX_CAPTURES = 3

# Speech settings
ENABLE_TTS = True
TTS_VOICE = "en-US-Neural2-F"
SPEECH_RATE = 0.9
SPEECH_PITCH = 1.0
LANGUAGE_CODE = "en-US"

# Logging
LOG_FILE = "./_interview/interview.log"
LOG_LEVEL = "INFO"


# =============================================================================
# INTERVIEW CATEGORIES
# =============================================================================

CATEGORIES: Dict[str, str] = {
    "java": "Java",
    "python": "Python",
    "frontend": "Frontend",
    "php": "PHP",
    "react-native": "React Native",
    "database": "Database/SQL",
}


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Media acquisition
VIDEO_WIDTH = 1280
VIDEO_HEIGHT = 720
VIDEO_FACING_MODE = "user"
AUDIO_SAMPLE_RATE = 44100
AUDIO_ECHO_CANCELLATION = True
AUDIO_NOISE_SUPPRESSION = True
CAMERA_DEVICE = 0
JPEG_QUALITY = 80
FALLBACK_FRAME_SIZE = (640, 480)

# Speech recognition
STT_SAMPLE_RATE = 16000
STT_CHUNK_MS = 100

# Durable storage
STORAGE_BUCKET = "interview-recordings"
SIGNED_URL_TTL_SECONDS = 3600

# Interview AI
AI_FUNCTION_NAME = "interview-ai"
VERTEX_LOCATION = "us-central1"
MODEL_NAME = "gemini-2.5-flash"
LLM_TIMEOUT = 60
MAX_OUTPUT_TOKENS = 2048

# Results
SCORE_STRONG_THRESHOLD = 80
SCORE_MODERATE_THRESHOLD = 60


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    ai_backend: str = AI_BACKEND
    google_cloud_project: Optional[str] = None
    google_application_credentials: Optional[str] = None
    question_count: int = QUESTION_COUNT
    capture_offsets: Tuple[float, ...] = CAPTURE_OFFSETS_SECONDS
    max_captures: int = MAX_CAPTURES
    enable_tts: bool = ENABLE_TTS
    tts_voice: str = TTS_VOICE
    speech_rate: float = SPEECH_RATE
    speech_pitch: float = SPEECH_PITCH
    language_code: str = LANGUAGE_CODE
    storage_bucket: str = STORAGE_BUCKET
    signed_url_ttl: int = SIGNED_URL_TTL_SECONDS
    vertex_location: str = VERTEX_LOCATION
    model_name: str = MODEL_NAME
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL
    categories: Dict[str, str] = field(default_factory=lambda: dict(CATEGORIES))

    @property
    def function_url(self) -> str:
        """URL of the hosted interview-ai function."""
        if not self.supabase_url:
            raise ValueError("SUPABASE_URL is required to call the hosted interview-ai function")
        return f"{self.supabase_url.rstrip('/')}/functions/v1/{AI_FUNCTION_NAME}"


def get_config() -> Config:
    """Load configuration."""
    supabase_url = os.getenv("SUPABASE_URL") or SUPABASE_URL
    supabase_key = os.getenv("SUPABASE_KEY") or SUPABASE_KEY
    backend = (os.getenv("INTERVIEW_AI_BACKEND") or AI_BACKEND).strip().lower()
    project = os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT
    credentials = os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS

    if not supabase_url or not supabase_key:
        raise ValueError("Please set SUPABASE_URL and SUPABASE_KEY in config.py or as environment variables")

    if backend not in ("function", "vertex"):
        raise ValueError(f"INTERVIEW_AI_BACKEND must be 'function' or 'vertex', got {backend!r}")

    if backend == "vertex" and not project:
        raise ValueError("Please set GOOGLE_CLOUD_PROJECT to use the vertex backend")

    return Config(
        supabase_url=supabase_url,
        supabase_key=supabase_key,
        ai_backend=backend,
        google_cloud_project=project,
        google_application_credentials=credentials,
        log_file=os.getenv("INTERVIEW_LOG_FILE") or LOG_FILE,
        log_level=(os.getenv("INTERVIEW_LOG_LEVEL") or LOG_LEVEL).upper(),
    )
