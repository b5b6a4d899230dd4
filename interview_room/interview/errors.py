"""
Error taxonomy for the interview session core.
"""
from typing import Optional


class InterviewRoomError(Exception):
    """Base class for all interview room errors."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None, user_message: Optional[str] = None):
        super().__init__(message or user_message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class MediaError(InterviewRoomError):
    """Camera/microphone acquisition failed. Needs a new user gesture to retry."""


class PermissionDenied(MediaError):
    user_message = "Camera and microphone access denied. Please check browser permissions."


class DeviceUnavailable(MediaError):
    user_message = "Please allow camera and microphone access to continue."


class UnsupportedCapability(InterviewRoomError):
    user_message = "Speech recognition is not supported in your browser."


class UpstreamGenerationFailure(InterviewRoomError):
    user_message = "Failed to load questions. Please try again."


class UpstreamScoringFailure(InterviewRoomError):
    user_message = "Failed to analyze interview."


class RateLimited(UpstreamGenerationFailure, UpstreamScoringFailure):
    user_message = "Rate limit exceeded. Please try again later."


class PaymentRequired(UpstreamGenerationFailure, UpstreamScoringFailure):
    user_message = "Payment required. Please add funds."


class UploadFailure(InterviewRoomError):
    user_message = "Failed to save photos."

    def __init__(self, path: str, message: Optional[str] = None):
        super().__init__(message or f"Upload failed for {path}")
        self.path = path


class AuthRequired(InterviewRoomError):
    user_message = "Authentication required to upload recordings"


class SessionStateError(InterviewRoomError):
    """Operation invoked in a phase/turn state that does not allow it."""
