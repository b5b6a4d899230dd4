"""
Interview Room: AI-generated technical interviews with spoken questions,
transcribed answers and periodic snapshot photos.
"""

__version__ = "1.0.0"

# Main entry points
from .interview.session import SessionStateMachine, SessionPhase
from .interview.flow import InterviewFlow
from .interview.models import Session, InterviewPayload

__all__ = ["SessionStateMachine", "SessionPhase", "InterviewFlow", "Session", "InterviewPayload"]
