"""Platform adapters for the interview room.

Concrete implementations of the capability interfaces the session core
depends on: local camera/microphone, Google speech, Supabase storage and
auth, and the interview AI backends. Import the submodules directly; they
pull in their third-party libraries on import.
"""

from .clock import LoopClock

__all__ = ["LoopClock"]
