"""
Keeps native camera/audio/gRPC libraries from writing to the terminal.

Importing this module sets the environment switches those libraries read
at load time, so it must be imported before cv2, sounddevice or the Google
clients.
"""
import functools
import os
from contextlib import contextmanager

_QUIET_ENV = {
    "JACK_NO_START_SERVER": "1",
    "GRPC_VERBOSITY": "ERROR",
    "GLOG_minloglevel": "2",
    "OPENCV_LOG_LEVEL": "ERROR",
}

for _name, _value in _QUIET_ENV.items():
    os.environ.setdefault(_name, _value)


@contextmanager
def stderr_silenced():
    """Point file descriptor 2 at /dev/null for the duration of the block."""
    try:
        saved = os.dup(2)
    except OSError:
        # No usable stderr (e.g. detached process); nothing to hide
        yield
        return

    devnull = os.open(os.devnull, os.O_WRONLY)
    os.dup2(devnull, 2)
    os.close(devnull)
    try:
        yield
    finally:
        os.dup2(saved, 2)
        os.close(saved)


def with_suppressed_audio_warnings(func):
    """Run ``func`` with ALSA/JACK/OpenCV stderr chatter hidden."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with stderr_silenced():
            return func(*args, **kwargs)
    return wrapper
