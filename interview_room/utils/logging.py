"""
Logging setup for the console runner.

Everything goes to a log file; the terminal belongs to the interview, so
the console handler only lets CRITICAL through.
"""
import os
import logging

FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

# Chatty at DEBUG: HTTP clients used by requests, supabase and the Google SDKs
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "hpack", "google.auth")


def setup_logging(log_file_path: str, level: str = "DEBUG") -> str:
    """
    Route logging to ``log_file_path`` (appending across runs).

    Args:
        log_file_path: Log file; missing parent directories are created
        level: File handler level name, e.g. "INFO"

    Returns:
        Path to the log file
    """
    directory = os.path.dirname(log_file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    file_handler = logging.FileHandler(log_file_path, mode="a", encoding="utf-8")
    file_handler.setLevel(getattr(logging, level.upper(), logging.DEBUG))
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    console = logging.StreamHandler()
    console.setLevel(logging.CRITICAL)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(logging.DEBUG)
    root.addHandler(file_handler)
    root.addHandler(console)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("interview_room").info(f"Logging to {log_file_path} at {level.upper()}")
    return log_file_path
