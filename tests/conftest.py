import sys
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from interview_room.interview.testing import create_mock_session_setup  # noqa: E402


@pytest.fixture(autouse=True)
def _test_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SUPABASE_URL", "https://project.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "test-key")
    for name in ("INTERVIEW_AI_BACKEND", "GOOGLE_CLOUD_PROJECT", "GOOGLE_APPLICATION_CREDENTIALS",
                 "INTERVIEW_LOG_FILE", "INTERVIEW_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def setup():
    return create_mock_session_setup()
