import os
import sys
import tempfile
from pathlib import Path

import pytest

# Settings are instantiated at import time, so the required values must be
# present before any st_spotify module is imported.
os.environ.setdefault("SPOTIFY_CLIENT_ID", "spotify-client-id")
os.environ.setdefault("SPOTIFY_CLIENT_SECRET", "spotify-client-secret")
os.environ.setdefault("SPOTIFY_REDIRECT_URL", "http://localhost:3000/callback")
os.environ.setdefault("ST_LOG_DIR", tempfile.mkdtemp(prefix="st_spotify_logs_"))
os.environ.setdefault("ST_LOG_TO_CONSOLE", "false")

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from tests.helpers import FakeClientFactory, FrozenClock  # noqa: E402


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def fake_factory() -> FakeClientFactory:
    return FakeClientFactory()
