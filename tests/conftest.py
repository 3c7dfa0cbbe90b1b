import sys
from pathlib import Path

import pytest

# Ensure `email_finder` package is importable when running pytest from the project root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from email_finder.core import config  # noqa: E402


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    for name in (
        "STORAGE_BACKEND", "DATABASE_URL", "DEFAULT_API_KEY", "BATCH_PACING_SECONDS", "BATCH_WORKERS",
        "GETPROSPECT_BASE_URL", "LOOKUP_TIMEOUT_SECONDS", "PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(config, "load_dotenv", lambda: None)
    config.get_settings.cache_clear()
    yield
    config.get_settings.cache_clear()
