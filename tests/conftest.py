"""
Pytest configuration shared by the campaign and API tests.
Loads test environment overrides and resets module-level job state.
"""

from pathlib import Path

import pytest
from dotenv import load_dotenv

# Try to load .env.test first, then fall back to regular .env
env_test_path = Path(__file__).parent / ".env.test"
if env_test_path.exists():
    load_dotenv(env_test_path, override=True)
else:
    load_dotenv(override=False)

from services.campaign.progress_store import progress_store  # noqa: E402


@pytest.fixture(autouse=True)
def clear_progress_store():
    yield
    progress_store.clear()
