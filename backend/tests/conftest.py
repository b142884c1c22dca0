from pathlib import Path
import os
import pytest

# The engine is bound at import time, so point it at a throwaway file first.
TEST_DB = Path(__file__).resolve().parents[1] / "test_study.db"
if TEST_DB.exists():
    TEST_DB.unlink()
os.environ.setdefault("DB_URL", f"sqlite:///{TEST_DB}")


@pytest.fixture(scope="session", autouse=True)
def reset_db():
    """Remove the SQLite test database once the session is over."""
    yield
    from study_tracker.database import engine
    engine.dispose()
    if TEST_DB.exists():
        TEST_DB.unlink()
