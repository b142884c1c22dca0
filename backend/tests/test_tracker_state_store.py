from datetime import date
import uuid
from sqlmodel import Session
from study_tracker import models, repositories
from study_tracker.database import create_db_and_tables, engine
from study_tracker.utils.activity import StudyActivity, build_state

TODAY = date(2024, 6, 12)


def _state():
    return build_state([StudyActivity("Physics", TODAY, duration_minutes=90)], today=TODAY)


def test_in_memory_store_round_trip():
    repo = repositories.InMemoryTrackerStateRepository()
    assert repo.load(1) is None
    state = _state()
    repo.save(1, state)
    loaded = repo.load(1)
    assert loaded == state
    assert loaded is not state
    assert repo.load(2) is None


def test_sql_store_round_trip_and_overwrite():
    create_db_and_tables()
    with Session(engine) as session:
        user = repositories.UserRepository(session).create(
            models.User(username=f"store-{uuid.uuid4().hex[:8]}", password_hash="x")
        )
        repo = repositories.SQLTrackerStateRepository(session)
        assert repo.load(user.id) is None
        repo.save(user.id, _state())
        assert repo.load(user.id).streak.current == 1

        emptied = build_state([], today=TODAY)
        repo.save(user.id, emptied)
        assert repo.load(user.id) == emptied
