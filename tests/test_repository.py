import sqlite3
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from samedi.repository import SQLiteRepository, create_schema
from samedi.session import Session, SessionError, SessionNotFoundError


@pytest.fixture
def repo():
    conn = sqlite3.connect(":memory:")
    create_schema(conn)
    yield SQLiteRepository(conn)
    conn.close()


def _new_session(plan_id="test-plan", start=None, **kwargs):
    start = start or datetime.now()
    return Session(
        id=str(uuid.uuid4()),
        plan_id=plan_id,
        start_time=start,
        created_at=kwargs.pop("created_at", start),
        **kwargs,
    )


def test_create(repo):
    session = _new_session(chunk_id="chunk-001")
    repo.create(session)
    retrieved = repo.get(session.id)
    assert retrieved.id == session.id
    assert retrieved.plan_id == "test-plan"
    assert retrieved.chunk_id == "chunk-001"
    assert retrieved.is_active() is True
    assert retrieved.start_time == session.start_time


def test_create_without_chunk_id(repo):
    session = _new_session(chunk_id="")
    repo.create(session)
    assert repo.get(session.id).chunk_id == ""


def test_create_completed_session(repo):
    start = datetime.now()
    session = _new_session(
        start=start,
        end_time=start + timedelta(hours=1),
        duration=60,
        notes="Test notes",
        artifacts=["https://example.com/user/repo"],
    )
    repo.create(session)
    retrieved = repo.get(session.id)
    assert retrieved.is_active() is False
    assert retrieved.duration == 60
    assert retrieved.notes == "Test notes"
    assert retrieved.artifacts == ["https://example.com/user/repo"]


def test_create_duplicate_id_raises(repo):
    session = _new_session()
    repo.create(session)
    with pytest.raises(SessionError, match="failed to create session"):
        repo.create(session)


def test_get_not_found(repo):
    with pytest.raises(SessionNotFoundError, match="session not found"):
        repo.get("non-existent")


def test_get_active_no_active_session(repo):
    assert repo.get_active() is None


def test_get_active_with_active_session(repo):
    session = _new_session()
    repo.create(session)
    active = repo.get_active()
    assert active is not None
    assert active.id == session.id
    assert active.is_active() is True


def test_get_active_ignores_completed_sessions(repo):
    start = datetime.now()
    repo.create(
        _new_session(start=start, end_time=start + timedelta(hours=1), duration=60)
    )
    assert repo.get_active() is None


def test_get_active_returns_most_recent(repo):
    now = datetime.now()
    repo.create(_new_session(start=now))
    later = _new_session(start=now + timedelta(minutes=5))
    repo.create(later)
    assert repo.get_active().id == later.id


def test_update(repo):
    now = datetime.now()
    session = _new_session(start=now)
    repo.create(session)

    session.end_time = now + timedelta(hours=1)
    session.duration = 60
    session.notes = "Completed work"
    session.artifacts = ["https://example.com"]
    repo.update(session)

    retrieved = repo.get(session.id)
    assert retrieved.is_active() is False
    assert retrieved.duration == 60
    assert retrieved.notes == "Completed work"
    assert len(retrieved.artifacts) == 1


def test_update_not_found(repo):
    session = Session(
        id="non-existent",
        plan_id="test-plan",
        start_time=datetime.now(),
        created_at=datetime.now(),
    )
    with pytest.raises(SessionNotFoundError, match="session not found"):
        repo.update(session)


def test_list(repo):
    now = datetime.now()
    for i in range(5):
        repo.create(_new_session(start=now + timedelta(hours=i), created_at=now))

    sessions = repo.list("test-plan", 3)
    assert len(sessions) == 3
    assert sessions[0].start_time > sessions[1].start_time
    assert sessions[1].start_time > sessions[2].start_time


def test_list_without_limit_returns_all(repo):
    now = datetime.now()
    for i in range(4):
        repo.create(_new_session(start=now + timedelta(minutes=i)))
    assert len(repo.list("test-plan", 0)) == 4


def test_list_empty_result(repo):
    assert repo.list("test-plan", 10) == []


def test_list_all_plans(repo):
    now = datetime.now()
    for i in range(3):
        for j in range(2):
            repo.create(
                _new_session(
                    plan_id=f"plan-{i + 1}",
                    start=now + timedelta(hours=i * 2 + j),
                    created_at=now,
                )
            )

    sessions = repo.list("", 10)
    assert len(sessions) == 6
    assert {s.plan_id for s in sessions} == {"plan-1", "plan-2", "plan-3"}
    for newer, older in zip(sessions, sessions[1:]):
        assert newer.start_time >= older.start_time


def test_list_orders_aware_times_by_instant(repo):
    base = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
    earlier = _new_session(start=base.astimezone(timezone(timedelta(hours=5))))
    later = _new_session(start=base + timedelta(hours=1))
    repo.create(earlier)
    repo.create(later)
    ids = [s.id for s in repo.list("test-plan", 0)]
    assert ids == [later.id, earlier.id]
    assert repo.get(earlier.id).start_time == base


def test_get_by_plan(repo):
    now = datetime.now()
    for _ in range(3):
        repo.create(_new_session(plan_id="plan-1", start=now))
    for _ in range(2):
        repo.create(_new_session(plan_id="plan-2", start=now))

    sessions = repo.get_by_plan("plan-1")
    assert len(sessions) == 3
    assert all(s.plan_id == "plan-1" for s in sessions)


def test_delete(repo):
    session = _new_session()
    repo.create(session)
    repo.delete(session.id)
    with pytest.raises(SessionNotFoundError, match="session not found"):
        repo.get(session.id)


def test_delete_not_found(repo):
    with pytest.raises(SessionNotFoundError, match="session not found"):
        repo.delete("non-existent")


def test_artifacts_empty_array(repo):
    session = _new_session(artifacts=[])
    repo.create(session)
    assert repo.get(session.id).artifacts == []


def test_artifacts_multiple_values(repo):
    artifacts = [
        "https://example.com/user/repo",
        "/path/to/file.md",
        "https://example.com/resource",
    ]
    session = _new_session(artifacts=list(artifacts))
    repo.create(session)
    assert repo.get(session.id).artifacts == artifacts


def test_cards_created_round_trip(repo):
    session = _new_session(cards_created=7)
    repo.create(session)
    assert repo.get(session.id).cards_created == 7